"""Document categories and client-side upload rules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Sequence


BYTES_PER_MB = 1024 * 1024


class UploadValidationError(ValueError):
    """Raised when a selection violates a category's limits; no request is sent."""


@dataclass(frozen=True)
class DocumentCategorySpec:
    id: str
    title: str
    description: str
    api_type: str
    required: bool
    max_files: int
    max_size_mb: float
    accepted_formats: tuple[str, ...]

    @property
    def replaces_on_upload(self) -> bool:
        return self.max_files == 1


@dataclass(frozen=True)
class UploadCandidate:
    """A file chosen for upload, before the server has seen it."""

    file_name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


REQUIRED_DOCUMENT_CATEGORIES: tuple[DocumentCategorySpec, ...] = (
    DocumentCategorySpec(
        id="passport-photos",
        title="Passport Photograph",
        description="Upload a recent passport photograph",
        api_type="passport photo",
        required=True,
        max_files=1,
        max_size_mb=2,
        accepted_formats=(".jpg", ".jpeg", ".png"),
    ),
    DocumentCategorySpec(
        id="school-fees",
        title="School Fees Receipt",
        description="Current session school fees payment receipt",
        api_type="fee receipt",
        required=True,
        max_files=1,
        max_size_mb=5,
        accepted_formats=(".pdf", ".jpg", ".jpeg", ".png"),
    ),
    DocumentCategorySpec(
        id="accommodation-receipt",
        title="Accommodation Receipt",
        description="Hostel accommodation fee payment receipt (Hall Dues)",
        api_type="hall dues",
        required=True,
        max_files=1,
        max_size_mb=5,
        accepted_formats=(".pdf", ".jpg", ".jpeg", ".png"),
    ),
)


def validate_category_spec(spec: DocumentCategorySpec) -> None:
    if not spec.id.strip():
        raise ValueError("category id must be non-empty")
    if not spec.api_type.strip():
        raise ValueError("category api_type must be non-empty")
    if spec.max_files <= 0:
        raise ValueError("max_files must be > 0")
    if spec.max_size_mb <= 0:
        raise ValueError("max_size_mb must be > 0")


def validate_upload(
    spec: DocumentCategorySpec,
    existing_count: int,
    files: Sequence[UploadCandidate],
) -> None:
    if not files:
        raise UploadValidationError("Select at least one file to upload")

    limit_bytes = spec.max_size_mb * BYTES_PER_MB
    oversized = [item.file_name for item in files if item.size > limit_bytes]
    if oversized:
        raise UploadValidationError(
            f"Files exceed maximum size of {spec.max_size_mb:g}MB: {', '.join(oversized)}"
        )

    if spec.accepted_formats:
        accepted = {fmt.lower() for fmt in spec.accepted_formats}
        unsupported = [
            item.file_name for item in files if PurePath(item.file_name).suffix.lower() not in accepted
        ]
        if unsupported:
            raise UploadValidationError(
                f"Unsupported file format for {spec.title}: {', '.join(unsupported)} "
                f"(accepted: {', '.join(spec.accepted_formats)})"
            )

    # Single-file categories replace their current file, so it is not counted.
    counted_existing = 0 if spec.replaces_on_upload else existing_count
    if counted_existing + len(files) > spec.max_files:
        plural = "s" if spec.max_files > 1 else ""
        raise UploadValidationError(
            f"Cannot upload more than {spec.max_files} file{plural} for {spec.title}"
        )
