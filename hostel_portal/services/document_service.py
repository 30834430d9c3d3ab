"""Student document upload and verification tracking."""

from __future__ import annotations

from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Optional, Sequence

from hostel_portal.domain.constraints import (
    REQUIRED_DOCUMENT_CATEGORIES,
    DocumentCategorySpec,
    UploadCandidate,
    validate_category_spec,
    validate_upload,
)
from hostel_portal.domain.models import DocumentFile, ReportArtifact, VerificationState
from hostel_portal.domain.timeline import aggregate_verification_state
from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.repository.state_store import LocalStateStore, submission_flag_key
from hostel_portal.services.auth_service import AuthService
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)


class DocumentLockedError(Exception):
    """Raised when a document change is attempted that is not allowed."""


class SubmissionNotReadyError(Exception):
    """Raised when submitting before every required category has a file."""


class UnknownCategoryError(KeyError):
    """Raised for a category id that is not configured."""


class DocumentNotFoundError(LookupError):
    """Raised when a file id is not part of the given category."""


@dataclass(frozen=True)
class CategoryState:
    spec: DocumentCategorySpec
    files: tuple[DocumentFile, ...] = ()

    @property
    def uploaded(self) -> bool:
        return bool(self.files)

    @property
    def verification_state(self) -> VerificationState:
        return aggregate_verification_state(self.files)

    def matches(self, document_type: str) -> bool:
        return document_type.strip().lower() == self.spec.api_type.lower()


class DocumentVerificationTracker:
    """Per-category upload state for the logged-in student.

    Whether the documents count as submitted comes from the server when it
    reports it; otherwise from the durable per-student flag in the local
    state store.
    """

    def __init__(
        self,
        repository: HostelApiRepository,
        auth_service: AuthService,
        state_store: LocalStateStore,
        categories: Sequence[DocumentCategorySpec] = REQUIRED_DOCUMENT_CATEGORIES,
    ) -> None:
        for spec in categories:
            validate_category_spec(spec)
        self._repository = repository
        self._auth = auth_service
        self._state_store = state_store
        self._lock = RLock()
        self._categories: dict[str, CategoryState] = {spec.id: CategoryState(spec) for spec in categories}
        self._student_id: Optional[str] = None
        self._server_submitted: Optional[bool] = None
        self._local_submitted = False
        self._editing = False

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #
    @property
    def student_id(self) -> Optional[str]:
        return self._student_id

    @property
    def categories(self) -> tuple[CategoryState, ...]:
        with self._lock:
            return tuple(self._categories.values())

    def category(self, category_id: str) -> CategoryState:
        with self._lock:
            try:
                return self._categories[category_id]
            except KeyError:
                raise UnknownCategoryError(category_id) from None

    @property
    def submitted(self) -> bool:
        with self._lock:
            if self._editing:
                return False
            if self._server_submitted is not None:
                return self._server_submitted
            return self._local_submitted

    @property
    def allow_editing(self) -> bool:
        with self._lock:
            return self._editing or not self.submitted

    @property
    def all_required_uploaded(self) -> bool:
        return all(state.uploaded for state in self.categories if state.spec.required)

    @property
    def all_verified(self) -> bool:
        return all(
            state.uploaded and state.verification_state is VerificationState.VERIFIED
            for state in self.categories
        )

    @property
    def overall_state(self) -> VerificationState:
        if self.all_verified:
            return VerificationState.VERIFIED
        if any(state.verification_state is VerificationState.REJECTED for state in self.categories):
            return VerificationState.REJECTED
        return VerificationState.PENDING

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    def _require_student_id(self) -> str:
        if self._student_id is None:
            self._student_id = self._auth.resolve_student_id()
        return self._student_id

    def _ensure_editable(self) -> None:
        if not self.allow_editing:
            raise DocumentLockedError(
                "Documents have already been submitted. Choose edit to make changes."
            )

    def load(self) -> tuple[CategoryState, ...]:
        student_id = self._require_student_id()
        documents = self._repository.list_student_documents(student_id)
        local_flag = self._state_store.get_flag(submission_flag_key(student_id))

        with self._lock:
            for category_id, state in self._categories.items():
                files = tuple(item for item in documents.files if state.matches(item.type))
                self._categories[category_id] = replace(state, files=files)
            self._server_submitted = documents.submitted
            self._local_submitted = local_flag
        logger.info(
            "Loaded %s documents for student %s (submitted=%s)",
            len(documents.files),
            student_id,
            self.submitted,
        )
        return self.categories

    def upload(self, category_id: str, files: Sequence[UploadCandidate]) -> CategoryState:
        self._ensure_editable()
        state = self.category(category_id)
        validate_upload(state.spec, len(state.files), files)

        student_id = self._require_student_id()
        uploaded = self._repository.upload_documents(student_id, state.spec.api_type, files)

        with self._lock:
            current = self._categories[category_id]
            if current.spec.replaces_on_upload:
                updated = replace(current, files=tuple(uploaded))
            else:
                updated = replace(current, files=current.files + tuple(uploaded))
            self._categories[category_id] = updated
        logger.info("Uploaded %s file(s) to %s", len(uploaded), category_id)
        return updated

    def remove(self, category_id: str, file_id: str) -> CategoryState:
        self._ensure_editable()
        state = self.category(category_id)
        target = next((item for item in state.files if item.id == file_id), None)
        if target is None:
            raise DocumentNotFoundError(f"Document {file_id} is not in {category_id}")
        if target.verification_state is VerificationState.VERIFIED:
            raise DocumentLockedError("Verified documents cannot be removed")

        self._repository.delete_document(file_id)

        with self._lock:
            current = self._categories[category_id]
            updated = replace(current, files=tuple(item for item in current.files if item.id != file_id))
            self._categories[category_id] = updated
        return updated

    def download(self, file_id: str) -> ReportArtifact:
        return self._repository.download_document(file_id)

    def submit(self) -> tuple[CategoryState, ...]:
        self._ensure_editable()
        if not self.all_required_uploaded:
            raise SubmissionNotReadyError("Upload every required document before submitting")
        student_id = self._require_student_id()

        documents: list[dict[str, Any]] = [
            {
                "type": state.spec.api_type,
                "fileName": item.file_name,
                "mimeType": item.mime_type,
                "fileSize": item.file_size,
                "fileUrl": item.file_url,
            }
            for state in self.categories
            for item in state.files
        ]
        self._repository.apply_registration(documents)

        self._state_store.set_flag(submission_flag_key(student_id), True)
        with self._lock:
            self._local_submitted = True
            self._editing = False
        logger.info("Submitted %s documents for student %s", len(documents), student_id)
        return self.load()

    def edit(self) -> None:
        student_id = self._require_student_id()
        self._state_store.clear_flag(submission_flag_key(student_id))
        with self._lock:
            self._editing = True
            self._local_submitted = False
