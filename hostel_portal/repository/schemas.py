"""Payload DTOs that normalise server responses into domain models.

The API is loose about optional fields, id types and the casing of status
strings. Every response passes through one of these models before it
reaches a service, so services only ever see the fixed-shape dataclasses in
``hostel_portal.domain.models``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hostel_portal.domain.models import (
    AllocationConflict,
    AllocationEntry,
    AllocationJob,
    AllocationOutcome,
    AllocationResult,
    Block,
    BlockAvailability,
    DocumentFile,
    DocumentStatus,
    Notification,
    PendingReview,
    PreAllocationCheck,
    RegistrationRecord,
    RegistrationStatus,
    RegistrationSummary,
    ReportData,
    Room,
    RoomOccupant,
    RoomStatus,
    StudentProfile,
    VerificationState,
)


_REGISTRATION_STATUS_ALIASES = {
    "NOT_SUBMITTED": RegistrationStatus.NOT_SUBMITTED,
    "NOTSUBMITTED": RegistrationStatus.NOT_SUBMITTED,
    "UNREGISTERED": RegistrationStatus.NOT_SUBMITTED,
    "DRAFT": RegistrationStatus.NOT_SUBMITTED,
    "SUBMITTED": RegistrationStatus.SUBMITTED,
    "PENDING": RegistrationStatus.SUBMITTED,
    "APPROVED": RegistrationStatus.APPROVED,
    "REJECTED": RegistrationStatus.REJECTED,
}


def _token(value: Any) -> str:
    return str(value).strip().upper().replace("-", "_").replace(" ", "_")


def normalize_registration_status(value: Any) -> RegistrationStatus:
    if isinstance(value, RegistrationStatus):
        return value
    if value is None:
        return RegistrationStatus.NOT_SUBMITTED
    try:
        return _REGISTRATION_STATUS_ALIASES[_token(value)]
    except KeyError as exc:
        raise ValueError(f"unknown registration status: {value!r}") from exc


def normalize_verification_state(value: Any) -> VerificationState:
    """Accept enum strings in any casing, or the boolean/None review flag."""
    if isinstance(value, VerificationState):
        return value
    if value is None:
        return VerificationState.PENDING
    if isinstance(value, bool):
        return VerificationState.VERIFIED if value else VerificationState.REJECTED
    try:
        return VerificationState(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"unknown verification state: {value!r}") from exc


def _as_text(value: Any) -> Any:
    if value is None:
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class ApiPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DocumentStatusPayload(ApiPayload):
    id: str = ""
    type: str = ""
    status: VerificationState = VerificationState.PENDING

    coerce_id = field_validator("id", mode="before")(_as_text)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> VerificationState:
        return normalize_verification_state(value)

    def to_domain(self) -> DocumentStatus:
        return DocumentStatus(id=self.id, type=self.type, verification_state=self.status)


class RegistrationPayload(ApiPayload):
    status: RegistrationStatus = RegistrationStatus.NOT_SUBMITTED
    application_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    room_id: Optional[str] = None
    documents: list[DocumentStatusPayload] = Field(default_factory=list)
    preferred_block: Optional[str] = None
    special_requests: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    submitted: Optional[bool] = None

    coerce_ids = field_validator("application_id", "room_id", mode="before")(_as_text)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> RegistrationStatus:
        return normalize_registration_status(value)

    @field_validator("documents", mode="before")
    @classmethod
    def default_documents(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_domain(self) -> RegistrationRecord:
        return RegistrationRecord(
            status=self.status,
            updated_at=self.updated_at or datetime.now().astimezone(),
            submitted_at=self.submitted_at,
            rejection_reason=self.rejection_reason,
            room_id=self.room_id or None,
            documents=tuple(item.to_domain() for item in self.documents),
            application_id=self.application_id,
            preferred_block=self.preferred_block,
            special_requests=self.special_requests,
            emergency_contact_name=self.emergency_contact_name,
            emergency_contact_phone=self.emergency_contact_phone,
            emergency_contact_relation=self.emergency_contact_relation,
            submitted=self.submitted,
        )


class AllocationStatusPayload(ApiPayload):
    is_running: bool = False
    progress: int = 0
    current_step: str = ""
    start_time: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, value: Any) -> int:
        if value is None:
            return 0
        return max(0, min(100, int(round(float(value)))))

    @field_validator("current_step", mode="before")
    @classmethod
    def default_step(cls, value: Any) -> str:
        return "" if value is None else str(value)

    def to_domain(self) -> AllocationJob:
        return AllocationJob(
            is_running=self.is_running,
            progress=self.progress,
            current_step=self.current_step,
            start_time=self.start_time,
            estimated_completion=self.estimated_completion,
        )


class AllocationConflictPayload(ApiPayload):
    student_id: str
    student_name: str = ""
    issue: str = ""

    coerce_id = field_validator("student_id", mode="before")(_as_text)


class AllocationEntryPayload(ApiPayload):
    student_id: str
    student_name: str = ""
    matric_number: str = ""
    block: str = ""
    room_number: str = ""

    coerce_fields = field_validator("student_id", "room_number", mode="before")(_as_text)


class AllocationResultPayload(ApiPayload):
    id: str
    timestamp: datetime
    status: AllocationOutcome
    students_allocated: int = Field(default=0, ge=0)
    students_unallocated: int = Field(default=0, ge=0)
    total_students: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    conflicts: list[AllocationConflictPayload] = Field(default_factory=list)
    allocations: list[AllocationEntryPayload] = Field(default_factory=list)

    coerce_id = field_validator("id", mode="before")(_as_text)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> AllocationOutcome:
        try:
            return AllocationOutcome(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown allocation result status: {value!r}") from exc

    @field_validator("errors", "conflicts", "allocations", mode="before")
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_domain(self) -> AllocationResult:
        return AllocationResult(
            id=self.id,
            timestamp=self.timestamp,
            status=self.status,
            students_allocated=self.students_allocated,
            students_unallocated=self.students_unallocated,
            total_students=self.total_students,
            errors=tuple(self.errors),
            conflicts=tuple(
                AllocationConflict(
                    student_id=item.student_id,
                    student_name=item.student_name,
                    issue=item.issue,
                )
                for item in self.conflicts
            ),
            allocations=tuple(
                AllocationEntry(
                    student_id=item.student_id,
                    student_name=item.student_name,
                    matric_number=item.matric_number,
                    block=item.block,
                    room_number=item.room_number,
                )
                for item in self.allocations
            ),
        )


class BlockAvailabilityPayload(ApiPayload):
    block: str
    available_spaces: int = Field(default=0, ge=0)
    estimated_students: int = Field(default=0, ge=0)


class PreAllocationCheckPayload(ApiPayload):
    approved_students: int = Field(default=0, ge=0)
    available_spaces: int = Field(default=0, ge=0)
    can_allocate_all: bool = False
    warnings: list[str] = Field(default_factory=list)
    block_availability: list[BlockAvailabilityPayload] = Field(default_factory=list)

    @field_validator("warnings", "block_availability", mode="before")
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_domain(self) -> PreAllocationCheck:
        return PreAllocationCheck(
            approved_students=self.approved_students,
            available_spaces=self.available_spaces,
            can_allocate_all=self.can_allocate_all,
            warnings=tuple(self.warnings),
            block_availability=tuple(
                BlockAvailability(
                    block=item.block,
                    available_spaces=item.available_spaces,
                    estimated_students=item.estimated_students,
                )
                for item in self.block_availability
            ),
        )


class DocumentFilePayload(ApiPayload):
    id: str
    file_name: str = Field(default="", validation_alias=AliasChoices("fileName", "file_name", "name"))
    type: str = ""
    status: VerificationState = VerificationState.PENDING
    file_size: int = Field(default=0, ge=0)
    mime_type: str = ""
    uploaded_at: Optional[datetime] = None
    file_url: Optional[str] = None
    rejection_reason: Optional[str] = None

    coerce_id = field_validator("id", mode="before")(_as_text)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> VerificationState:
        return normalize_verification_state(value)

    def to_domain(self) -> DocumentFile:
        return DocumentFile(
            id=self.id,
            file_name=self.file_name,
            type=self.type,
            verification_state=self.status,
            file_size=self.file_size,
            mime_type=self.mime_type,
            uploaded_at=self.uploaded_at,
            file_url=self.file_url,
            rejection_reason=self.rejection_reason,
        )


class RoomOccupantPayload(ApiPayload):
    id: str
    name: str = ""
    matric_number: str = ""

    coerce_id = field_validator("id", mode="before")(_as_text)


class RoomPayload(ApiPayload):
    id: str
    block: str
    room_number: str
    capacity: int = Field(ge=0)
    status: RoomStatus = RoomStatus.AVAILABLE
    allocations: list[RoomOccupantPayload] = Field(default_factory=list)

    coerce_fields = field_validator("id", "room_number", mode="before")(_as_text)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> RoomStatus:
        if value is None:
            return RoomStatus.AVAILABLE
        try:
            return RoomStatus(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown room status: {value!r}") from exc

    @field_validator("allocations", mode="before")
    @classmethod
    def default_allocations(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_domain(self) -> Room:
        return Room(
            id=self.id,
            block=self.block,
            room_number=self.room_number,
            capacity=self.capacity,
            status=self.status,
            occupants=tuple(
                RoomOccupant(id=item.id, name=item.name, matric_number=item.matric_number)
                for item in self.allocations
            ),
        )


class BlockPayload(ApiPayload):
    name: str
    total_rooms: int = Field(default=0, ge=0)
    total_capacity: int = Field(default=0, ge=0)
    occupied_capacity: int = Field(default=0, ge=0)
    available_capacity: int = 0

    def to_domain(self) -> Block:
        return Block(
            name=self.name,
            total_rooms=self.total_rooms,
            total_capacity=self.total_capacity,
            occupied_capacity=self.occupied_capacity,
            available_capacity=self.available_capacity,
        )


class NotificationPayload(ApiPayload):
    id: str
    title: str = ""
    message: str = ""
    type: str = "general"
    priority: str = "low"
    is_read: bool = False
    created_at: datetime
    action_required: bool = False
    action_url: Optional[str] = None
    action_text: Optional[str] = None

    coerce_id = field_validator("id", mode="before")(_as_text)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value: Any) -> str:
        normalized = str(value or "low").strip().lower()
        if normalized not in {"low", "medium", "high"}:
            raise ValueError(f"unknown notification priority: {value!r}")
        return normalized

    def to_domain(self) -> Notification:
        return Notification(
            id=self.id,
            title=self.title,
            message=self.message,
            type=self.type,
            priority=self.priority,
            is_read=self.is_read,
            created_at=self.created_at,
            action_required=self.action_required,
            action_url=self.action_url,
            action_text=self.action_text,
        )


class ReviewDocumentPayload(ApiPayload):
    verified: Optional[bool] = None


class PendingReviewPayload(ApiPayload):
    id: str
    first_name: str = ""
    last_name: str = ""
    matric_number: str = ""
    level: str = ""
    email: str = ""
    submission_date: Optional[datetime] = None
    documents: dict[str, Optional[ReviewDocumentPayload]] = Field(default_factory=dict)

    coerce_fields = field_validator("id", "level", mode="before")(_as_text)

    @field_validator("documents", mode="before")
    @classmethod
    def default_documents(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_domain(self) -> PendingReview:
        return PendingReview(
            student_id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            matric_number=self.matric_number,
            level=self.level,
            email=self.email,
            submission_date=self.submission_date,
            documents={
                key: document.verified
                for key, document in self.documents.items()
                if document is not None
            },
        )


class RegistrationSummaryPayload(ApiPayload):
    id: str
    first_name: str = ""
    last_name: str = ""
    matric_number: str = ""
    level: str = ""
    phone_number: str = ""
    email: str = ""
    status: str = "NOT_SUBMITTED"
    submission_date: Optional[datetime] = None
    documents_verified: bool = False

    coerce_fields = field_validator("id", "level", mode="before")(_as_text)

    @field_validator("phone_number", mode="before")
    @classmethod
    def default_phone(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> str:
        return normalize_registration_status(value).value

    def to_domain(self) -> RegistrationSummary:
        return RegistrationSummary(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            matric_number=self.matric_number,
            level=self.level,
            phone=self.phone_number,
            email=self.email,
            status=self.status,
            submission_date=self.submission_date,
            documents_verified=self.documents_verified,
        )


class ProfilePayload(ApiPayload):
    id: str = ""
    matric_number: str = ""
    first_name: str = Field(default="", validation_alias=AliasChoices("firstName", "firstname", "first_name"))
    last_name: str = Field(default="", validation_alias=AliasChoices("lastName", "lastname", "last_name"))
    email: str = ""
    phone: Optional[str] = None
    department: Optional[str] = None
    level: Optional[str] = None

    coerce_fields = field_validator("id", "level", mode="before")(_as_text)

    def to_domain(self) -> StudentProfile:
        return StudentProfile(
            id=self.id,
            matric_number=self.matric_number,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone or "",
            department=self.department or "",
            level=self.level or "",
        )


class LoginPayload(ApiPayload):
    token: str = Field(min_length=1)
    student: Optional[dict[str, Any]] = None
    admin: Optional[dict[str, Any]] = None

    def user_id(self) -> str:
        for principal in (self.student, self.admin):
            if principal and principal.get("id") is not None:
                return str(principal["id"])
        return ""


class ReportPayload(ApiPayload):
    room_occupancy: list[dict[str, Any]] = Field(default_factory=list)
    registration_trends: list[dict[str, Any]] = Field(default_factory=list)
    level_distribution: list[dict[str, Any]] = Field(default_factory=list)
    allocation_summary: list[dict[str, Any]] = Field(default_factory=list)
    monthly_registrations: list[dict[str, Any]] = Field(default_factory=list)

    def to_domain(self) -> ReportData:
        return ReportData(
            room_occupancy=tuple(self.room_occupancy),
            registration_trends=tuple(self.registration_trends),
            level_distribution=tuple(self.level_distribution),
            allocation_summary=tuple(self.allocation_summary),
            monthly_registrations=tuple(self.monthly_registrations),
        )
