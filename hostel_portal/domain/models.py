"""Domain models for the registration, verification and allocation lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RegistrationStatus(str, Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VerificationState(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class StepState(str, Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    REJECTED = "rejected"
    PENDING = "pending"


class AllocationOutcome(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    MAINTENANCE = "maintenance"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DocumentStatus:
    id: str
    type: str
    verification_state: VerificationState


@dataclass(frozen=True)
class RegistrationRecord:
    status: RegistrationStatus
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    room_id: Optional[str] = None
    documents: tuple[DocumentStatus, ...] = ()
    application_id: Optional[str] = None
    preferred_block: Optional[str] = None
    special_requests: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    submitted: Optional[bool] = None

    @classmethod
    def not_submitted(cls, now: Optional[datetime] = None) -> "RegistrationRecord":
        """Record used when the server has no registration for the student."""
        return cls(
            status=RegistrationStatus.NOT_SUBMITTED,
            updated_at=now or datetime.now().astimezone(),
        )

    @property
    def has_room(self) -> bool:
        return bool(self.room_id)


@dataclass(frozen=True)
class TimelineStep:
    id: str
    title: str
    state: StepState
    description: str
    completed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


@dataclass(frozen=True)
class RegistrationView:
    """Render-ready projection of a registration record."""

    steps: tuple[TimelineStep, ...]
    progress: int
    label: str
    verification_state: VerificationState


@dataclass(frozen=True)
class AllocationJob:
    is_running: bool
    progress: int = 0
    current_step: str = ""
    start_time: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None

    @classmethod
    def idle(cls) -> "AllocationJob":
        return cls(is_running=False)

    @classmethod
    def initializing(cls) -> "AllocationJob":
        return cls(is_running=True, progress=0, current_step="Initializing allocation process...")


@dataclass(frozen=True)
class AllocationConflict:
    student_id: str
    student_name: str
    issue: str


@dataclass(frozen=True)
class AllocationEntry:
    student_id: str
    student_name: str
    matric_number: str
    block: str
    room_number: str


@dataclass(frozen=True)
class AllocationResult:
    id: str
    timestamp: datetime
    status: AllocationOutcome
    students_allocated: int
    students_unallocated: int
    total_students: int
    errors: tuple[str, ...] = ()
    conflicts: tuple[AllocationConflict, ...] = ()
    allocations: tuple[AllocationEntry, ...] = ()


@dataclass(frozen=True)
class BlockAvailability:
    block: str
    available_spaces: int
    estimated_students: int


@dataclass(frozen=True)
class PreAllocationCheck:
    approved_students: int
    available_spaces: int
    can_allocate_all: bool
    warnings: tuple[str, ...] = ()
    block_availability: tuple[BlockAvailability, ...] = ()


@dataclass(frozen=True)
class DocumentFile:
    id: str
    file_name: str
    type: str
    verification_state: VerificationState
    file_size: int = 0
    mime_type: str = ""
    uploaded_at: Optional[datetime] = None
    file_url: Optional[str] = None
    rejection_reason: Optional[str] = None


@dataclass(frozen=True)
class StudentDocuments:
    """Files the server holds for one student plus its submission flag."""

    files: tuple[DocumentFile, ...]
    submitted: Optional[bool] = None


@dataclass(frozen=True)
class RoomOccupant:
    id: str
    name: str
    matric_number: str


@dataclass(frozen=True)
class Room:
    id: str
    block: str
    room_number: str
    capacity: int
    status: RoomStatus
    occupants: tuple[RoomOccupant, ...] = ()

    @property
    def occupied_capacity(self) -> int:
        return len(self.occupants)

    @property
    def available_capacity(self) -> int:
        return self.capacity - self.occupied_capacity


@dataclass(frozen=True)
class Block:
    name: str
    total_rooms: int = 0
    total_capacity: int = 0
    occupied_capacity: int = 0
    available_capacity: int = 0


@dataclass(frozen=True)
class Notification:
    id: str
    title: str
    message: str
    type: str
    priority: str
    is_read: bool
    created_at: datetime
    action_required: bool = False
    action_url: Optional[str] = None
    action_text: Optional[str] = None


@dataclass(frozen=True)
class PendingReview:
    """One student's documents as seen by the verifying administrator.

    ``documents`` maps a document key to ``True`` (verified), ``False``
    (rejected) or ``None`` (not yet reviewed).
    """

    student_id: str
    first_name: str
    last_name: str
    matric_number: str
    level: str
    email: str
    submission_date: Optional[datetime] = None
    documents: dict[str, Optional[bool]] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class RegistrationSummary:
    id: str
    first_name: str
    last_name: str
    matric_number: str
    level: str
    phone: str
    email: str
    status: str
    submission_date: Optional[datetime] = None
    documents_verified: bool = False


@dataclass(frozen=True)
class StudentProfile:
    id: str
    matric_number: str
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    department: str = ""
    level: str = ""


@dataclass(frozen=True)
class ReportArtifact:
    """Binary payload fetched for a client-side save."""

    filename: str
    content_type: str
    content: bytes


@dataclass(frozen=True)
class ReportData:
    """Aggregated series for the admin reports page; rows are plain mappings."""

    room_occupancy: tuple[dict, ...] = ()
    registration_trends: tuple[dict, ...] = ()
    level_distribution: tuple[dict, ...] = ()
    allocation_summary: tuple[dict, ...] = ()
    monthly_registrations: tuple[dict, ...] = ()


@dataclass(frozen=True)
class SessionIdentity:
    """Who the stored bearer token belongs to."""

    role: str
    user_id: str
    token: str
