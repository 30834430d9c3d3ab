"""Registration timeline projection.

Everything here is a pure function of a ``RegistrationRecord``: the console
recomputes the view on every render and nothing is persisted.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

from hostel_portal.domain.models import (
    DocumentFile,
    DocumentStatus,
    RegistrationRecord,
    RegistrationStatus,
    RegistrationView,
    StepState,
    TimelineStep,
    VerificationState,
)


STEP_SUBMISSION = "submission"
STEP_VERIFICATION = "verification"
STEP_REVIEW = "review"
STEP_ALLOCATION = "allocation"

STEP_TITLES = {
    STEP_SUBMISSION: "Application Submission",
    STEP_VERIFICATION: "Document Verification",
    STEP_REVIEW: "Application Review",
    STEP_ALLOCATION: "Room Allocation",
}

DEFAULT_REJECTION_REASON = "Please review your application and resubmit."

LABEL_NOT_SUBMITTED = "Not Submitted"
LABEL_ACTION_REQUIRED = "Action Required"
LABEL_ROOM_ALLOCATED = "Room Allocated"
LABEL_UNDER_REVIEW = "Under Review"

_IN_PROGRESS_STATUSES = {RegistrationStatus.SUBMITTED, RegistrationStatus.APPROVED}


def aggregate_verification_state(
    documents: Iterable[Union[DocumentStatus, DocumentFile]],
) -> VerificationState:
    """All verified -> verified, any rejected -> rejected, otherwise pending."""
    states = [document.verification_state for document in documents]
    if states and all(state is VerificationState.VERIFIED for state in states):
        return VerificationState.VERIFIED
    if any(state is VerificationState.REJECTED for state in states):
        return VerificationState.REJECTED
    return VerificationState.PENDING


def _submission_step(record: RegistrationRecord) -> TimelineStep:
    if record.status is RegistrationStatus.NOT_SUBMITTED:
        return TimelineStep(
            id=STEP_SUBMISSION,
            title=STEP_TITLES[STEP_SUBMISSION],
            state=StepState.CURRENT,
            description="Fill out and submit your hostel application form.",
        )
    return TimelineStep(
        id=STEP_SUBMISSION,
        title=STEP_TITLES[STEP_SUBMISSION],
        state=StepState.COMPLETED,
        description="Your application has been received.",
        completed_at=record.submitted_at,
    )


def _verification_step(
    record: RegistrationRecord,
    verification_state: VerificationState,
) -> TimelineStep:
    title = STEP_TITLES[STEP_VERIFICATION]
    if record.status is RegistrationStatus.REJECTED:
        # A rejected application has already been through verification.
        return TimelineStep(
            id=STEP_VERIFICATION,
            title=title,
            state=StepState.COMPLETED,
            description="Your documents were reviewed.",
        )
    if record.status not in _IN_PROGRESS_STATUSES:
        return TimelineStep(
            id=STEP_VERIFICATION,
            title=title,
            state=StepState.PENDING,
            description="Documents are reviewed after you submit your application.",
        )
    if verification_state is VerificationState.VERIFIED:
        return TimelineStep(
            id=STEP_VERIFICATION,
            title=title,
            state=StepState.COMPLETED,
            description="All documents have been verified.",
        )
    if verification_state is VerificationState.REJECTED:
        return TimelineStep(
            id=STEP_VERIFICATION,
            title=title,
            state=StepState.REJECTED,
            description="One or more documents were rejected.",
        )
    return TimelineStep(
        id=STEP_VERIFICATION,
        title=title,
        state=StepState.CURRENT,
        description="Documents are being reviewed.",
    )


def _review_step(record: RegistrationRecord, verification: TimelineStep) -> TimelineStep:
    title = STEP_TITLES[STEP_REVIEW]
    if record.status is RegistrationStatus.REJECTED:
        return TimelineStep(
            id=STEP_REVIEW,
            title=title,
            state=StepState.REJECTED,
            description="Your application was not approved.",
            rejection_reason=(record.rejection_reason or "").strip() or DEFAULT_REJECTION_REASON,
        )
    if verification.state is StepState.COMPLETED:
        return TimelineStep(
            id=STEP_REVIEW,
            title=title,
            state=StepState.COMPLETED,
            description="Your application has been accepted.",
        )
    return TimelineStep(
        id=STEP_REVIEW,
        title=title,
        state=StepState.PENDING,
        description="Your application is reviewed once your documents are verified.",
    )


def _allocation_step(record: RegistrationRecord) -> TimelineStep:
    title = STEP_TITLES[STEP_ALLOCATION]
    if record.has_room:
        return TimelineStep(
            id=STEP_ALLOCATION,
            title=title,
            state=StepState.COMPLETED,
            description="A hostel room and bed have been assigned to you.",
            completed_at=record.updated_at,
        )
    if record.status is RegistrationStatus.REJECTED:
        description = "Room allocation not possible for rejected applications."
    elif record.status is RegistrationStatus.NOT_SUBMITTED:
        description = "Room allocation will be available once you submit your application."
    else:
        description = "Awaiting room and bed assignment."
    return TimelineStep(
        id=STEP_ALLOCATION,
        title=title,
        state=StepState.PENDING,
        description=description,
    )


def build_timeline(record: RegistrationRecord) -> tuple[TimelineStep, ...]:
    """Return the four timeline steps in fixed order."""
    verification_state = aggregate_verification_state(record.documents)
    submission = _submission_step(record)
    verification = _verification_step(record, verification_state)
    review = _review_step(record, verification)
    allocation = _allocation_step(record)
    return (submission, verification, review, allocation)


def compute_progress(steps: Sequence[TimelineStep]) -> int:
    if not steps:
        return 0
    completed = sum(1 for step in steps if step.state is StepState.COMPLETED)
    # int(x + 0.5) rounds halves up for the non-negative ratios used here.
    return int(100 * completed / len(steps) + 0.5)


def current_step(steps: Sequence[TimelineStep]) -> Optional[TimelineStep]:
    return next((step for step in steps if step.state is StepState.CURRENT), None)


def status_label(record: RegistrationRecord, steps: Sequence[TimelineStep]) -> str:
    if record.status is RegistrationStatus.NOT_SUBMITTED:
        return LABEL_NOT_SUBMITTED
    if record.status is RegistrationStatus.REJECTED:
        return LABEL_ACTION_REQUIRED
    if record.has_room:
        return LABEL_ROOM_ALLOCATED
    step = current_step(steps)
    return step.title if step is not None else LABEL_UNDER_REVIEW


def project_registration(record: Optional[RegistrationRecord]) -> RegistrationView:
    """Build the full view model; ``None`` means the server has no record."""
    effective = record if record is not None else RegistrationRecord.not_submitted()
    steps = build_timeline(effective)
    return RegistrationView(
        steps=steps,
        progress=compute_progress(steps),
        label=status_label(effective, steps),
        verification_state=aggregate_verification_state(effective.documents),
    )
