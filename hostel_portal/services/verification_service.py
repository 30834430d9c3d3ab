"""Administrator review of submitted student documents."""

from __future__ import annotations

from dataclasses import replace
from threading import RLock
from typing import Optional

from hostel_portal.domain.models import PendingReview, VerificationState
from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

DOCUMENT_TITLES = {
    "passportPhoto": "Passport Photo",
    "schoolFeesReceipt": "School Fees Receipt",
    "accommodationReceipt": "Accommodation Receipt",
}

_DECISIONS = {VerificationState.VERIFIED, VerificationState.REJECTED}


def document_state(verified: Optional[bool]) -> VerificationState:
    if verified is True:
        return VerificationState.VERIFIED
    if verified is False:
        return VerificationState.REJECTED
    return VerificationState.PENDING


def review_state(review: PendingReview) -> VerificationState:
    states = [document_state(value) for value in review.documents.values()]
    if states and all(state is VerificationState.VERIFIED for state in states):
        return VerificationState.VERIFIED
    if any(state is VerificationState.REJECTED for state in states):
        return VerificationState.REJECTED
    return VerificationState.PENDING


class VerificationService:
    """Keeps the pending-review list and applies verify/reject decisions."""

    def __init__(self, repository: HostelApiRepository) -> None:
        self._repository = repository
        self._lock = RLock()
        self._reviews: dict[str, PendingReview] = {}

    @property
    def reviews(self) -> list[PendingReview]:
        with self._lock:
            return list(self._reviews.values())

    def load(self) -> list[PendingReview]:
        reviews = self._repository.list_pending_reviews()
        with self._lock:
            self._reviews = {review.student_id: review for review in reviews}
        logger.info("Loaded %s student document reviews", len(reviews))
        return self.reviews

    def verify(self, student_id: str, document_key: str, status: VerificationState) -> PendingReview:
        if status not in _DECISIONS:
            raise ValueError("status must be verified or rejected")
        with self._lock:
            if student_id not in self._reviews:
                raise KeyError(student_id)

        self._repository.verify_document(student_id, document_key, status.value)

        with self._lock:
            review = self._reviews[student_id]
            documents = dict(review.documents)
            if document_key in documents:
                documents[document_key] = status is VerificationState.VERIFIED
            updated = replace(review, documents=documents)
            self._reviews[student_id] = updated
        logger.info("Marked %s for %s as %s", document_key, student_id, status.value)
        return updated

    def verify_all(self, student_id: str, status: VerificationState) -> PendingReview:
        with self._lock:
            review = self._reviews.get(student_id)
        if review is None:
            raise KeyError(student_id)
        updated = review
        for document_key in list(review.documents):
            updated = self.verify(student_id, document_key, status)
        return updated

    def filter(
        self,
        state: Optional[VerificationState] = None,
        level: Optional[str] = None,
        search: str = "",
    ) -> list[PendingReview]:
        """Filter by overall state, level and name or matric number; pending first."""
        term = search.strip().lower()
        matches = [
            review
            for review in self.reviews
            if (state is None or review_state(review) is state)
            and (level is None or review.level == level)
            and (
                not term
                or term in review.full_name.lower()
                or term in review.matric_number.lower()
            )
        ]
        matches.sort(key=lambda review: review_state(review) is not VerificationState.PENDING)
        return matches

    def counts(self) -> dict[str, int]:
        reviews = self.reviews
        counts = {"all": len(reviews)}
        for state in VerificationState:
            counts[state.value] = sum(1 for review in reviews if review_state(review) is state)
        return counts
