"""Tests for document upload state, verification aggregation and submission."""

from __future__ import annotations

from dataclasses import replace

import pytest

from fake_api import STUDENT_ID
from hostel_portal.domain.constraints import (
    BYTES_PER_MB,
    REQUIRED_DOCUMENT_CATEGORIES,
    UploadCandidate,
    UploadValidationError,
)
from hostel_portal.domain.models import VerificationState
from hostel_portal.repository.state_store import submission_flag_key
from hostel_portal.services.auth_service import AuthService
from hostel_portal.services.document_service import (
    DocumentLockedError,
    DocumentVerificationTracker,
    SubmissionNotReadyError,
    UnknownCategoryError,
)


def pdf(name: str = "receipt.pdf", size: int = 1024) -> UploadCandidate:
    return UploadCandidate(name, b"x" * size, "application/pdf")


def upload_all(fake_api, status: str = "pending") -> None:
    for spec in REQUIRED_DOCUMENT_CATEGORIES:
        fake_api.add_document(spec.api_type, status=status)


@pytest.fixture
def tracker(repository, auth, state_store):
    return DocumentVerificationTracker(repository, auth, state_store)


# --- load ---

def test_load_groups_files_by_case_insensitive_type(tracker, fake_api) -> None:
    fake_api.add_document("Passport Photo", status="verified")
    fake_api.add_document("FEE RECEIPT")
    fake_api.add_document("unrelated")

    tracker.load()

    assert len(tracker.category("passport-photos").files) == 1
    assert len(tracker.category("school-fees").files) == 1
    assert tracker.category("accommodation-receipt").files == ()
    assert tracker.all_required_uploaded is False
    assert tracker.overall_state is VerificationState.PENDING


def test_student_id_falls_back_to_current_user(repository, state_store, fake_api) -> None:
    auth = AuthService(repository=repository, state_store=state_store)
    auth.use_token("opaque-token-without-claims")
    fake_api.token = "opaque-token-without-claims"
    repository.set_token_provider(auth.current_token)
    tracker = DocumentVerificationTracker(repository, auth, state_store)

    tracker.load()

    assert tracker.student_id == STUDENT_ID
    assert fake_api.count("GET", "/auth/me") == 1


def test_unknown_category_raises(tracker) -> None:
    with pytest.raises(UnknownCategoryError):
        tracker.category("transcripts")


# --- upload ---

def test_oversized_upload_is_rejected_without_request(tracker, fake_api) -> None:
    tracker.load()

    with pytest.raises(UploadValidationError, match="Files exceed maximum size of 5MB"):
        tracker.upload("school-fees", [pdf(size=6 * BYTES_PER_MB)])
    assert fake_api.count("POST", f"/documents/upload/{STUDENT_ID}") == 0


def test_single_file_category_replaces_on_upload(tracker, fake_api) -> None:
    tracker.load()

    first = tracker.upload("school-fees", [pdf("first.pdf")])
    second = tracker.upload("school-fees", [pdf("second.pdf")])

    assert [item.file_name for item in first.files] == ["first.pdf"]
    assert [item.file_name for item in second.files] == ["second.pdf"]


def test_multi_file_category_appends(repository, auth, state_store) -> None:
    categories = (replace(REQUIRED_DOCUMENT_CATEGORIES[1], max_files=3),)
    tracker = DocumentVerificationTracker(repository, auth, state_store, categories=categories)
    tracker.load()

    tracker.upload("school-fees", [pdf("a.pdf")])
    state = tracker.upload("school-fees", [pdf("b.pdf"), pdf("c.pdf")])

    assert [item.file_name for item in state.files] == ["a.pdf", "b.pdf", "c.pdf"]


# --- remove ---

def test_verified_file_cannot_be_removed(tracker, fake_api) -> None:
    document = fake_api.add_document("fee receipt", status="verified")
    tracker.load()

    with pytest.raises(DocumentLockedError):
        tracker.remove("school-fees", str(document["id"]))
    assert fake_api.count("DELETE", f"/documents/delete/{document['id']}") == 0


def test_remove_deletes_after_server_confirms(tracker, fake_api) -> None:
    document = fake_api.add_document("fee receipt")
    tracker.load()

    state = tracker.remove("school-fees", str(document["id"]))

    assert state.files == ()
    assert fake_api.documents == []


def test_failed_delete_keeps_local_file(tracker, fake_api) -> None:
    document = fake_api.add_document("fee receipt")
    fake_api.fail("DELETE", f"/documents/delete/{document['id']}", 500, {"error": "Storage offline"})
    tracker.load()

    with pytest.raises(Exception, match="Storage offline"):
        tracker.remove("school-fees", str(document["id"]))
    assert len(tracker.category("school-fees").files) == 1


def test_download_returns_file_bytes(tracker, fake_api) -> None:
    document = fake_api.add_document("fee receipt")

    artifact = tracker.download(str(document["id"]))

    assert artifact.content == b"%PDF-fake"
    assert artifact.filename == f"document-{document['id']}"


# --- submit and edit ---

def test_submit_requires_every_required_category(tracker, fake_api) -> None:
    fake_api.add_document("passport photo")
    tracker.load()

    with pytest.raises(SubmissionNotReadyError):
        tracker.submit()
    assert fake_api.applied == []


def test_submit_posts_flattened_documents_and_locks(tracker, fake_api, state_store) -> None:
    upload_all(fake_api)
    tracker.load()

    tracker.submit()

    submitted = fake_api.applied[0]
    assert [item["type"] for item in submitted] == ["passport photo", "fee receipt", "hall dues"]
    assert set(submitted[0]) == {"type", "fileName", "mimeType", "fileSize", "fileUrl"}
    assert tracker.submitted is True
    assert tracker.allow_editing is False
    assert state_store.get_flag(submission_flag_key(STUDENT_ID)) is True
    with pytest.raises(DocumentLockedError):
        tracker.upload("school-fees", [pdf()])


def test_submitted_documents_cannot_be_resubmitted(tracker, fake_api) -> None:
    upload_all(fake_api)
    tracker.load()
    tracker.submit()

    with pytest.raises(DocumentLockedError):
        tracker.submit()
    assert len(fake_api.applied) == 1


def test_edit_clears_flag_and_unlocks(tracker, fake_api, state_store) -> None:
    upload_all(fake_api)
    tracker.load()
    tracker.submit()

    tracker.edit()

    assert tracker.allow_editing is True
    assert tracker.submitted is False
    assert state_store.get_flag(submission_flag_key(STUDENT_ID)) is False


def test_server_submitted_field_overrides_local_flag(tracker, fake_api, state_store) -> None:
    state_store.set_flag(submission_flag_key(STUDENT_ID), True)
    fake_api.documents_submitted = False

    tracker.load()

    assert tracker.submitted is False
    assert tracker.allow_editing is True


def test_local_flag_used_when_server_is_silent(tracker, state_store) -> None:
    state_store.set_flag(submission_flag_key(STUDENT_ID), True)

    tracker.load()

    assert tracker.submitted is True
    assert tracker.allow_editing is False


# --- aggregate state ---

def test_all_verified_and_rejected_aggregation(tracker, fake_api) -> None:
    upload_all(fake_api, status="verified")
    tracker.load()
    assert tracker.all_verified is True
    assert tracker.overall_state is VerificationState.VERIFIED

    fake_api.documents[0]["status"] = "rejected"
    tracker.load()
    assert tracker.all_verified is False
    assert tracker.overall_state is VerificationState.REJECTED
