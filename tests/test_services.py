"""Tests for registration, review, rooms, notifications, reports and auth services."""

from __future__ import annotations

import base64
import json
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from fake_api import STUDENT_ID, TEST_TOKEN
from hostel_portal.domain.models import (
    AllocationEntry,
    AllocationOutcome,
    AllocationResult,
    RegistrationStatus,
    VerificationState,
)
from hostel_portal.repository.api_repository import AuthenticationRequiredError, HostelApiRepository
from hostel_portal.services.auth_service import (
    ROLE_ADMIN,
    AuthService,
    AuthenticationError,
    NotLoggedInError,
    decode_token_claims,
)
from hostel_portal.services.notification_service import NotificationService
from hostel_portal.services.registration_service import (
    RegistrationForm,
    RegistrationService,
    RegistrationValidationError,
)
from hostel_portal.services.report_service import (
    ReportFilters,
    ReportService,
    ReportUnavailableError,
    allocation_frame,
    frame_to_csv,
    registrations_frame,
)
from hostel_portal.services.room_service import RoomForm, RoomService, RoomValidationError
from hostel_portal.services.verification_service import VerificationService, review_state


def valid_form(**overrides) -> RegistrationForm:
    defaults = {
        "matric_number": "CSC/2021/001",
        "first_name": "Ada",
        "last_name": "Obi",
        "email": "ada@example.edu",
        "phone": "08030000000",
        "department": "Computer Science",
        "level": "300",
        "preferred_block": "Block A",
        "emergency_contact_name": "Chidi Obi",
        "emergency_contact_phone": "08031111111",
        "emergency_contact_relation": "Parent",
    }
    defaults.update(overrides)
    return RegistrationForm(**defaults)


def jwt_with(claims: dict) -> str:
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"header.{payload}.signature"


# --- registration ---

def test_status_page_defaults_to_not_submitted_on_404(repository) -> None:
    page = RegistrationService(repository).get_status_page()

    assert page.record.status is RegistrationStatus.NOT_SUBMITTED
    assert page.view.progress == 0


def test_save_form_creates_registration_when_not_submitted(repository, fake_api) -> None:
    service = RegistrationService(repository)
    state = service.load_form()

    status = service.save_form(valid_form(), current_status=state.status)

    assert status is RegistrationStatus.SUBMITTED
    assert fake_api.profile_updates[0]["level"] == 300
    assert fake_api.registration_writes[0][0] == "POST"
    assert fake_api.registration_writes[0][1]["emergencyContactName"] == "Chidi Obi"


def test_save_form_updates_existing_registration(repository, fake_api) -> None:
    service = RegistrationService(repository)

    status = service.save_form(valid_form(), current_status=RegistrationStatus.APPROVED)

    assert status is RegistrationStatus.APPROVED
    assert fake_api.registration_writes[0][0] == "PUT"


def test_invalid_form_sends_nothing(repository, fake_api) -> None:
    service = RegistrationService(repository)

    with pytest.raises(RegistrationValidationError) as excinfo:
        service.save_form(valid_form(email="not-an-email", first_name=""), current_status=RegistrationStatus.NOT_SUBMITTED)

    assert set(excinfo.value.errors) == {"email", "first_name"}
    assert fake_api.profile_updates == []


def test_load_form_prefills_from_profile_and_registration(repository, fake_api) -> None:
    fake_api.registration = {
        "status": "REJECTED",
        "updatedAt": "2026-01-15T10:30:00Z",
        "preferredBlock": "Block C",
        "emergencyContactName": "Chidi Obi",
    }

    state = RegistrationService(repository).load_form()

    assert state.editable is True
    assert state.form.first_name == "Ada"
    assert state.form.level == "300"
    assert state.form.preferred_block == "Block C"


# --- verification ---

def test_verify_updates_review_state(repository, fake_api) -> None:
    fake_api.pending_reviews = [
        {
            "id": 7,
            "firstName": "Ada",
            "lastName": "Obi",
            "matricNumber": "CSC/1",
            "level": 300,
            "documents": {"passportPhoto": {"verified": None}, "schoolFeesReceipt": {"verified": True}},
        }
    ]
    service = VerificationService(repository)
    service.load()

    review = service.verify("7", "passportPhoto", VerificationState.VERIFIED)

    assert fake_api.verifications == [("7", {"documentType": "passportPhoto", "status": "verified"})]
    assert review_state(review) is VerificationState.VERIFIED
    assert service.counts()["verified"] == 1


def test_verify_all_and_filters(repository, fake_api) -> None:
    fake_api.pending_reviews = [
        {"id": 1, "firstName": "Ada", "lastName": "Obi", "matricNumber": "CSC/1", "level": 100,
         "documents": {"passportPhoto": {"verified": None}, "accommodationReceipt": {"verified": None}}},
        {"id": 2, "firstName": "Bola", "lastName": "Ade", "matricNumber": "MTH/2", "level": 200,
         "documents": {"passportPhoto": {"verified": True}}},
    ]
    service = VerificationService(repository)
    service.load()

    assert [review.student_id for review in service.filter(search="mth")] == ["2"]
    assert [review.student_id for review in service.filter(level="100")] == ["1"]
    assert service.filter()[0].student_id == "1"

    review = service.verify_all("1", VerificationState.REJECTED)

    assert review_state(review) is VerificationState.REJECTED
    assert len(fake_api.verifications) == 2
    with pytest.raises(ValueError):
        service.verify("1", "passportPhoto", VerificationState.PENDING)


# --- rooms ---

def test_room_crud_and_summary(repository, fake_api) -> None:
    service = RoomService(repository)
    service.load()

    room = service.create_room(RoomForm(block="A", room_number="101", capacity=4))
    service.update_room(room.id, RoomForm(block="A", room_number="101", capacity=2))

    assert service.rooms[0].capacity == 2
    assert service.summary().total_capacity == 2

    service.delete_room(room.id)
    assert service.rooms == []


def test_blocks_missing_is_tolerated(repository, fake_api) -> None:
    fake_api.blocks = None
    fake_api.rooms = [{"id": 1, "block": "B", "roomNumber": "2", "capacity": 3, "allocations": [{"id": 5}]}]
    service = RoomService(repository)

    service.load()

    assert service.blocks == []
    summary = service.summary()
    assert (summary.total_rooms, summary.total_capacity, summary.occupied_capacity) == (1, 3, 1)
    assert summary.available_capacity == 2
    assert service.rooms_in_block("A") == []


def test_blocks_summary_preferred_when_available(repository, fake_api) -> None:
    fake_api.blocks = [
        {"name": "A", "totalRooms": 10, "totalCapacity": 40, "occupiedCapacity": 30, "availableCapacity": 10},
        {"name": "B", "totalRooms": 5, "totalCapacity": 20, "occupiedCapacity": 0, "availableCapacity": 20},
    ]
    service = RoomService(repository)
    service.load()

    summary = service.summary()

    assert (summary.total_rooms, summary.total_capacity, summary.occupied_capacity) == (15, 60, 30)
    assert summary.occupancy_rate == 50.0


@pytest.mark.parametrize(
    "form",
    [RoomForm(block="", room_number="1"), RoomForm(block="A", room_number=" "), RoomForm("A", "1", 0)],
)
def test_invalid_room_form_sends_nothing(repository, fake_api, form) -> None:
    with pytest.raises(RoomValidationError):
        RoomService(repository).create_room(form)
    assert fake_api.count("POST", "/rooms") == 0


# --- notifications ---

def test_notification_counts_and_grouping(repository, fake_api) -> None:
    now = datetime.now(timezone.utc)
    fake_api.notifications = [
        {"id": 1, "title": "Room ready", "message": "Block A", "priority": "HIGH", "createdAt": now.isoformat()},
        {"id": 2, "title": "Reminder", "message": "Pay dues", "priority": "low",
         "createdAt": (now - timedelta(days=3)).isoformat()},
        {"id": 3, "title": "Old news", "message": "Done", "priority": "high", "isRead": True,
         "createdAt": (now - timedelta(days=5)).isoformat()},
    ]
    service = NotificationService(repository)
    service.load()

    assert service.unread_count == 2
    assert service.important_count == 1
    today, earlier = service.group_by_day(service.notifications, today=now.astimezone().date())
    assert [item.id for item in today] == ["1"]
    assert [item.id for item in earlier] == ["2", "3"]
    assert [item.id for item in service.search("dues")] == ["2"]

    service.mark_read("1")
    assert service.important_count == 0
    service.mark_all_read()
    assert service.unread_count == 0
    service.delete("2")
    assert [item.id for item in service.notifications] == ["1", "3"]
    assert fake_api.count("PATCH", "/notifications/read-all") == 1


# --- reports ---

def test_report_uses_configured_endpoint_with_filters(settings, fake_api) -> None:
    repo = HostelApiRepository(
        settings=replace(settings, reports_endpoint="/admin/reports"),
        token_provider=lambda: TEST_TOKEN,
        client=fake_api.client(),
    )

    with pytest.raises(ReportUnavailableError, match="Reports endpoint not found"):
        ReportService(repo).get_report()
    assert fake_api.count("GET", "/reports") == 0


def test_report_params_include_custom_dates(repository, fake_api) -> None:
    filters = ReportFilters(period="custom", level="300", start_date=date(2026, 1, 1), end_date=date(2026, 1, 31))

    report = ReportService(repository).get_report(filters)

    assert report.room_occupancy[0]["block"] == "A"
    assert fake_api.report_params[-1] == {
        "period": "custom",
        "level": "300",
        "block": "all",
        "startDate": "2026-01-01",
        "endDate": "2026-01-31",
    }


def test_report_filters_validate() -> None:
    with pytest.raises(ValueError):
        ReportFilters(period="decade")
    with pytest.raises(ValueError):
        ReportFilters(period="custom", start_date=date(2026, 2, 1), end_date=date(2026, 1, 1))


def test_export_report_sends_format(repository, fake_api) -> None:
    artifact = ReportService(repository).export_report(ReportFilters(), "csv")

    assert artifact.content == b"a,b\n1,2\n"
    assert fake_api.report_params[-1]["format"] == "csv"


def test_registrations_overview_filters_and_csv(repository, fake_api) -> None:
    fake_api.registrations = [
        {"id": 1, "firstName": "Ada", "lastName": "Obi", "matricNumber": "CSC/1", "level": 300,
         "phoneNumber": "080", "email": "a@x.edu", "status": "Submitted", "submissionDate": "2026-01-02T08:00:00Z"},
        {"id": 2, "firstName": "Bola", "lastName": "Ade", "matricNumber": "MTH/2", "level": 100,
         "email": "b@x.edu", "status": "Unregistered"},
    ]
    service = ReportService(repository)

    submitted = service.list_registrations(status="submitted")
    frame = registrations_frame(submitted)

    assert [item.id for item in submitted] == ["1"]
    assert frame.loc[0, "Name"] == "Ada Obi"
    assert frame.loc[0, "Submission Date"] == "2026-01-02"
    assert frame_to_csv(frame).decode().splitlines()[0] == (
        "Name,Matric Number,Level,Status,Email,Phone,Submission Date"
    )
    assert [item.id for item in service.list_registrations(search="bola")] == ["2"]


def test_allocation_frame_lists_assignments() -> None:
    result = AllocationResult(
        id="1",
        timestamp=datetime(2026, 2, 1, tzinfo=timezone.utc),
        status=AllocationOutcome.COMPLETED,
        students_allocated=1,
        students_unallocated=0,
        total_students=1,
        allocations=(AllocationEntry("9", "Ada Obi", "CSC/1", "A", "101"),),
    )

    frame = allocation_frame(result)

    assert list(frame.columns) == ["Student", "Matric Number", "Block", "Room"]
    assert frame.iloc[0].tolist() == ["Ada Obi", "CSC/1", "A", "101"]


# --- auth ---

def test_login_persists_session_across_instances(settings, fake_api, state_store) -> None:
    repo = HostelApiRepository(settings=settings, client=fake_api.client())
    auth = AuthService(repository=repo, state_store=state_store)

    identity = auth.login_student("CSC/2021/001", "ada@example.edu")
    repo.get_profile()

    assert identity.user_id == STUDENT_ID
    restored = AuthService(repository=repo, state_store=state_store)
    assert restored.identity == identity
    assert fake_api.headers[-1]["authorization"] == f"Bearer {TEST_TOKEN}"


def test_failed_login_surfaces_server_message(repository, state_store) -> None:
    auth = AuthService(repository=repository, state_store=state_store)

    with pytest.raises(AuthenticationRequiredError, match="Invalid credentials"):
        auth.login_admin("admin@example.edu", "wrong")
    with pytest.raises(AuthenticationError):
        auth.login_student("", "")
    assert auth.identity is None


def test_admin_login_and_logout(repository, state_store) -> None:
    auth = AuthService(repository=repository, state_store=state_store)

    identity = auth.login_admin("admin@example.edu", "admin-pass")
    assert identity.role == ROLE_ADMIN

    auth.logout()
    assert state_store.load_session() is None
    with pytest.raises(NotLoggedInError):
        auth.require_identity()


def test_student_id_read_from_token_claims(repository, state_store) -> None:
    auth = AuthService(repository=repository, state_store=state_store)
    auth.use_token(jwt_with({"studentId": 88}))

    assert auth.resolve_student_id() == "88"
    assert decode_token_claims("not-a-jwt") == {}
