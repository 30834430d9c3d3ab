"""Repository layer responsible for all access to the hostel REST API."""

from __future__ import annotations

import re
from typing import Any, Callable, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import ValidationError

from hostel_portal.domain.constraints import UploadCandidate
from hostel_portal.domain.models import (
    AllocationJob,
    AllocationResult,
    Block,
    DocumentFile,
    Notification,
    PendingReview,
    PreAllocationCheck,
    RegistrationRecord,
    RegistrationSummary,
    ReportArtifact,
    ReportData,
    Room,
    StudentDocuments,
    StudentProfile,
)
from hostel_portal.repository.schemas import (
    AllocationResultPayload,
    AllocationStatusPayload,
    ApiPayload,
    BlockPayload,
    DocumentFilePayload,
    LoginPayload,
    NotificationPayload,
    PendingReviewPayload,
    PreAllocationCheckPayload,
    ProfilePayload,
    RegistrationPayload,
    RegistrationSummaryPayload,
    ReportPayload,
    RoomPayload,
)
from hostel_portal.utils.config import Settings, get_settings
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=ApiPayload)

_FILENAME_PATTERN = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


class ApiError(Exception):
    """Base failure for any request to the hostel API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiTransportError(ApiError):
    """Raised when the API cannot be reached at all."""


class AuthenticationRequiredError(ApiError):
    """Raised on 401; the session must log in again."""


class PermissionDeniedError(ApiError):
    """Raised on 403."""


class ResourceNotFoundError(ApiError):
    """Raised on 404. Callers often translate this into an empty default."""


class ApiBusinessError(ApiError):
    """Raised for any other non-success response, carrying the server's message."""


class PayloadValidationError(ApiError):
    """Raised when a successful response does not match the expected shape."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return f"Server Error: {response.status_code} {response.reason_phrase}".strip()


def _filename_from(response: httpx.Response, fallback: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    match = _FILENAME_PATTERN.search(disposition)
    return match.group(1).strip() if match else fallback


class HostelApiRepository:
    """Wraps an ``httpx.Client`` so services never deal with HTTP details.

    Every request carries the current bearer token from ``token_provider``.
    Non-success responses are mapped onto the ``ApiError`` hierarchy and
    successful bodies are normalised through ``repository.schemas``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._token_provider = token_provider or (lambda: None)
        self._client = client or httpx.Client(
            base_url=self._settings.api_base_url,
            timeout=self._settings.api_timeout_seconds,
        )

    def set_token_provider(self, token_provider: Callable[[], Optional[str]]) -> None:
        self._token_provider = token_provider

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self._settings.api_version:
            headers["Accept-Version"] = self._settings.api_version
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        files: Optional[list[tuple[str, tuple[str, bytes, str]]]] = None,
    ) -> httpx.Response:
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            logger.warning("Transport failure on %s %s: %s", method, path, exc)
            raise ApiTransportError(f"Could not reach the hostel API: {exc}") from exc

        if response.is_success:
            return response

        message = _error_message(response)
        status_code = response.status_code
        if status_code == 401:
            raise AuthenticationRequiredError(message, status_code)
        if status_code == 403:
            raise PermissionDeniedError(message, status_code)
        if status_code == 404:
            raise ResourceNotFoundError(message, status_code)
        logger.info("API rejected %s %s with %s: %s", method, path, status_code, message)
        raise ApiBusinessError(message, status_code)

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._send(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PayloadValidationError(
                f"Expected JSON from {method} {path}", response.status_code
            ) from exc

    def _bytes(self, path: str, *, params: Optional[dict[str, Any]], fallback_name: str) -> ReportArtifact:
        response = self._send("GET", path, params=params)
        return ReportArtifact(
            filename=_filename_from(response, fallback_name),
            content_type=response.headers.get("content-type", "application/octet-stream"),
            content=response.content,
        )

    @staticmethod
    def _parse(model: Type[PayloadT], payload: Any, path: str) -> PayloadT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise PayloadValidationError(f"Unexpected payload from {path}: {exc}") from exc

    @classmethod
    def _parse_list(cls, model: Type[PayloadT], payload: Any, path: str) -> list[PayloadT]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise PayloadValidationError(f"Expected a list from {path}")
        return [cls._parse(model, item, path) for item in payload]

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #
    def login_student(self, matric_number: str, email: str) -> LoginPayload:
        path = "/auth/student/login"
        payload = self._json("POST", path, json={"matricNumber": matric_number, "email": email})
        return self._parse(LoginPayload, payload, path)

    def login_admin(self, email: str, password: str) -> LoginPayload:
        path = "/auth/admin/login"
        payload = self._json("POST", path, json={"email": email, "password": password})
        return self._parse(LoginPayload, payload, path)

    def get_current_user(self) -> dict[str, Any]:
        payload = self._json("GET", "/auth/me")
        return payload if isinstance(payload, dict) else {}

    # ------------------------------------------------------------------ #
    # Registration and profile
    # ------------------------------------------------------------------ #
    def get_registration(self) -> RegistrationRecord:
        path = "/hostel/registration"
        payload = self._json("GET", path)
        if payload is None:
            raise ResourceNotFoundError("No registration found", 404)
        return self._parse(RegistrationPayload, payload, path).to_domain()

    def create_registration(self, payload: dict[str, Any]) -> None:
        self._json("POST", "/hostel/register", json=payload)

    def update_registration(self, payload: dict[str, Any]) -> None:
        self._json("PUT", "/hostel/registration", json=payload)

    def get_profile(self) -> StudentProfile:
        path = "/students/profile"
        return self._parse(ProfilePayload, self._json("GET", path), path).to_domain()

    def update_profile(self, payload: dict[str, Any]) -> None:
        self._json("PUT", "/students/profile", json=payload)

    def list_registration_statuses(self) -> list[RegistrationSummary]:
        path = "/students/registrations/status"
        return [
            item.to_domain()
            for item in self._parse_list(RegistrationSummaryPayload, self._json("GET", path), path)
        ]

    # ------------------------------------------------------------------ #
    # Rooms
    # ------------------------------------------------------------------ #
    def list_rooms(self) -> list[Room]:
        path = "/rooms"
        return [item.to_domain() for item in self._parse_list(RoomPayload, self._json("GET", path), path)]

    def list_blocks(self) -> list[Block]:
        path = self._settings.blocks_endpoint
        return [item.to_domain() for item in self._parse_list(BlockPayload, self._json("GET", path), path)]

    def create_room(self, payload: dict[str, Any]) -> Room:
        path = "/rooms"
        return self._parse(RoomPayload, self._json("POST", path, json=payload), path).to_domain()

    def update_room(self, room_id: str, payload: dict[str, Any]) -> Room:
        path = f"/rooms/{room_id}"
        return self._parse(RoomPayload, self._json("PATCH", path, json=payload), path).to_domain()

    def delete_room(self, room_id: str) -> None:
        self._send("DELETE", f"/rooms/{room_id}")

    # ------------------------------------------------------------------ #
    # Allocation
    # ------------------------------------------------------------------ #
    def get_pre_allocation_check(self) -> Optional[PreAllocationCheck]:
        path = "/allocation/pre-check"
        payload = self._json("GET", path)
        if payload is None:
            return None
        return self._parse(PreAllocationCheckPayload, payload, path).to_domain()

    def get_allocation_status(self) -> AllocationJob:
        path = "/allocation/status"
        payload = self._json("GET", path)
        if payload is None:
            return AllocationJob.idle()
        return self._parse(AllocationStatusPayload, payload, path).to_domain()

    def start_allocation(self) -> None:
        self._json("POST", "/allocation/start")

    def get_last_allocation_result(self) -> Optional[AllocationResult]:
        path = "/allocation/last-result"
        payload = self._json("GET", path)
        if not payload:
            return None
        return self._parse(AllocationResultPayload, payload, path).to_domain()

    def download_allocation_report(self, result_id: str, report_format: str) -> ReportArtifact:
        return self._bytes(
            f"/allocation/report/{result_id}",
            params={"format": report_format},
            fallback_name=f"allocation-report-{result_id}.{report_format}",
        )

    # ------------------------------------------------------------------ #
    # Documents
    # ------------------------------------------------------------------ #
    def list_student_documents(self, student_id: str) -> StudentDocuments:
        path = f"/documents/my-documents/{student_id}"
        payload = self._json("GET", path)
        submitted: Optional[bool] = None
        if isinstance(payload, dict):
            raw_submitted = payload.get("submitted")
            submitted = bool(raw_submitted) if raw_submitted is not None else None
            payload = payload.get("documents")
        files = tuple(
            item.to_domain() for item in self._parse_list(DocumentFilePayload, payload, path)
        )
        return StudentDocuments(files=files, submitted=submitted)

    def upload_documents(
        self,
        student_id: str,
        api_type: str,
        files: Sequence[UploadCandidate],
    ) -> list[DocumentFile]:
        path = f"/documents/upload/{student_id}"
        multipart = [
            ("documents", (item.file_name, item.content, item.mime_type)) for item in files
        ]
        payload = self._json("POST", path, data={"type_documents": api_type}, files=multipart)
        if isinstance(payload, dict):
            payload = payload.get("documents", [payload])
        return [item.to_domain() for item in self._parse_list(DocumentFilePayload, payload, path)]

    def delete_document(self, file_id: str) -> None:
        self._send("DELETE", f"/documents/delete/{file_id}")

    def download_document(self, file_id: str) -> ReportArtifact:
        return self._bytes(
            f"/documents/download/{file_id}",
            params=None,
            fallback_name=f"document-{file_id}",
        )

    def apply_registration(self, documents: list[dict[str, Any]]) -> None:
        self._json("POST", "/registration/apply", json={"documents": documents})

    def list_pending_reviews(self) -> list[PendingReview]:
        path = "/documents/pending"
        return [
            item.to_domain()
            for item in self._parse_list(PendingReviewPayload, self._json("GET", path), path)
        ]

    def verify_document(self, student_id: str, document_type: str, status: str) -> None:
        self._json(
            "PATCH",
            f"/documents/verify/{student_id}",
            json={"documentType": document_type, "status": status},
        )

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #
    def list_notifications(self) -> list[Notification]:
        path = "/notifications"
        return [
            item.to_domain()
            for item in self._parse_list(NotificationPayload, self._json("GET", path), path)
        ]

    def mark_notification_read(self, notification_id: str) -> None:
        self._json("PATCH", f"/notifications/{notification_id}/read", json={})

    def mark_all_notifications_read(self) -> None:
        self._json("PATCH", "/notifications/read-all", json={})

    def delete_notification(self, notification_id: str) -> None:
        self._send("DELETE", f"/notifications/{notification_id}")

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #
    def get_report(self, params: dict[str, str]) -> ReportData:
        path = self._settings.reports_endpoint
        return self._parse(ReportPayload, self._json("GET", path, params=params) or {}, path).to_domain()

    def export_report(self, params: dict[str, str], fallback_name: str) -> ReportArtifact:
        return self._bytes(
            self._settings.reports_export_endpoint,
            params=params,
            fallback_name=fallback_name,
        )
