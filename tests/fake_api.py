"""In-memory stand-in for the hostel REST API, served through FastAPI's TestClient."""

from __future__ import annotations

import threading
from typing import Any, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient


TEST_TOKEN = "test-token"
STUDENT_ID = "42"


class FakeFailure(Exception):
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self.body = body


class FakeHostelApi:
    """Mutable server state plus a record of every request received."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str]] = []
        self.headers: list[dict[str, str]] = []
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self.require_auth = True
        self.token = TEST_TOKEN

        self.current_user: dict[str, Any] = {"id": STUDENT_ID, "role": "student"}
        self.profile: dict[str, Any] = {
            "id": STUDENT_ID,
            "matricNumber": "CSC/2021/001",
            "firstname": "Ada",
            "lastname": "Obi",
            "email": "ada@example.edu",
            "phone": "08030000000",
            "department": "Computer Science",
            "level": 300,
        }
        self.registration: Optional[dict[str, Any]] = None
        self.registration_writes: list[tuple[str, dict[str, Any]]] = []
        self.profile_updates: list[dict[str, Any]] = []
        self.registrations: list[dict[str, Any]] = []

        self.pre_check: Optional[dict[str, Any]] = {
            "approvedStudents": 3,
            "availableSpaces": 10,
            "canAllocateAll": True,
            "warnings": [],
            "blockAvailability": [{"block": "A", "availableSpaces": 10, "estimatedStudents": 3}],
        }
        self.status_script: list[dict[str, Any]] = [{"isRunning": False, "progress": 0}]
        self.last_result: Optional[dict[str, Any]] = None
        self.start_count = 0

        self.documents: list[dict[str, Any]] = []
        self.documents_submitted: Optional[bool] = None
        self.next_document_id = 100
        self.applied: list[list[dict[str, Any]]] = []
        self.pending_reviews: list[dict[str, Any]] = []
        self.verifications: list[tuple[str, dict[str, Any]]] = []

        self.rooms: list[dict[str, Any]] = []
        self.blocks: Optional[list[dict[str, Any]]] = []
        self.next_room_id = 1

        self.notifications: list[dict[str, Any]] = []
        self.report: dict[str, Any] = {"roomOccupancy": [{"block": "A", "occupancy": 80}]}
        self.report_params: list[dict[str, str]] = []

        self.app = self._build_app()

    # ------------------------------------------------------------------ #
    # Helpers for tests
    # ------------------------------------------------------------------ #
    def client(self) -> TestClient:
        return TestClient(self.app)

    def count(self, method: str, path: str) -> int:
        with self._lock:
            return sum(1 for call in self.calls if call == (method, path))

    def fail(self, method: str, path: str, status_code: int, body: Any = None) -> None:
        self.failures[(method, path)] = (status_code, body if body is not None else {})

    def add_document(self, doc_type: str, status: str = "pending", **extra: Any) -> dict[str, Any]:
        document = {
            "id": self.next_document_id,
            "fileName": f"{doc_type.replace(' ', '-')}-{self.next_document_id}.pdf",
            "type": doc_type,
            "status": status,
            "fileSize": 1024,
            "mimeType": "application/pdf",
            "fileUrl": f"https://files.example/{self.next_document_id}",
            "uploadedAt": "2026-01-10T09:00:00Z",
        }
        document.update(extra)
        self.next_document_id += 1
        self.documents.append(document)
        return document

    def _next_status(self) -> dict[str, Any]:
        with self._lock:
            if len(self.status_script) > 1:
                return self.status_script.pop(0)
            return self.status_script[0]

    # ------------------------------------------------------------------ #
    # App
    # ------------------------------------------------------------------ #
    def _gate(self, request: Request) -> None:
        method, path = request.method, request.url.path
        with self._lock:
            self.calls.append((method, path))
            self.headers.append(dict(request.headers))
        failure = self.failures.get((method, path))
        if failure is not None:
            raise FakeFailure(*failure)
        is_login = path in ("/auth/student/login", "/auth/admin/login")
        if self.require_auth and not is_login:
            if request.headers.get("authorization") != f"Bearer {self.token}":
                raise FakeFailure(401, {"error": "Unauthorized"})

    def _build_app(self) -> FastAPI:
        app = FastAPI(dependencies=[Depends(self._gate)])
        api = self

        @app.exception_handler(FakeFailure)
        def handle_failure(request: Request, exc: FakeFailure):
            if isinstance(exc.body, (bytes, str)):
                return Response(content=exc.body, status_code=exc.status_code, media_type="text/plain")
            return JSONResponse(exc.body, status_code=exc.status_code)

        # --- auth ---
        @app.post("/auth/student/login")
        def student_login(payload: dict[str, Any]):
            if payload.get("matricNumber") != api.profile["matricNumber"]:
                raise FakeFailure(401, {"error": "Invalid credentials"})
            return {"token": api.token, "student": {"id": STUDENT_ID}}

        @app.post("/auth/admin/login")
        def admin_login(payload: dict[str, Any]):
            if payload.get("password") != "admin-pass":
                raise FakeFailure(401, {"error": "Invalid credentials"})
            return {"token": api.token, "admin": {"id": "1"}}

        @app.get("/auth/me")
        def me():
            return api.current_user

        # --- registration and profile ---
        @app.get("/hostel/registration")
        def get_registration():
            if api.registration is None:
                raise FakeFailure(404, {"error": "Registration not found"})
            return api.registration

        @app.post("/hostel/register")
        def register(payload: dict[str, Any]):
            api.registration_writes.append(("POST", payload))
            api.registration = {"status": "SUBMITTED", "updatedAt": "2026-01-10T09:00:00Z", **payload}
            return {"message": "ok"}

        @app.put("/hostel/registration")
        def update_registration(payload: dict[str, Any]):
            api.registration_writes.append(("PUT", payload))
            return {"message": "ok"}

        @app.get("/students/profile")
        def get_profile():
            return api.profile

        @app.put("/students/profile")
        def put_profile(payload: dict[str, Any]):
            api.profile_updates.append(payload)
            return {"message": "ok"}

        @app.get("/students/registrations/status")
        def registrations():
            return api.registrations

        # --- rooms ---
        @app.get("/rooms")
        def list_rooms():
            return api.rooms

        @app.get("/rooms/blocks")
        def list_blocks():
            if api.blocks is None:
                raise FakeFailure(404, {"error": "Not found"})
            return api.blocks

        @app.post("/rooms")
        def create_room(payload: dict[str, Any]):
            room = {"id": api.next_room_id, "status": "available", "allocations": [], **payload}
            api.next_room_id += 1
            api.rooms.append(room)
            return room

        @app.patch("/rooms/{room_id}")
        def update_room(room_id: str, payload: dict[str, Any]):
            for room in api.rooms:
                if str(room["id"]) == room_id:
                    room.update(payload)
                    return room
            raise FakeFailure(404, {"error": "Room not found"})

        @app.delete("/rooms/{room_id}")
        def delete_room(room_id: str):
            api.rooms = [room for room in api.rooms if str(room["id"]) != room_id]
            return Response(status_code=204)

        # --- allocation ---
        @app.get("/allocation/pre-check")
        def pre_check():
            return api.pre_check

        @app.get("/allocation/status")
        def allocation_status():
            return api._next_status()

        @app.post("/allocation/start")
        def start_allocation():
            api.start_count += 1
            return {"message": "Allocation started"}

        @app.get("/allocation/last-result")
        def last_result():
            return api.last_result

        @app.get("/allocation/report/{result_id}")
        def allocation_report(result_id: str, format: str):
            return Response(
                content=f"report {result_id}".encode(),
                media_type="text/csv" if format == "csv" else "application/pdf",
                headers={"Content-Disposition": f'attachment; filename="server-{result_id}.{format}"'},
            )

        # --- documents ---
        @app.get("/documents/my-documents/{student_id}")
        def my_documents(student_id: str):
            if api.documents_submitted is None:
                return api.documents
            return {"documents": api.documents, "submitted": api.documents_submitted}

        @app.post("/documents/upload/{student_id}")
        def upload(
            student_id: str,
            type_documents: str = Form(...),
            documents: list[UploadFile] = File(...),
        ):
            created = []
            for item in documents:
                content = item.file.read()
                created.append(
                    api.add_document(
                        type_documents,
                        fileName=item.filename,
                        fileSize=len(content),
                        mimeType=item.content_type or "",
                    )
                )
            return created

        @app.delete("/documents/delete/{file_id}")
        def delete_document(file_id: str):
            api.documents = [doc for doc in api.documents if str(doc["id"]) != file_id]
            return {"message": "deleted"}

        @app.get("/documents/download/{file_id}")
        def download_document(file_id: str):
            return Response(content=b"%PDF-fake", media_type="application/pdf")

        @app.post("/registration/apply")
        def apply(payload: dict[str, Any]):
            api.applied.append(payload["documents"])
            return {"message": "submitted"}

        @app.get("/documents/pending")
        def pending():
            return api.pending_reviews

        @app.patch("/documents/verify/{student_id}")
        def verify(student_id: str, payload: dict[str, Any]):
            api.verifications.append((student_id, payload))
            return {"message": "ok"}

        # --- notifications ---
        @app.get("/notifications")
        def notifications():
            return api.notifications

        @app.patch("/notifications/read-all")
        def read_all(payload: dict[str, Any]):
            for item in api.notifications:
                item["isRead"] = True
            return {"message": "ok"}

        @app.patch("/notifications/{notification_id}/read")
        def read_one(notification_id: str, payload: dict[str, Any]):
            for item in api.notifications:
                if str(item["id"]) == notification_id:
                    item["isRead"] = True
            return {"message": "ok"}

        @app.delete("/notifications/{notification_id}")
        def delete_notification(notification_id: str):
            api.notifications = [item for item in api.notifications if str(item["id"]) != notification_id]
            return {"message": "ok"}

        # --- reports ---
        @app.get("/reports")
        def reports(request: Request):
            api.report_params.append(dict(request.query_params))
            return api.report

        @app.get("/reports/export")
        def export(request: Request):
            api.report_params.append(dict(request.query_params))
            return Response(content=b"a,b\n1,2\n", media_type="text/csv")

        return app
