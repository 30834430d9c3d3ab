"""
portal.py: client wiring for the hostel portal.

Builds the repository, local state store and every service with explicit
dependency injection. The Streamlit console and scripts obtain their objects
from ``create_portal()``; nothing here talks to the network at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.repository.state_store import LocalStateStore
from hostel_portal.services.allocation_service import AllocationTriggerController
from hostel_portal.services.auth_service import AuthService
from hostel_portal.services.document_service import DocumentVerificationTracker
from hostel_portal.services.notification_service import NotificationService
from hostel_portal.services.registration_service import RegistrationService
from hostel_portal.services.report_service import ReportService
from hostel_portal.services.room_service import RoomService
from hostel_portal.services.verification_service import VerificationService
from hostel_portal.utils.config import Settings, get_settings
from hostel_portal.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


@dataclass
class Portal:
    settings: Settings
    state_store: LocalStateStore
    repository: HostelApiRepository
    auth: AuthService
    registration: RegistrationService
    allocation: AllocationTriggerController
    documents: DocumentVerificationTracker
    verification: VerificationService
    rooms: RoomService
    notifications: NotificationService
    reports: ReportService

    def close(self) -> None:
        self.allocation.stop()
        self.repository.close()


def create_portal(
    settings: Optional[Settings] = None,
    client: Optional[httpx.Client] = None,
) -> Portal:
    """
    Build and wire the client.

    Order matters: the state store schema must exist before the auth service
    reads a stored session, and the auth service installs the token provider
    on the repository.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    state_store = LocalStateStore(settings)
    state_store.initialize_database()

    repository = HostelApiRepository(settings=settings, client=client)
    auth = AuthService(repository=repository, state_store=state_store)

    portal = Portal(
        settings=settings,
        state_store=state_store,
        repository=repository,
        auth=auth,
        registration=RegistrationService(repository),
        allocation=AllocationTriggerController(repository, settings),
        documents=DocumentVerificationTracker(repository, auth, state_store),
        verification=VerificationService(repository),
        rooms=RoomService(repository),
        notifications=NotificationService(repository),
        reports=ReportService(repository),
    )
    logger.info("Portal ready against %s", settings.api_base_url)
    return portal
