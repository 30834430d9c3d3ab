"""Student registration status, registration form and profile workflow."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

from hostel_portal.domain.models import (
    RegistrationRecord,
    RegistrationStatus,
    RegistrationView,
    StudentProfile,
)
from hostel_portal.domain.timeline import project_registration
from hostel_portal.repository.api_repository import HostelApiRepository, ResourceNotFoundError
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

DEPARTMENTS = (
    "Computer Science",
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "Engineering",
    "Economics",
    "Business Administration",
)
LEVELS = ("100", "200", "300", "400", "500")
PREFERRED_BLOCKS = ("Block A", "Block B", "Block C", "Block D")
EMERGENCY_CONTACT_RELATIONS = ("Parent", "Guardian", "Sibling", "Spouse", "Friend", "Other")

_REQUIRED_FIELDS = {
    "matric_number": "Matric number is required",
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "email": "Email is required",
    "phone": "Phone number is required",
    "department": "Department is required",
    "level": "Level is required",
    "emergency_contact_name": "Emergency contact name is required",
    "emergency_contact_phone": "Emergency contact phone is required",
}

# Statuses for which a save creates a new registration instead of updating one.
_CREATE_STATUSES = {RegistrationStatus.NOT_SUBMITTED, RegistrationStatus.REJECTED}


class RegistrationValidationError(ValueError):
    """Raised when the registration form fails client-side checks."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(errors.values()))
        self.errors = errors


@dataclass(frozen=True)
class RegistrationForm:
    matric_number: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    department: str = ""
    level: str = ""
    preferred_block: str = ""
    special_requests: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    emergency_contact_relation: str = ""


@dataclass(frozen=True)
class RegistrationFormState:
    form: RegistrationForm
    status: RegistrationStatus

    @property
    def editable(self) -> bool:
        return self.status in _CREATE_STATUSES


@dataclass(frozen=True)
class RegistrationStatusPage:
    record: RegistrationRecord
    view: RegistrationView


def validate_registration_form(form: RegistrationForm) -> None:
    values = asdict(form)
    errors = {name: message for name, message in _REQUIRED_FIELDS.items() if not str(values[name]).strip()}
    if form.email.strip() and not _EMAIL_PATTERN.search(form.email):
        errors["email"] = "Please enter a valid email address"
    if form.level.strip() and not form.level.strip().isdigit():
        errors["level"] = "Level must be a number"
    if errors:
        raise RegistrationValidationError(errors)


class RegistrationService:
    """Reads the student's registration and projects it for display."""

    def __init__(self, repository: HostelApiRepository) -> None:
        self._repository = repository

    def load_record(self) -> RegistrationRecord:
        """Current record; a 404 means the student has not applied yet."""
        try:
            return self._repository.get_registration()
        except ResourceNotFoundError:
            logger.info("No registration on file; treating as not submitted")
            return RegistrationRecord.not_submitted()

    def get_status_page(self) -> RegistrationStatusPage:
        record = self.load_record()
        return RegistrationStatusPage(record=record, view=project_registration(record))

    def load_form(self) -> RegistrationFormState:
        profile = self._repository.get_profile()
        form = RegistrationForm(
            matric_number=profile.matric_number,
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=profile.email,
            phone=profile.phone,
            department=profile.department,
            level=profile.level,
        )
        record = self.load_record()
        if record.status is not RegistrationStatus.NOT_SUBMITTED:
            form = replace(
                form,
                preferred_block=record.preferred_block or "",
                special_requests=record.special_requests or "",
                emergency_contact_name=record.emergency_contact_name or "",
                emergency_contact_phone=record.emergency_contact_phone or "",
                emergency_contact_relation=record.emergency_contact_relation or "",
            )
        return RegistrationFormState(form=form, status=record.status)

    def save_form(
        self,
        form: RegistrationForm,
        *,
        current_status: RegistrationStatus,
    ) -> RegistrationStatus:
        """Update the profile, then create or update the registration.

        Returns the status the form should show afterwards.
        """
        validate_registration_form(form)

        self._repository.update_profile(self._profile_payload(form))
        registration_payload = {
            "matricNumber": form.matric_number.strip(),
            "preferredBlock": form.preferred_block,
            "specialRequests": form.special_requests,
            "emergencyContactName": form.emergency_contact_name.strip(),
            "emergencyContactPhone": form.emergency_contact_phone.strip(),
            "emergencyContactRelation": form.emergency_contact_relation,
        }
        if current_status in _CREATE_STATUSES:
            self._repository.create_registration(registration_payload)
            logger.info("Registration submitted for %s", form.matric_number)
            return RegistrationStatus.SUBMITTED
        self._repository.update_registration(registration_payload)
        logger.info("Registration updated for %s", form.matric_number)
        return current_status

    def get_profile(self) -> StudentProfile:
        return self._repository.get_profile()

    def update_profile(self, changes: dict[str, Any]) -> None:
        self._repository.update_profile(changes)

    @staticmethod
    def _profile_payload(form: RegistrationForm) -> dict[str, Optional[Any]]:
        return {
            "firstname": form.first_name.strip(),
            "lastname": form.last_name.strip(),
            "email": form.email.strip(),
            "phone": form.phone.strip(),
            "department": form.department,
            "level": int(form.level.strip()),
        }
