"""Admin reports, the registrations overview, and tabular exports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from hostel_portal.domain.models import (
    AllocationResult,
    RegistrationSummary,
    ReportArtifact,
    ReportData,
)
from hostel_portal.repository.api_repository import HostelApiRepository, ResourceNotFoundError
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

REPORT_PERIODS = ("week", "month", "quarter", "year", "custom")
EXPORT_FORMATS = ("csv", "pdf")

REGISTRATION_COLUMNS = ["Name", "Matric Number", "Level", "Status", "Email", "Phone", "Submission Date"]
ALLOCATION_COLUMNS = ["Student", "Matric Number", "Block", "Room"]


class ReportUnavailableError(Exception):
    """Raised when the configured report endpoint does not exist."""


@dataclass(frozen=True)
class ReportFilters:
    period: str = "month"
    level: str = "all"
    block: str = "all"
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.period not in REPORT_PERIODS:
            raise ValueError(f"period must be one of {REPORT_PERIODS}")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")

    def to_params(self) -> dict[str, str]:
        params = {"period": self.period, "level": self.level, "block": self.block}
        if self.period == "custom" and self.start_date is not None:
            params["startDate"] = self.start_date.isoformat()
            if self.end_date is not None:
                params["endDate"] = self.end_date.isoformat()
        return params


def report_frame(rows: Iterable[dict]) -> pd.DataFrame:
    return pd.DataFrame(list(rows))


def registrations_frame(summaries: Iterable[RegistrationSummary]) -> pd.DataFrame:
    rows = [
        {
            "Name": f"{item.first_name} {item.last_name}".strip(),
            "Matric Number": item.matric_number,
            "Level": item.level,
            "Status": item.status,
            "Email": item.email,
            "Phone": item.phone,
            "Submission Date": item.submission_date.date().isoformat() if item.submission_date else "",
        }
        for item in summaries
    ]
    return pd.DataFrame(rows, columns=REGISTRATION_COLUMNS)


def allocation_frame(result: AllocationResult) -> pd.DataFrame:
    rows = [
        {
            "Student": entry.student_name,
            "Matric Number": entry.matric_number,
            "Block": entry.block,
            "Room": entry.room_number,
        }
        for entry in result.allocations
    ]
    return pd.DataFrame(rows, columns=ALLOCATION_COLUMNS)


def frame_to_csv(frame: pd.DataFrame) -> bytes:
    return frame.to_csv(index=False).encode("utf-8")


class ReportService:
    def __init__(self, repository: HostelApiRepository) -> None:
        self._repository = repository

    def get_report(self, filters: Optional[ReportFilters] = None) -> ReportData:
        filters = filters or ReportFilters()
        try:
            return self._repository.get_report(filters.to_params())
        except ResourceNotFoundError as exc:
            logger.warning("Reports endpoint returned 404: %s", exc)
            raise ReportUnavailableError(
                "Reports endpoint not found. Please contact your system administrator."
            ) from exc

    def export_report(self, filters: Optional[ReportFilters], report_format: str) -> ReportArtifact:
        fmt = report_format.lower()
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"report format must be one of {EXPORT_FORMATS}")
        filters = filters or ReportFilters()
        params = {"format": fmt, **filters.to_params()}
        try:
            return self._repository.export_report(
                params,
                fallback_name=f"hostel-report-{filters.period}-{date.today().isoformat()}.{fmt}",
            )
        except ResourceNotFoundError as exc:
            logger.warning("Report export endpoint returned 404: %s", exc)
            raise ReportUnavailableError("Export endpoint not available") from exc

    def list_registrations(
        self,
        search: str = "",
        status: Optional[str] = None,
        level: Optional[str] = None,
    ) -> list[RegistrationSummary]:
        term = search.strip().lower()
        return [
            item
            for item in self._repository.list_registration_statuses()
            if (
                not term
                or term in item.first_name.lower()
                or term in item.last_name.lower()
                or term in item.matric_number.lower()
            )
            and (status in (None, "all") or item.status.lower() == status.lower())
            and (level in (None, "all") or item.level == level)
        ]
