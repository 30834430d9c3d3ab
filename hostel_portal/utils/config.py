"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Immutable configuration snapshot.

    Tests derive variants with ``dataclasses.replace`` instead of mutating
    environment variables.
    """

    app_name: str = "Hostel Portal"
    app_version: str = "1.0.0"
    api_base_url: str = "http://127.0.0.1:5000/api"
    api_timeout_seconds: float = 15.0
    api_version: str = ""
    allocation_poll_interval_seconds: float = 2.0
    state_database_path: Path = PROJECT_ROOT / "data" / "portal_state.db"
    reports_endpoint: str = "/reports"
    reports_export_endpoint: str = "/reports/export"
    blocks_endpoint: str = "/rooms/blocks"
    log_level: str = "INFO"
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8501

    def __post_init__(self) -> None:
        if self.api_timeout_seconds <= 0:
            raise ValueError("api_timeout_seconds must be > 0")
        if self.allocation_poll_interval_seconds <= 0:
            raise ValueError("allocation_poll_interval_seconds must be > 0")
        if not 0 < self.dashboard_port < 65536:
            raise ValueError("dashboard_port must be a valid TCP port")
        for endpoint in (self.reports_endpoint, self.reports_export_endpoint, self.blocks_endpoint):
            if not endpoint.startswith("/"):
                raise ValueError(f"endpoint paths must start with '/', got {endpoint!r}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    state_db = os.getenv("HOSTEL_STATE_DB")
    return Settings(
        app_name=os.getenv("HOSTEL_APP_NAME", "Hostel Portal"),
        app_version=os.getenv("HOSTEL_APP_VERSION", "1.0.0"),
        api_base_url=os.getenv("HOSTEL_API_BASE_URL", "http://127.0.0.1:5000/api").rstrip("/"),
        api_timeout_seconds=_env_float("HOSTEL_API_TIMEOUT_SECONDS", 15.0),
        api_version=os.getenv("HOSTEL_API_VERSION", ""),
        allocation_poll_interval_seconds=_env_float("HOSTEL_ALLOCATION_POLL_INTERVAL", 2.0),
        state_database_path=(
            Path(state_db) if state_db else PROJECT_ROOT / "data" / "portal_state.db"
        ),
        reports_endpoint=os.getenv("HOSTEL_REPORTS_ENDPOINT", "/reports"),
        reports_export_endpoint=os.getenv("HOSTEL_REPORTS_EXPORT_ENDPOINT", "/reports/export"),
        blocks_endpoint=os.getenv("HOSTEL_BLOCKS_ENDPOINT", "/rooms/blocks"),
        log_level=os.getenv("HOSTEL_LOG_LEVEL", "INFO"),
        dashboard_host=os.getenv("HOSTEL_DASHBOARD_HOST", "127.0.0.1"),
        dashboard_port=_env_int("HOSTEL_DASHBOARD_PORT", 8501),
    )
