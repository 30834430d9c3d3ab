"""Process-wide logging for the client, the console and the status poller."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from hostel_portal.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"

# Third-party loggers that are chatty at INFO: one line per HTTP request, or per
# file-watcher tick under `streamlit run`.
QUIET_LOGGERS = ("httpx", "httpcore", "watchdog")

_configured = False


def resolve_level(level: Optional[str]) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown names give INFO."""
    name = (level or "").strip().upper()
    resolved = logging.getLevelName(name) if name else logging.INFO
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root handler once per process.

    Streamlit re-executes the console script on every interaction, so repeat
    calls are no-ops.
    """
    global _configured
    if _configured:
        return

    requested = level or get_settings().log_level
    logging.basicConfig(level=resolve_level(requested), format=LOG_FORMAT, stream=sys.stdout)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True

    if resolve_level(requested) == logging.INFO and requested.strip().upper() != "INFO":
        logging.getLogger(__name__).warning("Unknown log level %r; using INFO", requested)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
