"""Allocation trigger workflow: pre-check, start, poll, and collect the result.

The allocation itself runs on the server. This module only drives its
lifecycle from the client side::

    IDLE --start()--> RUNNING --status.is_running == False--> COMPLETED
      ^                                                           |
      +------------------------- start() -------------------------+
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Callable, Optional, TypeVar

from hostel_portal.domain.models import (
    AllocationJob,
    AllocationResult,
    PreAllocationCheck,
    ReportArtifact,
)
from hostel_portal.repository.api_repository import ApiError, HostelApiRepository
from hostel_portal.utils.config import Settings, get_settings
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

REPORT_FORMATS = {
    "csv": "text/csv",
    "pdf": "application/pdf",
}


class AllocationStartNotAllowedError(Exception):
    """Raised when start is requested while the precondition does not hold."""


class AllocationReportError(Exception):
    """Raised when a report cannot be produced for the current result."""


class ControllerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class StatusPoller:
    """Cancellable fixed-interval loop running on a daemon thread.

    ``callback`` returns ``True`` to keep polling and ``False`` to stop. The
    first call happens one interval after ``start()``.
    """

    def __init__(
        self,
        callback: Callable[[], bool],
        interval_seconds: float,
        name: str = "allocation-status-poller",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._callback = callback
        self._interval = interval_seconds
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> bool:
        """Start the loop; returns ``False`` if it is already running."""
        if self.is_active:
            return False
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        stop_event = self._stop_event
        while not stop_event.wait(self._interval):
            try:
                keep_going = self._callback()
            except Exception:  # pragma: no cover - callback already guards API errors
                logger.exception("Poll callback failed; continuing")
                continue
            if not keep_going:
                stop_event.set()
                break


@dataclass(frozen=True)
class AllocationSnapshot:
    """Consistent copy of controller state for rendering."""

    state: ControllerState
    job: AllocationJob
    pre_check: Optional[PreAllocationCheck]
    last_result: Optional[AllocationResult]
    last_error: Optional[str]
    can_start: bool
    start_disabled_reason: Optional[str]
    is_polling: bool


class AllocationTriggerController:
    """Client-side state machine around the server's allocation job."""

    def __init__(
        self,
        repository: HostelApiRepository,
        settings: Optional[Settings] = None,
        poller_factory: Callable[[Callable[[], bool], float], StatusPoller] = StatusPoller,
    ) -> None:
        self._repository = repository
        self._settings = settings or get_settings()
        self._poller_factory = poller_factory
        self._lock = RLock()
        self._state = ControllerState.IDLE
        self._job = AllocationJob.idle()
        self._pre_check: Optional[PreAllocationCheck] = None
        self._last_result: Optional[AllocationResult] = None
        self._last_error: Optional[str] = None
        self._finalizing = False
        self._starting = False
        # Bumped by stop(); a poll that sees a different value discards its response.
        self._generation = 0
        self._poller: Optional[StatusPoller] = None

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> ControllerState:
        with self._lock:
            return self._state

    @property
    def is_polling(self) -> bool:
        with self._lock:
            return self._poller is not None and self._poller.is_active

    def _start_disabled_reason(self) -> Optional[str]:
        if self._starting:
            return "An allocation is being started."
        if self._state is ControllerState.RUNNING or self._job.is_running:
            return "An allocation is already running."
        if self._pre_check is None:
            return "Pre-allocation check is unavailable."
        if self._pre_check.approved_students <= 0:
            return "There are no approved students awaiting allocation."
        return None

    @property
    def can_start(self) -> bool:
        with self._lock:
            return self._start_disabled_reason() is None

    def snapshot(self) -> AllocationSnapshot:
        with self._lock:
            reason = self._start_disabled_reason()
            return AllocationSnapshot(
                state=self._state,
                job=self._job,
                pre_check=self._pre_check,
                last_result=self._last_result,
                last_error=self._last_error,
                can_start=reason is None,
                start_disabled_reason=reason,
                is_polling=self._poller is not None and self._poller.is_active,
            )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @staticmethod
    def _resolve(future: "Future[T]", default: T, label: str) -> T:
        try:
            return future.result()
        except ApiError as exc:
            logger.warning("Initial %s fetch failed; treating as absent: %s", label, exc)
            return default

    def load(self) -> AllocationSnapshot:
        """Fetch pre-check, last result and status concurrently.

        A failing slice is treated as absent instead of failing the load.
        """
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="allocation-load") as pool:
            pre_check_future = pool.submit(self._repository.get_pre_allocation_check)
            result_future = pool.submit(self._repository.get_last_allocation_result)
            status_future = pool.submit(self._repository.get_allocation_status)

        pre_check = self._resolve(pre_check_future, None, "pre-allocation check")
        last_result = self._resolve(result_future, None, "last allocation result")
        job = self._resolve(status_future, AllocationJob.idle(), "allocation status")

        with self._lock:
            self._pre_check = pre_check
            self._last_result = last_result
            self._job = job
            self._last_error = None
            self._finalizing = False
            if job.is_running:
                self._state = ControllerState.RUNNING
                logger.info("Allocation already running on load; resuming status polling")
                self._start_polling()
            else:
                self._stop_polling()
                self._state = ControllerState.IDLE
        return self.snapshot()

    def start(self) -> AllocationSnapshot:
        with self._lock:
            reason = self._start_disabled_reason()
            if reason is not None:
                raise AllocationStartNotAllowedError(reason)
            self._starting = True

        try:
            self._repository.start_allocation()
        except ApiError as exc:
            with self._lock:
                self._starting = False
                self._last_error = exc.message or "Failed to start allocation process"
            logger.warning("Allocation start rejected: %s", exc.message)
            raise

        with self._lock:
            self._starting = False
            self._job = AllocationJob.initializing()
            self._state = ControllerState.RUNNING
            self._last_error = None
            self._finalizing = False
            logger.info("Allocation started; polling every %.1fs", self._settings.allocation_poll_interval_seconds)
            self._start_polling()
        return self.snapshot()

    def poll_once(self) -> bool:
        """Fetch one status snapshot. Returns ``True`` while polling should continue."""
        with self._lock:
            if self._poller is None:
                return False
            if self._state is not ControllerState.RUNNING or self._finalizing:
                return False
            generation = self._generation

        try:
            job = self._repository.get_allocation_status()
        except ApiError as exc:
            logger.warning("Allocation status poll failed; will retry: %s", exc)
            return True

        with self._lock:
            if generation != self._generation:
                logger.info("Polling was stopped; discarding status response")
                return False
            if self._state is not ControllerState.RUNNING or self._finalizing:
                return False
            self._job = job
            if job.is_running:
                return True
            self._finalizing = True
            self._stop_polling()

        logger.info("Allocation finished; fetching final result")
        self._finalize(generation)
        return False

    def _cancelled(self, generation: int) -> bool:
        with self._lock:
            if generation == self._generation:
                return False
            self._finalizing = False
        logger.info("Polling was stopped; skipping final result fetch")
        return True

    def _finalize(self, generation: int) -> None:
        try:
            last_result = self._repository.get_last_allocation_result()
        except ApiError as exc:
            logger.warning("Failed to fetch last allocation result: %s", exc)
            last_result = None
        if self._cancelled(generation):
            return
        try:
            pre_check = self._repository.get_pre_allocation_check()
        except ApiError as exc:
            logger.warning("Failed to refresh pre-allocation check: %s", exc)
            pre_check = None

        with self._lock:
            if generation != self._generation:
                self._finalizing = False
                return
            if last_result is not None:
                self._last_result = last_result
            if pre_check is not None:
                self._pre_check = pre_check
            self._state = ControllerState.COMPLETED
            self._finalizing = False

    def stop(self) -> None:
        """Cancel polling, e.g. when the page goes away.

        A status request already in flight is allowed to return, but its
        response is dropped and no follow-up requests are sent.
        """
        with self._lock:
            self._generation += 1
            self._stop_polling()

    def _start_polling(self) -> None:
        if self._poller is not None and self._poller.is_active:
            return
        self._poller = self._poller_factory(
            self.poll_once,
            self._settings.allocation_poll_interval_seconds,
        )
        self._poller.start()

    def _stop_polling(self) -> None:
        poller, self._poller = self._poller, None
        if poller is not None:
            poller.stop(timeout=0)

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #
    def download_report(self, report_format: str) -> ReportArtifact:
        fmt = report_format.lower()
        if fmt not in REPORT_FORMATS:
            raise ValueError(f"report format must be one of {sorted(REPORT_FORMATS)}")
        with self._lock:
            result = self._last_result
        if result is None:
            raise AllocationReportError("No allocation result is available yet.")
        try:
            artifact = self._repository.download_allocation_report(result.id, fmt)
        except ApiError as exc:
            with self._lock:
                self._last_error = "Failed to download report"
            logger.warning("Report download failed for %s: %s", result.id, exc)
            raise AllocationReportError("Failed to download report") from exc
        return ReportArtifact(
            filename=f"allocation-report-{result.id}.{fmt}",
            content_type=REPORT_FORMATS[fmt],
            content=artifact.content,
        )

    def clear_error(self) -> None:
        with self._lock:
            self._last_error = None
