"""Student notifications: listing, read state, and grouping for display."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from threading import RLock
from typing import Optional

from hostel_portal.domain.models import Notification
from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

PRIORITY_HIGH = "high"


def _local_date(moment: datetime) -> date:
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


class NotificationService:
    def __init__(self, repository: HostelApiRepository) -> None:
        self._repository = repository
        self._lock = RLock()
        self._notifications: list[Notification] = []

    @property
    def notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)

    def load(self) -> list[Notification]:
        notifications = self._repository.list_notifications()
        notifications.sort(key=lambda item: item.created_at, reverse=True)
        with self._lock:
            self._notifications = notifications
        return self.notifications

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self.notifications if not item.is_read)

    @property
    def important_count(self) -> int:
        return len(self.important())

    def unread(self) -> list[Notification]:
        return [item for item in self.notifications if not item.is_read]

    def important(self) -> list[Notification]:
        return [item for item in self.unread() if item.priority == PRIORITY_HIGH]

    def types(self) -> list[str]:
        return sorted({item.type for item in self.notifications})

    def search(self, query: str = "", notification_type: Optional[str] = None) -> list[Notification]:
        term = query.strip().lower()
        return [
            item
            for item in self.notifications
            if (not term or term in item.title.lower() or term in item.message.lower())
            and (notification_type in (None, "all") or item.type == notification_type)
        ]

    @staticmethod
    def group_by_day(
        notifications: list[Notification],
        today: Optional[date] = None,
    ) -> tuple[list[Notification], list[Notification]]:
        """Split into (today, earlier) using the local calendar date."""
        today = today or date.today()
        todays = [item for item in notifications if _local_date(item.created_at) == today]
        earlier = [item for item in notifications if _local_date(item.created_at) != today]
        return todays, earlier

    def mark_read(self, notification_id: str) -> None:
        self._repository.mark_notification_read(notification_id)
        with self._lock:
            self._notifications = [
                replace(item, is_read=True) if item.id == notification_id else item
                for item in self._notifications
            ]

    def mark_all_read(self) -> None:
        self._repository.mark_all_notifications_read()
        with self._lock:
            self._notifications = [replace(item, is_read=True) for item in self._notifications]
        logger.info("Marked all notifications as read")

    def delete(self, notification_id: str) -> None:
        self._repository.delete_notification(notification_id)
        with self._lock:
            self._notifications = [item for item in self._notifications if item.id != notification_id]
