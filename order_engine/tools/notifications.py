"""In-memory notification record store."""

import logging
import threading
from typing import Optional

from order_engine.config import settings
from order_engine.schemas.notification_schema import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationStore:
    """Notification records, one per recipient per event."""

    def __init__(self) -> None:
        self._records: list[NotificationRecord] = []
        self._lock = threading.Lock()

    def insert(self, record: NotificationRecord) -> NotificationRecord:
        with self._lock:
            self._records.append(record.model_copy())
            return record.model_copy()

    def list_for_recipient(
        self, recipient_id: str, unread_only: bool = False, limit: Optional[int] = None
    ) -> list[NotificationRecord]:
        """A recipient's inbox, newest first."""
        limit = limit or settings.orders.inbox_limit
        with self._lock:
            records = [
                r for r in self._records
                if r.recipient_id == recipient_id and (not unread_only or not r.read)
            ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy() for r in records[:limit]]

    def all(self) -> list[NotificationRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records]
