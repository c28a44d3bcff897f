"""Notification records written by the fan-out."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NotificationKind(str, Enum):
    NEW_ORDER = "new_order"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_DELETED = "account_deleted"


class NotificationRecord(BaseModel):
    """One row per recipient. Only an external 'mark read' changes it."""

    notification_id: str
    recipient_id: str
    recipient_contact: str
    kind: NotificationKind
    message: str
    reference_id: Optional[str] = None
    read: bool = False
    created_at: datetime
