"""
Notification fan-out to back-office accounts.

Order events go to the desk that owns the customer's segment: home
orders to every active home-desk account, business orders to active
operators whose coordinator type matches the routing table. Account
events go to every active administrator.

Each record is written on its own. A failed write is logged and the
remaining recipients still get theirs.
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

from order_engine.errors import InfrastructureError
from order_engine.logging_context import get_conversation_logger
from order_engine.schemas.account_schema import Account, Role
from order_engine.schemas.customer_schema import Segment
from order_engine.schemas.notification_schema import NotificationKind, NotificationRecord
from order_engine.tools.accounts import AccountStore
from order_engine.tools.notifications import NotificationStore
from order_engine.tools.routing import segment_desk
from order_engine.utils import utc_now

logger = get_conversation_logger(__name__)

ORDER_KINDS = frozenset({
    NotificationKind.NEW_ORDER,
    NotificationKind.ORDER_COMPLETED,
    NotificationKind.ORDER_CANCELLED,
})

ACCOUNT_KINDS = frozenset({
    NotificationKind.ACCOUNT_DEACTIVATED,
    NotificationKind.ACCOUNT_DELETED,
})


def _new_notification_id() -> str:
    return f"NT-{uuid.uuid4().hex[:12].upper()}"


class NotificationFanout:
    """Resolves recipients and writes one record per distinct recipient."""

    def __init__(
        self,
        accounts: AccountStore,
        notifications: NotificationStore,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_notification_id,
    ) -> None:
        self._accounts = accounts
        self._notifications = notifications
        self._clock = clock
        self._id_factory = id_factory

    def recipients_for(self, kind: NotificationKind, segment: Optional[Segment] = None) -> list[Account]:
        """Active accounts that should hear about an event, without duplicates."""
        if kind in ACCOUNT_KINDS:
            candidates = self._accounts.list_active(Role.ADMINISTRATOR)
        elif segment is None:
            raise ValueError(f"Notification kind {kind.value} needs a segment")
        elif segment == Segment.HOME:
            candidates = self._accounts.list_active(Role.HOME_DESK)
        else:
            candidates = self._accounts.list_active(Role.OPERATOR, segment_desk(segment))

        seen: set[str] = set()
        recipients = []
        for account in candidates:
            if account.account_id in seen:
                continue
            seen.add(account.account_id)
            recipients.append(account)
        return recipients

    def notify(
        self,
        kind: NotificationKind,
        message: str,
        segment: Optional[Segment] = None,
        reference_id: Optional[str] = None,
    ) -> list[NotificationRecord]:
        """
        Write one notification per recipient.

        Returns:
            The records that were stored. Empty when nobody qualifies.
        """
        recipients = self.recipients_for(kind, segment)
        if not recipients:
            logger.warning(
                "No active recipients for %s (segment: %s)",
                kind.value, segment.value if segment else "-",
            )
            return []

        written: list[NotificationRecord] = []
        for account in recipients:
            record = NotificationRecord(
                notification_id=self._id_factory(),
                recipient_id=account.account_id,
                recipient_contact=account.email,
                kind=kind,
                message=message,
                reference_id=reference_id,
                created_at=self._clock(),
            )
            try:
                written.append(self._notifications.insert(record))
            except InfrastructureError:
                logger.exception("Skipping notification for %s", account.email)

        logger.info("%d/%d notifications written for %s", len(written), len(recipients), kind.value)
        return written
