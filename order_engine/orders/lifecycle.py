"""
Back-office order status changes.

Every change is validated against the state machine, checked against
the operator's permissions, and recorded as exactly one new history
entry. Writes go through a per-order lock plus a version check, so two
operators taking the same order at once cannot both succeed.

Usage:
    manager = OrderLifecycleManager(order_store, fanout)
    order = manager.transition("AV-20250314-0042", OrderStatus.IN_PROGRESS, operator)
"""

import threading
import weakref
from datetime import datetime
from typing import Callable, Optional

from order_engine.errors import (
    InfrastructureError,
    MissingCancellationReasonError,
    OrderNotFoundError,
    UnauthorizedTransitionError,
)
from order_engine.logging_context import get_conversation_logger
from order_engine.messages.templates import build_order_closed_notification
from order_engine.orders.notifier import NotificationFanout
from order_engine.orders.state_machine import is_terminal, validate_transition
from order_engine.schemas.account_schema import OperatorIdentity, Role
from order_engine.schemas.customer_schema import CoordinatorType, Segment
from order_engine.schemas.notification_schema import NotificationKind
from order_engine.schemas.order_schema import Order, OrderStatus, StatusEntry
from order_engine.tools.orders import OrderStore
from order_engine.utils import utc_now

logger = get_conversation_logger(__name__)

_CLOSING_KINDS = {
    OrderStatus.COMPLETED: NotificationKind.ORDER_COMPLETED,
    OrderStatus.CANCELLED: NotificationKind.ORDER_CANCELLED,
}


def can_operate(role: Role, coordinator_type: Optional[CoordinatorType], order: Order) -> bool:
    """Whether an account may view and change an order."""
    if role in (Role.ADMINISTRATOR, Role.SUPPORT):
        return True
    if role == Role.HOME_DESK:
        return order.segment == Segment.HOME
    if role == Role.OPERATOR:
        return coordinator_type is not None and order.responsible_coordinator_type == coordinator_type
    return False


def visible_to(role: Role, coordinator_type: Optional[CoordinatorType]) -> Callable[[Order], bool]:
    """Predicate for filtering order listings down to what an account may see."""

    def predicate(order: Order) -> bool:
        return can_operate(role, coordinator_type, order)

    return predicate


class OrderLifecycleManager:
    """Applies status transitions to stored orders."""

    def __init__(
        self,
        orders: OrderStore,
        fanout: NotificationFanout,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._orders = orders
        self._fanout = fanout
        self._clock = clock
        self._order_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _order_lock(self, order_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._order_locks.get(order_id)
            if lock is None:
                lock = threading.Lock()
                self._order_locks[order_id] = lock
            return lock

    def transition(
        self,
        order_id: str,
        target: OrderStatus,
        operator: OperatorIdentity,
        note: Optional[str] = None,
    ) -> Order:
        """
        Move an order to ``target`` and append one history entry.

        Raises:
            OrderNotFoundError: If the order does not exist.
            UnauthorizedTransitionError: If the operator may not act on it.
            InvalidTransitionError: If ``target`` is not reachable from the current status.
            MissingCancellationReasonError: If cancelling without a note.
            ConcurrentModificationError: If the stored version changed underneath.
        """
        note = note.strip() if note else None

        with self._order_lock(order_id):
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not can_operate(operator.role, operator.coordinator_type, order):
                raise UnauthorizedTransitionError(
                    order_id,
                    operator.role.value,
                    operator.coordinator_type.value if operator.coordinator_type else None,
                )
            validate_transition(order_id, order.status, target)
            if target == OrderStatus.CANCELLED and not note:
                raise MissingCancellationReasonError(order_id)

            previous = order.status
            order.status_history.append(StatusEntry(
                status=target,
                timestamp=self._clock(),
                operator_id=operator.account_id,
                operator_email=operator.email,
                note=note,
            ))
            order.status = target
            if target == OrderStatus.CANCELLED:
                order.cancellation_note = note

            saved = self._orders.replace(order, expected_version=order.version)

        logger.info(
            "Order %s: %s -> %s by %s", order_id, previous.value, target.value, operator.email
        )
        if is_terminal(target):
            self._notify_closed(saved)
        return saved

    def _notify_closed(self, order: Order) -> None:
        try:
            self._fanout.notify(
                _CLOSING_KINDS[order.status],
                build_order_closed_notification(order),
                segment=order.segment,
                reference_id=order.order_id,
            )
        except InfrastructureError:
            logger.exception("Closing notification failed for %s", order.order_id)
