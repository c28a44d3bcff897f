"""
Turns a customer's cart into a persisted order.

Two phases. ``finalize_session`` runs under the user's session lock:
check the cart, load the profile, total the lines, pick the coordinator,
insert the order under a fresh id, then clear and save the session.
Nothing touches the session until the insert has succeeded, so a store
failure leaves the cart as it was. ``publish`` runs after the lock is
released: it logs a summary and notifies the back office, both
best-effort.
"""

import random
from datetime import datetime
from typing import Callable, Optional

from order_engine.config import settings
from order_engine.conversation.session_store import CollectingCart, Session, SessionStore
from order_engine.errors import (
    DuplicateOrderIdError,
    EmptyCartError,
    InfrastructureError,
    UnknownCustomerError,
)
from order_engine.logging_context import get_conversation_logger
from order_engine.messages.templates import build_new_order_notification, build_order_summary
from order_engine.orders.notifier import NotificationFanout
from order_engine.schemas.conversation_schema import KeyInteractionKind
from order_engine.schemas.customer_schema import CustomerProfile
from order_engine.schemas.notification_schema import NotificationKind
from order_engine.schemas.order_schema import (
    INITIAL_HISTORY_NOTE,
    AssignedCoordinator,
    CartLine,
    Order,
    OrderStatus,
    StatusEntry,
)
from order_engine.tools.conversation_log import ConversationLogStore
from order_engine.tools.customers import CustomerStore
from order_engine.tools.orders import OrderStore
from order_engine.tools.routing import resolve_coordinator
from order_engine.utils import utc_now

logger = get_conversation_logger(__name__)


def generate_order_id(now: datetime, rng: random.Random, prefix: Optional[str] = None) -> str:
    """Build an id like ``AV-20250314-0042``."""
    prefix = prefix or settings.orders.id_prefix
    return f"{prefix}-{now:%Y%m%d}-{rng.randint(0, 9999):04d}"


class OrderFinalizer:
    """Creates orders from carts."""

    def __init__(
        self,
        sessions: SessionStore,
        customers: CustomerStore,
        orders: OrderStore,
        conversation_logs: ConversationLogStore,
        fanout: NotificationFanout,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._sessions = sessions
        self._customers = customers
        self._orders = orders
        self._conversation_logs = conversation_logs
        self._fanout = fanout
        self._clock = clock
        self._rng = rng or random.Random()

    def finalize(self, user_id: str) -> Order:
        """Persist the user's cart, then publish the order outside the session lock."""
        with self._sessions.lock(user_id):
            session = self._sessions.load(user_id)
            order = self.finalize_session(session)
        self.publish(order)
        return order

    def finalize_session(self, session: Session) -> Order:
        """
        Persist the session's cart as a new pending order and reset the session.

        The caller must hold the user's session lock and must call
        ``publish`` once it has released it.

        Raises:
            EmptyCartError: If the session is not collecting a non-empty cart.
            UnknownCustomerError: If the phone has no customer profile.
            DuplicateOrderIdError: If no free order id was found.
        """
        mode = session.mode
        if not isinstance(mode, CollectingCart) or not mode.cart:
            raise EmptyCartError(session.user_id)

        profile = self._customers.get(session.user_id)
        if profile is None:
            raise UnknownCustomerError(session.user_id)

        lines = [line.model_copy() for line in mode.cart]
        total = sum(line.subtotal for line in lines)
        now = self._clock()

        order = self._insert_with_fresh_id(profile, lines, total, now)
        logger.info(
            "Order %s created for %s: %d line(s), total %d, coordinator %s",
            order.order_id, profile.phone, len(order.lines), order.total,
            order.assigned_coordinator.name,
        )

        session.reset()
        self._sessions.save(session)
        return order

    def publish(self, order: Order) -> None:
        """Log the order summary and notify the back office. Never raises store errors."""
        self._log_summary(order)
        self._notify_new_order(order)

    def _build_order(
        self, order_id: str, profile: CustomerProfile, lines: list[CartLine], total: int, now: datetime
    ) -> Order:
        coordinator = resolve_coordinator(profile.segment, profile.city)
        return Order(
            order_id=order_id,
            customer_phone=profile.phone,
            segment=profile.segment,
            customer_name=profile.name,
            business_name=profile.business_name,
            city=profile.city,
            address=profile.address,
            contact_person=profile.contact_person,
            responsible_coordinator_type=profile.responsible_coordinator_type,
            lines=lines,
            total=total,
            assigned_coordinator=AssignedCoordinator(
                coordinator_type=coordinator.coordinator_type,
                name=coordinator.name,
                contact=coordinator.contact,
            ),
            status=OrderStatus.PENDING,
            status_history=[
                StatusEntry(status=OrderStatus.PENDING, timestamp=now, note=INITIAL_HISTORY_NOTE)
            ],
            created_at=now,
        )

    def _insert_with_fresh_id(
        self, profile: CustomerProfile, lines: list[CartLine], total: int, now: datetime
    ) -> Order:
        attempts = settings.orders.max_id_attempts
        taken: list[str] = []
        for attempt in range(1, attempts + 1):
            order_id = generate_order_id(now, self._rng)
            try:
                return self._orders.insert(self._build_order(order_id, profile, lines, total, now))
            except DuplicateOrderIdError:
                logger.warning("Order id %s taken (attempt %d/%d)", order_id, attempt, attempts)
                taken.append(order_id)
        raise DuplicateOrderIdError(", ".join(taken))

    def _log_summary(self, order: Order) -> None:
        try:
            self._conversation_logs.add_key_interaction(
                order.customer_phone,
                KeyInteractionKind.ORDER,
                build_order_summary(order),
                order.created_at,
                customer_name=order.customer_name,
                business_name=order.business_name,
            )
        except InfrastructureError:
            logger.warning("Could not log order %s in the conversation log", order.order_id, exc_info=True)

    def _notify_new_order(self, order: Order) -> None:
        try:
            self._fanout.notify(
                NotificationKind.NEW_ORDER,
                build_new_order_notification(order.segment, order.business_name or order.customer_name),
                segment=order.segment,
                reference_id=order.order_id,
            )
        except InfrastructureError:
            logger.exception("New-order notification failed for %s", order.order_id)
