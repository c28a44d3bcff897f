"""
WhatsApp order engine facade.

Entry point for both sides of the system:
- the chat side feeds every inbound WhatsApp message through
  ``handle_inbound_message`` and sends back the returned replies;
- the back office calls ``transition_order``, the visibility predicate
  and the account operations;
- an external timer calls ``sweep_idle_sessions``.

Usage:
    engine = OrderEngine(channel=RecordingChannel(), accounts=AccountStore([...]))
    replies = engine.handle_inbound_message("573001112233", "hola")
"""

import random
from datetime import datetime
from typing import Callable, Optional

from order_engine.config import settings
from order_engine.conversation.cart_resolver import resolve
from order_engine.conversation.profile_slots import ProfileSlots, definitions_for
from order_engine.conversation.session_store import (
    CollectingBusinessProfile,
    CollectingCart,
    DialogueMode,
    ProfileKind,
    Session,
    SessionStore,
)
from order_engine.errors import (
    AccountNotFoundError,
    EmptyCartError,
    InfrastructureError,
    MessageChannelError,
    NoProductsRecognized,
    UnknownCustomerError,
)
from order_engine.logging_context import conversation_scope, get_conversation_logger
from order_engine.messages import templates
from order_engine.orders.finalizer import OrderFinalizer
from order_engine.orders.lifecycle import OrderLifecycleManager, visible_to
from order_engine.orders.notifier import NotificationFanout
from order_engine.schemas.account_schema import Account, OperatorIdentity, Role
from order_engine.schemas.conversation_schema import InteractionKind, KeyInteractionKind, Speaker
from order_engine.schemas.customer_schema import CoordinatorType, CustomerProfile, Segment
from order_engine.schemas.notification_schema import NotificationKind, NotificationRecord
from order_engine.schemas.order_schema import Order, OrderStatus
from order_engine.tools.accounts import AccountStore
from order_engine.tools.catalog import get_catalog
from order_engine.tools.channel import MessageChannel, RecordingChannel
from order_engine.tools.conversation_log import ConversationLogStore
from order_engine.tools.customers import CustomerStore, record_interaction, register_customer
from order_engine.tools.notifications import NotificationStore
from order_engine.tools.orders import OrderStore
from order_engine.utils import keyword_key, normalize_phone, utc_now

logger = get_conversation_logger(__name__)

GREETING_KEYWORDS = frozenset({"hola", "menu", "inicio", "buenas", "buenos dias"})

BUSINESS_KEYWORDS: dict[str, Segment] = {
    "tienda": Segment.STORE,
    "asadero": Segment.GRILL_HOUSE,
    "restaurante": Segment.STANDARD_RESTAURANT,
    "restaurante estandar": Segment.STANDARD_RESTAURANT,
    "restaurante premium": Segment.PREMIUM_RESTAURANT,
    "mayorista": Segment.WHOLESALER,
}


def _interaction_kind(mode: DialogueMode) -> InteractionKind:
    if isinstance(mode, CollectingCart):
        return InteractionKind.ORDER
    if isinstance(mode, CollectingBusinessProfile):
        return InteractionKind.REGISTRATION
    return InteractionKind.GENERAL


class OrderEngine:
    """Wires the stores, dialogue and order components together."""

    def __init__(
        self,
        channel: Optional[MessageChannel] = None,
        accounts: Optional[AccountStore] = None,
        customers: Optional[CustomerStore] = None,
        orders: Optional[OrderStore] = None,
        notifications: Optional[NotificationStore] = None,
        conversation_logs: Optional[ConversationLogStore] = None,
        sessions: Optional[SessionStore] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.clock = clock
        self.channel = channel or RecordingChannel()
        self.accounts = accounts or AccountStore()
        self.customers = customers or CustomerStore()
        self.orders = orders or OrderStore()
        self.notifications = notifications or NotificationStore()
        self.conversation_logs = conversation_logs or ConversationLogStore()
        self.sessions = sessions or SessionStore(clock=clock)

        self.fanout = NotificationFanout(self.accounts, self.notifications, clock=clock)
        self.finalizer = OrderFinalizer(
            self.sessions, self.customers, self.orders, self.conversation_logs,
            self.fanout, clock=clock, rng=rng,
        )
        self.lifecycle = OrderLifecycleManager(self.orders, self.fanout, clock=clock)

    # ------------------------------------------------------------------ #
    # Chat side
    # ------------------------------------------------------------------ #

    def handle_inbound_message(
        self, user_id: str, text: str, declared_segment_hint: Optional[Segment] = None
    ) -> list[str]:
        """Process one WhatsApp message and return the replies to send."""
        user_id = normalize_phone(user_id)
        text = text.strip()[: settings.session.max_message_length]
        now = self.clock()
        created: list[Order] = []

        with conversation_scope(user_id):
            with self.sessions.lock(user_id):
                self.sessions.touch(user_id)
                session = self.sessions.load(user_id)
                inbound_kind = _interaction_kind(session.mode)
                replies = self._dispatch(session, text, declared_segment_hint, now, created)
                self.sessions.save(session)
                reply_kind = _interaction_kind(session.mode)
                flow = type(session.mode).__name__

            # Store writes for other documents happen after the session lock is released.
            for order in created:
                self.finalizer.publish(order)
            self._log_message(user_id, Speaker.USER, text, now, inbound_kind, flow)
            for reply in replies:
                self._log_message(user_id, Speaker.BOT, reply, now, reply_kind, flow)
        return replies

    def finalize_order(self, user_id: str) -> Order:
        """Turn the user's cart into an order outside the chat flow."""
        user_id = normalize_phone(user_id)
        with conversation_scope(user_id):
            return self.finalizer.finalize(user_id)

    def _dispatch(
        self,
        session: Session,
        text: str,
        hint: Optional[Segment],
        now: datetime,
        created: list[Order],
    ) -> list[str]:
        key = keyword_key(text)

        if key in GREETING_KEYWORDS or "volver menu" in key:
            session.reset()
            return [templates.WELCOME_MESSAGE]
        if key.startswith("cancelar"):
            logger.info("Customer cancelled; dropping %d cart line(s)", len(session.cart))
            session.reset()
            return [templates.ORDER_CANCELLED_MESSAGE]
        if key.startswith("finalizar"):
            return self._finalize_in_chat(session, created)

        mode = session.mode
        if isinstance(mode, CollectingCart):
            return self._handle_cart(session, mode, text, key)
        if isinstance(mode, CollectingBusinessProfile):
            return self._handle_registration(session, mode, text, now)
        return self._handle_idle(session, key, hint, now)

    def _handle_idle(
        self, session: Session, key: str, hint: Optional[Segment], now: datetime
    ) -> list[str]:
        if hint is not None:
            return self._choose_segment(session, hint, now)
        if key == "pedido":
            return [templates.SEGMENT_CHOICE_MESSAGE]
        if key == "hogar":
            return self._choose_segment(session, Segment.HOME, now)
        if key in ("negocios", "negocio"):
            profile = self.customers.get(session.user_id)
            if profile and profile.segment.is_business and profile.is_complete():
                return self._choose_segment(session, profile.segment, now)
            return [templates.BUSINESS_TYPE_MESSAGE]
        if key in BUSINESS_KEYWORDS:
            return self._choose_segment(session, BUSINESS_KEYWORDS[key], now)
        if "ver catalogo" in key or "hacer pedido" in key:
            profile = self.customers.get(session.user_id)
            if profile and profile.is_complete():
                return self._choose_segment(session, profile.segment, now)
            return [templates.SEGMENT_CHOICE_MESSAGE]
        return [templates.WELCOME_MESSAGE]

    def _choose_segment(self, session: Session, segment: Segment, now: datetime) -> list[str]:
        profile = self.customers.get(session.user_id)
        if profile and profile.is_complete():
            if segment == Segment.HOME and profile.segment.is_business:
                record_interaction(self.customers, profile.phone, now)
                return [templates.build_segment_kept_message(profile)] + self._start_cart(session, profile)
            if profile.segment == segment:
                record_interaction(self.customers, profile.phone, now)
                return [templates.build_welcome_back_message(profile)] + self._start_cart(session, profile)

        kind = ProfileKind.HOME if segment == Segment.HOME else ProfileKind.BUSINESS
        session.segment = segment
        session.mode = CollectingBusinessProfile(kind=kind)
        example = templates.HOME_EXAMPLE if kind == ProfileKind.HOME else templates.BUSINESS_EXAMPLE
        logger.info("Starting %s registration as %s", kind.value, segment.value)
        return [templates.build_registration_prompt(definitions_for(kind), example)]

    def _start_cart(self, session: Session, profile: CustomerProfile) -> list[str]:
        session.segment = profile.segment
        session.mode = CollectingCart()
        return [templates.build_catalog_message(profile.segment)]

    def _handle_registration(
        self, session: Session, mode: CollectingBusinessProfile, text: str, now: datetime
    ) -> list[str]:
        slots = ProfileSlots(mode.kind, mode.slots)
        rejected = slots.fill_from_message(text)
        mode.slots = dict(slots.values)
        if not slots.is_complete():
            return [templates.build_missing_fields_message(slots.missing(), rejected)]

        segment = session.segment or (Segment.HOME if mode.kind == ProfileKind.HOME else Segment.STORE)
        profile = register_customer(self.customers, session.user_id, slots.to_update(segment), now)
        try:
            self.conversation_logs.add_key_interaction(
                profile.phone,
                KeyInteractionKind.REGISTRATION,
                f"Registro {profile.segment.value}: {profile.display_name}",
                now,
                customer_name=profile.name,
                business_name=profile.business_name,
            )
        except InfrastructureError:
            logger.warning("Could not log registration for %s", profile.phone, exc_info=True)

        return [templates.build_registered_message(profile)] + self._start_cart(session, profile)

    def _handle_cart(self, session: Session, mode: CollectingCart, text: str, key: str) -> list[str]:
        if "catalogo" in key:
            return [templates.build_catalog_message(session.segment)]
        try:
            cart, added = resolve(text, get_catalog(session.segment), mode.cart)
        except NoProductsRecognized:
            return [templates.NO_PRODUCTS_MESSAGE]
        mode.cart = cart
        return [templates.build_cart_added_message(added, cart)]

    def _finalize_in_chat(self, session: Session, created: list[Order]) -> list[str]:
        try:
            order = self.finalizer.finalize_session(session)
        except EmptyCartError:
            return [templates.EMPTY_CART_MESSAGE]
        except UnknownCustomerError:
            return [templates.UNKNOWN_CUSTOMER_MESSAGE]
        created.append(order)
        return [templates.build_order_confirmation_message(order)]

    def _log_message(
        self,
        user_id: str,
        speaker: Speaker,
        text: str,
        now: datetime,
        kind: InteractionKind,
        flow: str,
    ) -> None:
        try:
            self.conversation_logs.append_message(user_id, speaker, text, now, kind, flow)
        except InfrastructureError:
            logger.warning("Conversation log write failed for %s", user_id, exc_info=True)

    # ------------------------------------------------------------------ #
    # Idle sessions
    # ------------------------------------------------------------------ #

    def sweep_idle_sessions(self, now: Optional[datetime] = None) -> list[str]:
        """Send the closing message to idle users and drop their sessions.

        Returns:
            The user ids whose sessions were discarded.
        """
        now = now or self.clock()
        closing = settings.business.closing_message
        swept: list[str] = []

        for user_id in self.sessions.idle_users(now):
            with conversation_scope(user_id):
                with self.sessions.lock(user_id):
                    if not self.sessions.is_idle(user_id, now):
                        continue
                    self.sessions.discard(user_id)
                swept.append(user_id)

                try:
                    self.channel.send_text(user_id, closing)
                except MessageChannelError:
                    logger.warning("Closing message not delivered to %s", user_id, exc_info=True)
                else:
                    self._log_message(user_id, Speaker.BOT, closing, now, InteractionKind.GENERAL, "Idle")

        if swept:
            logger.info("Swept %d idle session(s)", len(swept))
        return swept

    # ------------------------------------------------------------------ #
    # Back office
    # ------------------------------------------------------------------ #

    def transition_order(
        self,
        order_id: str,
        target_status: OrderStatus,
        operator: OperatorIdentity,
        note: Optional[str] = None,
    ) -> Order:
        return self.lifecycle.transition(order_id, target_status, operator, note)

    def list_orders_visible_to(
        self, role: Role, coordinator_type: Optional[CoordinatorType] = None
    ) -> Callable[[Order], bool]:
        return visible_to(role, coordinator_type)

    def visible_orders(self, operator: OperatorIdentity) -> list[Order]:
        """Orders the operator may see, oldest first."""
        return self.orders.find(visible_to(operator.role, operator.coordinator_type))

    def inbox(self, account_id: str, unread_only: bool = False) -> list[NotificationRecord]:
        return self.notifications.list_for_recipient(account_id, unread_only=unread_only)

    def deactivate_account(self, account_id: str) -> Account:
        """Deactivate an account and tell the administrators."""
        account = self.accounts.set_active(account_id, False)
        if account is None:
            raise AccountNotFoundError(account_id)
        self.fanout.notify(
            NotificationKind.ACCOUNT_DEACTIVATED,
            templates.build_account_notification(account.email, account.name or None, deleted=False),
            reference_id=account_id,
        )
        return account

    def delete_account(self, account_id: str) -> Account:
        """Delete an account and tell the administrators."""
        account = self.accounts.delete(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        self.fanout.notify(
            NotificationKind.ACCOUNT_DELETED,
            templates.build_account_notification(account.email, account.name or None, deleted=True),
            reference_id=account_id,
        )
        return account
