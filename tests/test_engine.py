"""
End-to-end tests for the order engine facade.

Each test drives the engine the way the WhatsApp webhook does: one
inbound message at a time, checking the replies and the stores.
"""

import random
import threading

import pytest

from order_engine.config import settings
from order_engine.conversation.session_store import (
    CollectingBusinessProfile,
    CollectingCart,
    Idle,
    ProfileKind,
    Session,
)
from order_engine.engine import OrderEngine
from order_engine.errors import AccountNotFoundError, UnauthorizedTransitionError
from order_engine.messages import templates
from order_engine.schemas.account_schema import Role
from order_engine.schemas.conversation_schema import KeyInteractionKind, Speaker
from order_engine.schemas.customer_schema import CoordinatorType, Segment
from order_engine.schemas.notification_schema import NotificationKind
from order_engine.schemas.order_schema import CartLine, OrderStatus
from order_engine.tools.channel import RecordingChannel
from order_engine.tools.notifications import NotificationStore
from tests.conftest import BUSINESS_PHONE, HOME_PHONE, make_profile

HOME_REGISTRATION = "Nombre: María García\nCiudad: Villavicencio\nDirección: Cra 30 #25-40"


def _say(engine, *messages, phone=HOME_PHONE) -> list[str]:
    """Send messages in order and return the replies to the last one."""
    replies: list[str] = []
    for text in messages:
        replies = engine.handle_inbound_message(phone, text)
    return replies


def _home_order(engine) -> list[str]:
    return _say(engine, "pedido", "hogar", HOME_REGISTRATION, "2 pollo entero, 3 alitas", "finalizar")


class TestMenu:
    def test_greeting_gets_welcome(self, engine):
        assert _say(engine, "Hola") == [templates.WELCOME_MESSAGE]

    def test_unknown_text_gets_welcome(self, engine):
        assert _say(engine, "qué horario tienen") == [templates.WELCOME_MESSAGE]

    def test_pedido_asks_for_segment(self, engine):
        assert _say(engine, "Pedido") == [templates.SEGMENT_CHOICE_MESSAGE]

    def test_negocios_asks_for_business_type(self, engine):
        assert _say(engine, "negocios") == [templates.BUSINESS_TYPE_MESSAGE]

    def test_phone_normalized(self, engine, sessions):
        _say(engine, "hogar", phone="57 300 111 2233")
        assert isinstance(sessions.load(HOME_PHONE).mode, CollectingBusinessProfile)

    def test_declared_segment_hint(self, engine, sessions):
        engine.handle_inbound_message(BUSINESS_PHONE, "quiero pedir", declared_segment_hint=Segment.WHOLESALER)
        session = sessions.load(BUSINESS_PHONE)
        assert session.segment == Segment.WHOLESALER
        assert session.mode == CollectingBusinessProfile(kind=ProfileKind.BUSINESS)

    def test_button_labels_with_emoji(self, engine, sessions):
        assert _say(engine, "🛒 Pedido") == [templates.SEGMENT_CHOICE_MESSAGE]
        assert _say(engine, "💼 Negocios") == [templates.BUSINESS_TYPE_MESSAGE]
        _say(engine, "🏠 Hogar")
        assert sessions.load(HOME_PHONE).mode == CollectingBusinessProfile(kind=ProfileKind.HOME)


class TestHomeFlow:
    def test_registration_prompt(self, engine, sessions):
        replies = _say(engine, "pedido", "hogar")
        assert "*Nombre:*" in replies[0]
        assert sessions.load(HOME_PHONE).mode == CollectingBusinessProfile(kind=ProfileKind.HOME)

    def test_registration_then_catalog(self, engine, sessions):
        replies = _say(engine, "pedido", "hogar", HOME_REGISTRATION)
        assert len(replies) == 2
        assert "María García" in replies[0]
        assert "Pollo Entero - $19.000" in replies[1]
        assert isinstance(sessions.load(HOME_PHONE).mode, CollectingCart)

    def test_registration_stores_profile(self, engine):
        _say(engine, "pedido", "hogar", HOME_REGISTRATION)
        profile = engine.customers.get(HOME_PHONE)
        assert profile.segment == Segment.HOME
        assert profile.city == "Villavicencio"
        assert profile.responsible_coordinator_type == CoordinatorType.MASS_MARKET

    def test_incomplete_registration_asks_again(self, engine, sessions):
        replies = _say(engine, "pedido", "hogar", "Nombre: María García")
        assert "*Ciudad:*" in replies[0]
        assert "*Dirección:*" in replies[0]
        mode = sessions.load(HOME_PHONE).mode
        assert mode.slots == {"name": "María García"}

    def test_cart_subtotal(self, engine):
        replies = _say(engine, "pedido", "hogar", HOME_REGISTRATION, "2 pollo entero, 3 alitas")
        assert "$80.000" in replies[0]

    def test_full_order(self, engine, sessions):
        replies = _home_order(engine)
        orders = engine.orders.find()
        assert len(orders) == 1
        order = orders[0]
        assert order.total == 80000
        assert order.segment == Segment.HOME
        assert order.order_id in replies[0]
        assert "https://wa.me/" in replies[0]
        assert isinstance(sessions.load(HOME_PHONE).mode, Idle)

    def test_home_desk_notified(self, engine):
        _home_order(engine)
        assert len(engine.inbox("home-1")) == 1
        assert len(engine.inbox("home-2")) == 1
        assert engine.inbox("home-off") == []
        assert engine.inbox("op-director") == []

    def test_returning_customer_skips_registration(self, engine, sessions):
        _home_order(engine)
        replies = _say(engine, "hogar")
        assert replies[0] == templates.build_welcome_back_message(engine.customers.get(HOME_PHONE))
        assert isinstance(sessions.load(HOME_PHONE).mode, CollectingCart)
        assert engine.customers.get(HOME_PHONE).interaction_count == 2


class TestBusinessFlow:
    def _register(self, engine):
        return _say(
            engine,
            "negocios",
            "asadero",
            "Nombre del negocio: Asadero El Sabor\nCiudad o zona: Villavicencio",
            "Dirección: Calle 38 #30-12\nPersona de contacto: Juan Pérez",
            phone=BUSINESS_PHONE,
        )

    def test_registration_across_two_messages(self, engine):
        self._register(engine)
        profile = engine.customers.get(BUSINESS_PHONE)
        assert profile.segment == Segment.GRILL_HOUSE
        assert profile.business_name == "Asadero El Sabor"
        assert profile.contact_person == "Juan Pérez"

    def test_registration_key_interaction_logged(self, engine):
        self._register(engine)
        log = engine.conversation_logs.get(BUSINESS_PHONE)
        assert [k.kind for k in log.key_interactions] == [KeyInteractionKind.REGISTRATION]
        assert log.business_name == "Asadero El Sabor"

    def test_segment_catalog(self, engine):
        replies = self._register(engine)
        assert "Menudencias (kg)" in replies[1]

    def test_order_routed_to_director(self, engine):
        self._register(engine)
        _say(engine, "4 pollo entero y 2 menudencias", "finalizar", phone=BUSINESS_PHONE)
        order = engine.orders.find()[0]
        assert order.total == 92000
        assert order.assigned_coordinator.coordinator_type == CoordinatorType.COMMERCIAL_DIRECTOR
        records = engine.inbox("op-director")
        assert [r.kind for r in records] == [NotificationKind.NEW_ORDER]
        assert records[0].message == "Nuevo pedido de Asadero El Sabor (grill_house)"

    def test_business_customer_choosing_home_keeps_segment(self, engine, sessions):
        self._register(engine)
        _say(engine, "cancelar", phone=BUSINESS_PHONE)
        replies = _say(engine, "hogar", phone=BUSINESS_PHONE)
        assert "asadero" in replies[0]
        assert "Menudencias (kg)" in replies[1]
        assert engine.customers.get(BUSINESS_PHONE).segment == Segment.GRILL_HOUSE
        assert sessions.load(BUSINESS_PHONE).segment == Segment.GRILL_HOUSE

    def test_registered_business_skips_type_question(self, engine):
        engine.customers.upsert(make_profile(BUSINESS_PHONE, Segment.WHOLESALER))
        replies = _say(engine, "negocios", phone=BUSINESS_PHONE)
        assert "Pollo Entero (Caja 10 unidades)" in replies[1]


class TestCart:
    @pytest.fixture
    def in_cart(self, engine):
        _say(engine, "pedido", "hogar", HOME_REGISTRATION)
        return engine

    def test_lines_appended_not_merged(self, in_cart, sessions):
        _say(in_cart, "2 pollo entero", "1 pollo entero")
        cart = sessions.load(HOME_PHONE).cart
        assert [(line.name, line.quantity) for line in cart] == [("Pollo Entero", 2), ("Pollo Entero", 1)]

    def test_unrecognized_products(self, in_cart, sessions):
        assert _say(in_cart, "5 tamales") == [templates.NO_PRODUCTS_MESSAGE]
        mode = sessions.load(HOME_PHONE).mode
        assert isinstance(mode, CollectingCart)
        assert mode.cart == []

    def test_partial_match_keeps_recognized(self, in_cart, sessions):
        _say(in_cart, "2 pollo entero, 3 tamales")
        assert [line.name for line in sessions.load(HOME_PHONE).cart] == ["Pollo Entero"]

    def test_catalog_request_in_cart(self, in_cart):
        replies = _say(in_cart, "ver catálogo")
        assert replies == [templates.build_catalog_message(Segment.HOME)]

    def test_cancel_clears_cart(self, in_cart, sessions):
        _say(in_cart, "2 pollo entero")
        assert _say(in_cart, "Cancelar") == [templates.ORDER_CANCELLED_MESSAGE]
        session = sessions.load(HOME_PHONE)
        assert isinstance(session.mode, Idle)
        assert session.cart == []
        assert in_cart.orders.find() == []

    def test_greeting_resets(self, in_cart, sessions):
        _say(in_cart, "2 pollo entero", "hola")
        assert isinstance(sessions.load(HOME_PHONE).mode, Idle)


class TestFinalizeInChat:
    def test_empty_cart_reply(self, engine):
        assert _say(engine, "finalizar") == [templates.EMPTY_CART_MESSAGE]
        assert engine.orders.find() == []

    def test_unknown_customer_reply(self, engine, sessions):
        sessions.save(Session(
            user_id=HOME_PHONE,
            segment=Segment.HOME,
            mode=CollectingCart([CartLine.priced("Pollo Entero", 1, 19000)]),
        ))
        assert _say(engine, "finalizar") == [templates.UNKNOWN_CUSTOMER_MESSAGE]
        assert len(sessions.load(HOME_PHONE).cart) == 1

    def test_finalize_order_operation(self, engine, sessions):
        engine.customers.upsert(make_profile(HOME_PHONE, Segment.HOME))
        sessions.save(Session(
            user_id=HOME_PHONE,
            segment=Segment.HOME,
            mode=CollectingCart([CartLine.priced("Pollo Entero", 1, 19000)]),
        ))
        order = engine.finalize_order(HOME_PHONE)
        assert order.total == 19000
        assert engine.orders.get(order.order_id) is not None


class TestConversationLog:
    def test_messages_logged_in_order(self, engine):
        _say(engine, "hola", "pedido")
        log = engine.conversation_logs.get(HOME_PHONE)
        assert [m.speaker for m in log.messages] == [Speaker.USER, Speaker.BOT, Speaker.USER, Speaker.BOT]
        assert log.messages[0].text == "hola"

    def test_long_message_truncated(self, engine):
        _say(engine, "x" * 5000)
        log = engine.conversation_logs.get(HOME_PHONE)
        assert len(log.messages[0].text) == settings.session.max_message_length

    def test_order_summary_logged(self, engine):
        _home_order(engine)
        log = engine.conversation_logs.get(HOME_PHONE)
        kinds = [k.kind for k in log.key_interactions]
        assert kinds == [KeyInteractionKind.REGISTRATION, KeyInteractionKind.ORDER]


class TestIdleSweep:
    def test_idle_session_closed(self, engine, channel, sessions, clock):
        _say(engine, "pedido", "hogar")
        clock.advance(minutes=settings.session.idle_timeout_minutes + 1)
        assert engine.sweep_idle_sessions() == [HOME_PHONE]
        assert channel.messages_for(HOME_PHONE) == [settings.business.closing_message]
        assert isinstance(sessions.load(HOME_PHONE).mode, Idle)
        assert not sessions.is_idle(HOME_PHONE)

    def test_active_session_kept(self, engine, channel, clock):
        _say(engine, "hola")
        clock.advance(minutes=settings.session.idle_timeout_minutes - 1)
        _say(engine, "pedido")
        clock.advance(minutes=2)
        assert engine.sweep_idle_sessions() == []
        assert channel.outbox == []

    def test_each_message_resets_timer(self, engine, clock):
        _say(engine, "hola")
        clock.advance(minutes=settings.session.idle_timeout_minutes - 1)
        _say(engine, "pedido")
        clock.advance(minutes=settings.session.idle_timeout_minutes)
        assert engine.sweep_idle_sessions() == [HOME_PHONE]

    def test_failed_send_still_discards(self, engine, channel, sessions, clock):
        _say(engine, "pedido", "hogar")
        channel.failing_numbers.add(HOME_PHONE)
        clock.advance(minutes=settings.session.idle_timeout_minutes + 1)
        assert engine.sweep_idle_sessions() == [HOME_PHONE]
        assert channel.outbox == []
        assert isinstance(sessions.load(HOME_PHONE).mode, Idle)

    def test_sweep_only_idle_users(self, engine, channel, clock):
        _say(engine, "hola")
        clock.advance(minutes=settings.session.idle_timeout_minutes + 1)
        _say(engine, "hola", phone=BUSINESS_PHONE)
        assert engine.sweep_idle_sessions() == [HOME_PHONE]
        assert channel.messages_for(BUSINESS_PHONE) == []


class _HookedNotifications(NotificationStore):
    """Runs ``on_insert`` once, before the first record is written."""

    def __init__(self) -> None:
        super().__init__()
        self.on_insert = None

    def insert(self, record):
        hook, self.on_insert = self.on_insert, None
        if hook is not None:
            hook()
        return super().insert(record)


class _HookedChannel(RecordingChannel):
    """Runs ``on_send`` once, before the first message goes out."""

    def __init__(self) -> None:
        super().__init__()
        self.on_send = None

    def send_text(self, phone, text):
        hook, self.on_send = self.on_send, None
        if hook is not None:
            hook()
        super().send_text(phone, text)


def _reply_from_other_thread(engine, text, replies):
    """Send a message for the same customer from a second thread and wait briefly for it."""
    worker = threading.Thread(
        target=lambda: replies.extend(engine.handle_inbound_message(HOME_PHONE, text)),
        daemon=True,
    )
    worker.start()
    worker.join(timeout=2)


class TestSessionLockScope:
    def test_same_customer_not_blocked_during_order_fanout(self, accounts, sessions, clock):
        notifications = _HookedNotifications()
        engine = OrderEngine(
            accounts=accounts, sessions=sessions, notifications=notifications,
            clock=clock, rng=random.Random(7),
        )
        replies: list[str] = []
        notifications.on_insert = lambda: _reply_from_other_thread(engine, "hola", replies)

        confirmation = _home_order(engine)

        assert replies == [templates.WELCOME_MESSAGE]
        assert "AV-" in confirmation[0]
        assert len(engine.orders.find()) == 1
        assert len(notifications.all()) > 0

    def test_same_customer_not_blocked_during_closing_send(self, accounts, sessions, clock):
        channel = _HookedChannel()
        engine = OrderEngine(channel=channel, accounts=accounts, sessions=sessions, clock=clock)
        _say(engine, "pedido", "hogar")
        clock.advance(minutes=settings.session.idle_timeout_minutes + 1)
        replies: list[str] = []
        channel.on_send = lambda: _reply_from_other_thread(engine, "pedido", replies)

        assert engine.sweep_idle_sessions() == [HOME_PHONE]
        assert replies == [templates.SEGMENT_CHOICE_MESSAGE]
        assert channel.messages_for(HOME_PHONE) == [settings.business.closing_message]


class TestBackOffice:
    def test_operator_cannot_touch_home_order(self, engine, director):
        _home_order(engine)
        order = engine.orders.find()[0]
        with pytest.raises(UnauthorizedTransitionError):
            engine.transition_order(order.order_id, OrderStatus.IN_PROGRESS, director)

    def test_home_desk_works_home_order(self, engine, home_desk, clock):
        _home_order(engine)
        clock.advance(minutes=30)
        order = engine.orders.find()[0]
        engine.transition_order(order.order_id, OrderStatus.IN_PROGRESS, home_desk)
        done = engine.transition_order(order.order_id, OrderStatus.COMPLETED, home_desk, note="Entregado")
        assert done.status == OrderStatus.COMPLETED
        kinds = [r.kind for r in engine.inbox("home-2")]
        assert kinds == [NotificationKind.ORDER_COMPLETED, NotificationKind.NEW_ORDER]

    def test_visible_orders(self, engine, home_desk, director):
        _home_order(engine)
        assert len(engine.visible_orders(home_desk)) == 1
        assert engine.visible_orders(director) == []

    def test_visibility_predicate(self, engine):
        _home_order(engine)
        wholesale = engine.list_orders_visible_to(Role.OPERATOR, CoordinatorType.WHOLESALER)
        mass_market = engine.list_orders_visible_to(Role.OPERATOR, CoordinatorType.MASS_MARKET)
        assert engine.orders.find(wholesale) == []
        assert len(engine.orders.find(mass_market)) == 1
        assert len(engine.orders.find(engine.list_orders_visible_to(Role.SUPPORT))) == 1

    def test_deactivate_notifies_admins(self, engine):
        account = engine.deactivate_account("home-2")
        assert account.active is False
        for admin_id in ("admin-1", "admin-2"):
            records = engine.inbox(admin_id)
            assert [r.kind for r in records] == [NotificationKind.ACCOUNT_DEACTIVATED]
            assert records[0].message == "Usuario hogares2@avellano.com ha sido desactivado"

    def test_deactivated_account_gets_no_orders(self, engine):
        engine.deactivate_account("home-2")
        _home_order(engine)
        assert engine.inbox("home-2") == []
        assert len(engine.inbox("home-1")) == 1

    def test_delete_notifies_admins_with_name(self, engine):
        engine.delete_account("admin-2")
        records = engine.inbox("admin-1")
        assert records[0].message == "Usuario Luis (admin2@avellano.com) ha sido eliminado"
        assert engine.accounts.get("admin-2") is None

    def test_unknown_account(self, engine):
        with pytest.raises(AccountNotFoundError):
            engine.delete_account("nobody")
        with pytest.raises(AccountNotFoundError):
            engine.deactivate_account("nobody")

    def test_unread_inbox(self, engine):
        _home_order(engine)
        assert len(engine.inbox("home-1", unread_only=True)) == 1
