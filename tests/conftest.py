"""Shared test fixtures and helpers."""

import random
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from order_engine.conversation.session_store import SessionStore
from order_engine.engine import OrderEngine
from order_engine.schemas.account_schema import Account, OperatorIdentity, Role
from order_engine.schemas.customer_schema import CoordinatorType, CustomerProfile, Segment
from order_engine.schemas.order_schema import (
    INITIAL_HISTORY_NOTE,
    AssignedCoordinator,
    CartLine,
    Order,
    OrderStatus,
    StatusEntry,
)
from order_engine.tools.accounts import AccountStore
from order_engine.tools.channel import RecordingChannel
from order_engine.tools.routing import resolve_coordinator

T0 = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)

HOME_PHONE = "573001112233"
BUSINESS_PHONE = "573004445566"


class FakeClock:
    """Settable clock shared by every component under test."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def accounts():
    return AccountStore([
        Account(account_id="admin-1", email="admin1@avellano.com", name="Ana", role=Role.ADMINISTRATOR),
        Account(account_id="admin-2", email="admin2@avellano.com", name="Luis", role=Role.ADMINISTRATOR),
        Account(account_id="support-1", email="soporte@avellano.com", role=Role.SUPPORT),
        Account(account_id="home-1", email="hogares1@avellano.com", role=Role.HOME_DESK),
        Account(account_id="home-2", email="hogares2@avellano.com", role=Role.HOME_DESK),
        Account(account_id="home-off", email="hogares3@avellano.com", role=Role.HOME_DESK, active=False),
        Account(account_id="op-director", email="director@avellano.com", role=Role.OPERATOR,
                coordinator_type=CoordinatorType.COMMERCIAL_DIRECTOR),
        Account(account_id="op-wholesale", email="mayoristas@avellano.com", role=Role.OPERATOR,
                coordinator_type=CoordinatorType.WHOLESALER),
        Account(account_id="op-horeca", email="horecas@avellano.com", role=Role.OPERATOR,
                coordinator_type=CoordinatorType.HORECA_EXECUTIVE),
        Account(account_id="op-mass", email="masivos@avellano.com", role=Role.OPERATOR,
                coordinator_type=CoordinatorType.MASS_MARKET),
    ])


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def sessions(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def engine(accounts, channel, sessions, clock):
    return OrderEngine(
        channel=channel,
        accounts=accounts,
        sessions=sessions,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def admin():
    return OperatorIdentity("admin-1", "admin1@avellano.com", Role.ADMINISTRATOR)


@pytest.fixture
def director():
    return OperatorIdentity("op-director", "director@avellano.com", Role.OPERATOR,
                            CoordinatorType.COMMERCIAL_DIRECTOR)


@pytest.fixture
def home_desk():
    return OperatorIdentity("home-1", "hogares1@avellano.com", Role.HOME_DESK)


def make_profile(
    phone: str = HOME_PHONE,
    segment: Segment = Segment.HOME,
    city: Optional[str] = "Villavicencio",
    **fields,
) -> CustomerProfile:
    """Helper to create a complete CustomerProfile for a segment."""
    if segment == Segment.HOME:
        defaults = {"name": "María García", "address": "Cra 30 #25-40"}
    else:
        defaults = {
            "business_name": "Asadero El Sabor",
            "address": "Calle 38 #30-12",
            "contact_person": "Juan Pérez",
        }
    defaults.update(fields)
    return CustomerProfile(
        phone=phone,
        segment=segment,
        city=city,
        responsible_coordinator_type=resolve_coordinator(segment, city).coordinator_type,
        registered_at=T0,
        last_active_at=T0,
        **defaults,
    )


def make_order(
    order_id: str = "AV-20250314-0001",
    segment: Segment = Segment.STORE,
    status: OrderStatus = OrderStatus.PENDING,
    city: Optional[str] = "Villavicencio",
    lines: Optional[list[CartLine]] = None,
) -> Order:
    """Helper to create a pending Order with one history entry."""
    lines = lines or [CartLine.priced("Pollo Entero", 2, 19000)]
    coordinator = resolve_coordinator(segment, city)
    return Order(
        order_id=order_id,
        customer_phone=BUSINESS_PHONE,
        segment=segment,
        business_name="Tienda La 14" if segment != Segment.HOME else None,
        customer_name="María García" if segment == Segment.HOME else None,
        city=city,
        responsible_coordinator_type=coordinator.coordinator_type,
        lines=lines,
        total=sum(line.subtotal for line in lines),
        assigned_coordinator=AssignedCoordinator(
            coordinator_type=coordinator.coordinator_type,
            name=coordinator.name,
            contact=coordinator.contact,
        ),
        status=status,
        status_history=[StatusEntry(status=OrderStatus.PENDING, timestamp=T0, note=INITIAL_HISTORY_NOTE)],
        created_at=T0,
    )
