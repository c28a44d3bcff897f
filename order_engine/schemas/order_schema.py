"""Order, cart line and status-history models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from order_engine.schemas.customer_schema import CoordinatorType, Segment

INITIAL_HISTORY_NOTE = "received from chatbot"


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CartLine(BaseModel):
    """One resolved product line, priced from the segment catalog."""

    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)
    subtotal: int = Field(ge=0)

    @classmethod
    def priced(cls, name: str, quantity: int, unit_price: int) -> "CartLine":
        return cls(name=name, quantity=quantity, unit_price=unit_price,
                   subtotal=quantity * unit_price)


class StatusEntry(BaseModel):
    """A single audit-trail entry. Never mutated once appended."""

    status: OrderStatus
    timestamp: datetime
    operator_id: Optional[str] = None
    operator_email: Optional[str] = None
    note: Optional[str] = None


class AssignedCoordinator(BaseModel):
    """Coordinator snapshot resolved once at finalize time."""

    coordinator_type: CoordinatorType
    name: str
    contact: str


class Order(BaseModel):
    """A placed order with its append-only status history."""

    order_id: str
    customer_phone: str
    segment: Segment
    customer_name: Optional[str] = None
    business_name: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    responsible_coordinator_type: CoordinatorType
    lines: list[CartLine]
    total: int
    assigned_coordinator: AssignedCoordinator
    status: OrderStatus = OrderStatus.PENDING
    status_history: list[StatusEntry] = Field(default_factory=list)
    cancellation_note: Optional[str] = None
    created_at: datetime
    version: int = 0

    @property
    def display_name(self) -> str:
        return self.business_name or self.contact_person or self.customer_name or self.customer_phone
