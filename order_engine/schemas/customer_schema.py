"""Customer classification and profile models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Segment(str, Enum):
    """Customer category; selects the catalog and drives routing."""

    HOME = "home"
    STORE = "store"
    GRILL_HOUSE = "grill_house"
    STANDARD_RESTAURANT = "standard_restaurant"
    PREMIUM_RESTAURANT = "premium_restaurant"
    WHOLESALER = "wholesaler"

    @property
    def is_business(self) -> bool:
        return self is not Segment.HOME


class CoordinatorType(str, Enum):
    """Back-office desk responsible for a group of customers."""

    WHOLESALER = "wholesaler"
    HORECA_EXECUTIVE = "horeca_executive"
    MASS_MARKET = "mass_market"
    COMMERCIAL_DIRECTOR = "commercial_director"


class CustomerProfile(BaseModel):
    """Customer record keyed by phone number."""

    phone: str
    segment: Segment
    name: Optional[str] = None
    business_name: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    products_of_interest: Optional[str] = None
    responsible_coordinator_type: CoordinatorType
    interaction_count: int = 1
    registered_at: datetime
    last_active_at: datetime

    @property
    def display_name(self) -> str:
        return self.business_name or self.contact_person or self.name or self.phone

    def is_complete(self) -> bool:
        """A profile can place orders once its segment's required fields are set."""
        if self.segment.is_business:
            return bool(self.business_name and self.city and self.address and self.contact_person)
        return bool(self.name and self.city and self.address)


class ProfileUpdate(BaseModel):
    """Fields collected during registration, before they are merged into a profile."""

    segment: Segment
    name: Optional[str] = None
    business_name: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    products_of_interest: Optional[str] = None
