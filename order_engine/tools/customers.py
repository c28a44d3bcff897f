"""
In-memory customer profile store.

In production this is the customer collection of the document store,
keyed uniquely by phone number. Reads return copies so callers cannot
mutate stored documents behind the store's back.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from order_engine.schemas.customer_schema import CustomerProfile, ProfileUpdate, Segment
from order_engine.tools.routing import resolve_coordinator
from order_engine.utils import normalize_phone

logger = logging.getLogger(__name__)


class CustomerStore:
    """Customer profiles keyed by normalized phone number."""

    def __init__(self) -> None:
        self._profiles: dict[str, CustomerProfile] = {}
        self._lock = threading.Lock()

    def get(self, phone: str) -> Optional[CustomerProfile]:
        """Look up a customer by phone number. Returns None if not found."""
        with self._lock:
            profile = self._profiles.get(normalize_phone(phone))
            return profile.model_copy(deep=True) if profile else None

    def upsert(self, profile: CustomerProfile) -> CustomerProfile:
        with self._lock:
            stored = profile.model_copy(deep=True)
            self._profiles[stored.phone] = stored
            return stored.model_copy(deep=True)

    def all(self) -> list[CustomerProfile]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._profiles.values()]

    def reset(self) -> None:
        """Clear all profiles. Used by test fixtures for isolation."""
        with self._lock:
            self._profiles.clear()


def register_customer(
    store: CustomerStore, phone: str, update: ProfileUpdate, now: datetime
) -> CustomerProfile:
    """Create or update a profile from registration data.

    A business customer keeps its business segment even when the update
    comes from the home flow. The responsible coordinator type is derived
    from the routing table here, at save time.
    """
    phone = normalize_phone(phone)
    existing = store.get(phone)

    segment = update.segment
    if existing and existing.segment.is_business and segment == Segment.HOME:
        logger.info("Keeping business segment %s for %s", existing.segment.value, phone)
        segment = existing.segment

    fields = update.model_dump(exclude={"segment"}, exclude_none=True)

    if existing:
        profile = existing.model_copy(update=fields)
        profile.segment = segment
        profile.interaction_count = existing.interaction_count + 1
        profile.last_active_at = now
    else:
        profile = CustomerProfile(
            phone=phone,
            segment=segment,
            responsible_coordinator_type=resolve_coordinator(segment, update.city).coordinator_type,
            registered_at=now,
            last_active_at=now,
            **fields,
        )

    profile.responsible_coordinator_type = resolve_coordinator(
        profile.segment, profile.city
    ).coordinator_type
    saved = store.upsert(profile)
    logger.info(
        "Customer %s saved as %s (desk: %s)",
        phone, saved.segment.value, saved.responsible_coordinator_type.value,
    )
    return saved


def record_interaction(store: CustomerStore, phone: str, now: datetime) -> Optional[CustomerProfile]:
    """Bump the interaction counter and activity time of a known customer."""
    profile = store.get(phone)
    if profile is None:
        return None
    profile.interaction_count += 1
    profile.last_active_at = now
    return store.upsert(profile)
