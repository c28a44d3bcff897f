"""
Coordinator routing table.

Maps (segment, city) to the coordinator who handles an order. Rules are
an explicit ordered list evaluated top to bottom; the first rule whose
predicate matches wins. Order matters for overlapping conditions: a
wholesaler in an outlying municipality still goes to the wholesaler
coordinator.

The same table decides which desk a customer profile belongs to and
which operators receive new-order notifications.

Usage:
    coordinator = resolve_coordinator(Segment.STORE, "Acacías")
    assert coordinator.coordinator_type == CoordinatorType.MASS_MARKET
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from order_engine.config import settings
from order_engine.schemas.customer_schema import CoordinatorType, Segment
from order_engine.utils import fold_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinator:
    """A human coordinator an order can be assigned to."""

    coordinator_type: CoordinatorType
    name: str
    contact: str


_coords = settings.coordinators

COORDINATORS: dict[CoordinatorType, Coordinator] = {
    CoordinatorType.WHOLESALER: Coordinator(
        CoordinatorType.WHOLESALER, "Coordinador Mayoristas", _coords.wholesaler_phone
    ),
    CoordinatorType.HORECA_EXECUTIVE: Coordinator(
        CoordinatorType.HORECA_EXECUTIVE, "Ejecutivo Horecas", _coords.horeca_phone
    ),
    CoordinatorType.MASS_MARKET: Coordinator(
        CoordinatorType.MASS_MARKET, "Coordinador de Masivos", _coords.mass_market_phone
    ),
    CoordinatorType.COMMERCIAL_DIRECTOR: Coordinator(
        CoordinatorType.COMMERCIAL_DIRECTOR, "Director Comercial", _coords.commercial_director_phone
    ),
}

# Stored folded (lowercase, no accents); compared against fold_text(city).
OUTLYING_MUNICIPALITIES: frozenset[str] = frozenset({
    "acacias", "barranca de upia", "guamal", "san martin", "cubarral",
    "granada", "puerto lopez", "puerto gaitan", "paratebueno", "maya",
    "villanueva", "monterrey", "aguazul", "tauramena", "yopal",
    "paz de ariporo", "trinidad", "hato corozal", "tame",
    "san jose del guaviare",
})

COMMERCIAL_SEGMENTS: frozenset[Segment] = frozenset({
    Segment.STORE, Segment.GRILL_HOUSE, Segment.STANDARD_RESTAURANT,
})


def is_outlying_municipality(city: Optional[str]) -> bool:
    """True when the city names one of the outlying municipalities.

    Matching is case- and accent-insensitive and tolerates extra text
    around the name ("Acacías - Meta"), but only on whole words, so
    "Támesis" does not match "tame".
    """
    if not city:
        return False
    folded = fold_text(city)
    return any(re.search(rf"\b{re.escape(m)}\b", folded) for m in OUTLYING_MUNICIPALITIES)


@dataclass(frozen=True)
class RoutingRule:
    """A single routing rule: when predicate matches, assign coordinator_type."""

    name: str
    predicate: Callable[[Optional[Segment], Optional[str]], bool]
    coordinator_type: CoordinatorType


ROUTING_RULES: list[RoutingRule] = [
    RoutingRule("wholesaler",
                lambda segment, city: segment == Segment.WHOLESALER,
                CoordinatorType.WHOLESALER),
    RoutingRule("premium_restaurant",
                lambda segment, city: segment == Segment.PREMIUM_RESTAURANT,
                CoordinatorType.HORECA_EXECUTIVE),
    RoutingRule("home",
                lambda segment, city: segment == Segment.HOME,
                CoordinatorType.MASS_MARKET),
    RoutingRule("outlying_municipality",
                lambda segment, city: is_outlying_municipality(city),
                CoordinatorType.MASS_MARKET),
    RoutingRule("commercial_segment",
                lambda segment, city: segment in COMMERCIAL_SEGMENTS,
                CoordinatorType.COMMERCIAL_DIRECTOR),
    RoutingRule("fallback",
                lambda segment, city: True,
                CoordinatorType.COMMERCIAL_DIRECTOR),
]


def match_rule(segment: Optional[Segment], city: Optional[str] = None) -> RoutingRule:
    """Return the first rule that matches. The fallback rule always matches."""
    for rule in ROUTING_RULES:
        if rule.predicate(segment, city):
            return rule
    raise RuntimeError("Routing table has no fallback rule")


def resolve_coordinator(segment: Optional[Segment], city: Optional[str] = None) -> Coordinator:
    """Resolve the coordinator for a segment and city."""
    rule = match_rule(segment, city)
    coordinator = COORDINATORS[rule.coordinator_type]
    logger.debug(
        "Routing segment=%s city=%r via rule '%s' -> %s",
        segment.value if segment else None, city, rule.name, coordinator.name,
    )
    return coordinator


def segment_desk(segment: Segment) -> CoordinatorType:
    """Coordinator type responsible for a segment regardless of city.

    Used for notification targeting, which keys on the segment alone.
    """
    return match_rule(segment, None).coordinator_type
