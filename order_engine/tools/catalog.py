"""Per-segment product catalogs with unit prices in Colombian pesos."""

import logging
from typing import NamedTuple, Optional

from order_engine.schemas.customer_schema import Segment
from order_engine.utils import format_cop

logger = logging.getLogger(__name__)


class CatalogItem(NamedTuple):
    name: str
    price: int


CATALOGS: dict[Segment, list[CatalogItem]] = {
    Segment.WHOLESALER: [
        CatalogItem("Pollo Entero (Caja 10 unidades)", 180000),
        CatalogItem("Presas Mixtas (Caja 20kg)", 160000),
        CatalogItem("Pechuga (Caja 15kg)", 195000),
        CatalogItem("Muslos (Caja 20kg)", 140000),
        CatalogItem("Alitas (Caja 15kg)", 120000),
    ],
    Segment.STORE: [
        CatalogItem("Pollo Entero", 19000),
        CatalogItem("Presas Mixtas (kg)", 18000),
        CatalogItem("Pechuga (kg)", 22000),
        CatalogItem("Muslos (kg)", 16000),
        CatalogItem("Alitas (kg)", 14000),
    ],
    Segment.GRILL_HOUSE: [
        CatalogItem("Pollo Entero", 19000),
        CatalogItem("Presas Mixtas (kg)", 18000),
        CatalogItem("Pechuga (kg)", 22000),
        CatalogItem("Muslos (kg)", 16000),
        CatalogItem("Alitas (kg)", 14000),
        CatalogItem("Menudencias (kg)", 8000),
    ],
    Segment.STANDARD_RESTAURANT: [
        CatalogItem("Pollo Entero", 20000),
        CatalogItem("Pechuga Fileteada (kg)", 24000),
        CatalogItem("Muslos y Contramuslos (kg)", 17000),
        CatalogItem("Alitas (kg)", 15000),
    ],
    Segment.PREMIUM_RESTAURANT: [
        CatalogItem("Pollo Orgánico Entero", 32000),
        CatalogItem("Pechuga Orgánica Fileteada (kg)", 38000),
        CatalogItem("Cortes Premium (kg)", 35000),
        CatalogItem("Alitas Premium (kg)", 25000),
    ],
}

# Segments without their own price list order from this one.
FALLBACK_SEGMENT = Segment.STORE


def get_catalog(segment: Optional[Segment]) -> list[CatalogItem]:
    """Return the price list for a segment, falling back to the store list."""
    if segment is not None and segment in CATALOGS:
        return list(CATALOGS[segment])
    logger.debug("No catalog for segment %s, using %s", segment, FALLBACK_SEGMENT.value)
    return list(CATALOGS[FALLBACK_SEGMENT])


def format_catalog(segment: Optional[Segment]) -> str:
    """Numbered list shown to the customer: '1. Pollo Entero - $19.000'."""
    return "\n".join(
        f"{i}. {item.name} - {format_cop(item.price)}"
        for i, item in enumerate(get_catalog(segment), start=1)
    )
