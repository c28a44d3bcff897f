"""
Free-text order parsing against a segment catalog.

"2 pollo entero, 3 alitas y 1 pechuga" becomes three priced cart lines.
The first catalog entry that matches a fragment wins; there is no
scoring.
"""

import logging
import re
from typing import Optional

from order_engine.errors import NoProductsRecognized
from order_engine.schemas.order_schema import CartLine
from order_engine.tools.catalog import CatalogItem

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"\s*,\s*|\s+y\s+", re.IGNORECASE)
_FRAGMENT = re.compile(r"^(\d+)\s+(.+)$")


def split_fragments(text: str) -> list[str]:
    """Split on commas and the standalone word 'y'."""
    return [f.strip() for f in _SEPARATORS.split(text) if f.strip()]


def match_product(typed: str, catalog: list[CatalogItem]) -> Optional[CatalogItem]:
    """First catalog item whose name contains the typed text, or whose
    first word appears in the typed text. Case-insensitive."""
    typed = typed.strip().lower()
    for item in catalog:
        name = item.name.lower()
        first_word = name.split()[0]
        if typed in name or first_word in typed:
            return item
    return None


def resolve(
    text: str, catalog: list[CatalogItem], cart: list[CartLine]
) -> tuple[list[CartLine], list[CartLine]]:
    """Resolve order text into cart lines.

    Lines are always appended, never merged with existing ones, so the
    same product ordered twice shows up twice.

    Returns:
        (updated_cart, added_lines)

    Raises:
        NoProductsRecognized: If no fragment resolved to a product.
    """
    added: list[CartLine] = []
    for fragment in split_fragments(text):
        match = _FRAGMENT.match(fragment)
        if not match:
            logger.debug("Ignoring fragment without quantity: %r", fragment)
            continue
        quantity = int(match.group(1))
        if quantity == 0:
            logger.debug("Ignoring zero-quantity fragment: %r", fragment)
            continue
        item = match_product(match.group(2), catalog)
        if item is None:
            logger.debug("No catalog match for %r", fragment)
            continue
        added.append(CartLine.priced(item.name, quantity, item.price))

    if not added:
        raise NoProductsRecognized(text)

    logger.info("Resolved %d cart line(s)", len(added))
    return cart + added, added
