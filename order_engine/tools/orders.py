"""
In-memory order store.

Mirrors the order collection of the document store: ``order_id`` carries
a unique constraint, and whole-document replacement is guarded by a
version number so concurrent writers cannot silently overwrite each
other.
"""

import logging
import threading
from typing import Callable, Optional

from order_engine.errors import ConcurrentModificationError, DuplicateOrderIdError
from order_engine.schemas.order_schema import Order

logger = logging.getLogger(__name__)


class OrderStore:
    """Orders keyed by order_id."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.Lock()

    def insert(self, order: Order) -> Order:
        """Insert a new order.

        Raises:
            DuplicateOrderIdError: If the id is already taken.
        """
        with self._lock:
            if order.order_id in self._orders:
                raise DuplicateOrderIdError(order.order_id)
            stored = order.model_copy(deep=True)
            stored.version = 1
            self._orders[stored.order_id] = stored
            logger.debug("Order inserted: %s", stored.order_id)
            return stored.model_copy(deep=True)

    def get(self, order_id: str) -> Optional[Order]:
        """Retrieve an order by id."""
        with self._lock:
            order = self._orders.get(order_id)
            return order.model_copy(deep=True) if order else None

    def replace(self, order: Order, expected_version: int) -> Order:
        """Replace a stored order if its version still matches.

        Raises:
            ConcurrentModificationError: If another write landed first.
        """
        with self._lock:
            current = self._orders.get(order.order_id)
            actual = current.version if current else 0
            if actual != expected_version:
                raise ConcurrentModificationError(order.order_id, expected_version, actual)
            stored = order.model_copy(deep=True)
            stored.version = expected_version + 1
            self._orders[stored.order_id] = stored
            return stored.model_copy(deep=True)

    def find(self, predicate: Optional[Callable[[Order], bool]] = None) -> list[Order]:
        """Return orders matching predicate, oldest first."""
        with self._lock:
            orders = sorted(self._orders.values(), key=lambda o: o.created_at)
            return [o.model_copy(deep=True) for o in orders if predicate is None or predicate(o)]

    def reset(self) -> None:
        """Clear all orders. Used by test fixtures for isolation."""
        with self._lock:
            self._orders.clear()
