"""
Finite state machine for order status.

    pending -> in_progress -> completed
    pending | in_progress -> cancelled

``completed`` and ``cancelled`` are terminal. Every allowed move is
listed explicitly in TRANSITIONS; anything else is rejected with the
list of allowed targets.

Usage:
    validate_transition("AV-20250101-0001", OrderStatus.PENDING, OrderStatus.IN_PROGRESS)
    assert replay(order.status_history) == order.status
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from order_engine.errors import InvalidTransitionError
from order_engine.schemas.order_schema import OrderStatus, StatusEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A single valid status change."""

    from_status: OrderStatus
    to_status: OrderStatus


TRANSITIONS: list[Transition] = [
    # --- Work on the order ---
    Transition(OrderStatus.PENDING, OrderStatus.IN_PROGRESS),
    Transition(OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED),

    # --- Cancellation ---
    Transition(OrderStatus.PENDING, OrderStatus.CANCELLED),
    Transition(OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED),
]

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def allowed_targets(current: OrderStatus) -> list[OrderStatus]:
    """Return all statuses reachable from the current one."""
    return [t.to_status for t in TRANSITIONS if t.from_status == current]


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def validate_transition(order_id: str, current: OrderStatus, target: OrderStatus) -> None:
    """
    Check that ``current -> target`` is a listed transition.

    Raises:
        InvalidTransitionError: If no such transition exists.
    """
    if target in allowed_targets(current):
        return
    raise InvalidTransitionError(
        order_id,
        current.value,
        target.value,
        [s.value for s in allowed_targets(current)],
    )


def replay(history: Iterable[StatusEntry], order_id: str = "replay") -> OrderStatus:
    """
    Re-run a status history through the state machine.

    The first entry must be ``pending``; each following entry must be a
    valid transition from the one before it.

    Returns:
        The final status.

    Raises:
        InvalidTransitionError: If the history contains an illegal step.
        ValueError: If the history is empty.
    """
    entries = list(history)
    if not entries:
        raise ValueError("Cannot replay an empty status history")
    if entries[0].status != OrderStatus.PENDING:
        raise InvalidTransitionError(order_id, "<none>", entries[0].status.value,
                                     [OrderStatus.PENDING.value])

    status = entries[0].status
    for entry in entries[1:]:
        validate_transition(order_id, status, entry.status)
        status = entry.status
    logger.debug("Replayed %d history entries for %s -> %s", len(entries), order_id, status.value)
    return status
