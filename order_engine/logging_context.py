"""
Per-conversation log stamping.

Every inbound WhatsApp message and every idle-sweep close runs inside
``conversation_scope(phone)``. Loggers obtained via
``get_conversation_logger`` stamp ``record.conversation_id`` with that
phone, so one customer's dialogue, order creation and fan-out can be
grepped together. Outside a scope the id is ``"-"``.

Usage:
    logger = get_conversation_logger(__name__)

    with conversation_scope("573001112233"):
        logger.info("Cart updated")  # record.conversation_id == "573001112233"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_CONVERSATION = "-"

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default=NO_CONVERSATION)


@contextmanager
def conversation_scope(user_id: str) -> Iterator[str]:
    """Bind log records to a user for the duration of the block.

    The previous id is restored on exit, so nested scopes and worker
    threads reusing a context do not leak one customer's id into the next.
    """
    token = _conversation_id.set(user_id)
    try:
        yield user_id
    finally:
        _conversation_id.reset(token)


def current_conversation_id() -> str:
    return _conversation_id.get()


class ConversationIdFilter(logging.Filter):
    """Adds ``conversation_id`` to records. Never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = current_conversation_id()  # type: ignore[attr-defined]
        return True


def get_conversation_logger(name: str) -> logging.Logger:
    """Module logger whose records always carry ``conversation_id``."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, ConversationIdFilter) for f in logger.filters):
        logger.addFilter(ConversationIdFilter())
    return logger
