"""
Outbound message channel.

In production this wraps the WhatsApp Business API. The engine only
needs ``send_text(phone, text)``; delivery failures surface as
MessageChannelError.
"""

import logging
from typing import Protocol

from order_engine.errors import MessageChannelError

logger = logging.getLogger(__name__)


class MessageChannel(Protocol):
    def send_text(self, phone: str, text: str) -> None: ...


class RecordingChannel:
    """Channel that keeps every message in an outbox. Used by the demo and tests."""

    def __init__(self) -> None:
        self.outbox: list[tuple[str, str]] = []
        self.failing_numbers: set[str] = set()

    def send_text(self, phone: str, text: str) -> None:
        if phone in self.failing_numbers:
            raise MessageChannelError(phone, "recipient unreachable")
        self.outbox.append((phone, text))
        logger.debug("Message queued for %s (%d chars)", phone, len(text))

    def messages_for(self, phone: str) -> list[str]:
        return [text for to, text in self.outbox if to == phone]
