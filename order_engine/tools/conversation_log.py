"""In-memory conversation log store, one log per phone number."""

import logging
import threading
from datetime import datetime
from typing import Optional

from order_engine.schemas.conversation_schema import (
    ConversationLog,
    InteractionKind,
    KeyInteraction,
    KeyInteractionKind,
    LoggedMessage,
    Speaker,
)

logger = logging.getLogger(__name__)


class ConversationLogStore:
    """Append-only chat history and key interactions."""

    def __init__(self) -> None:
        self._logs: dict[str, ConversationLog] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, phone: str, now: datetime) -> ConversationLog:
        log = self._logs.get(phone)
        if log is None:
            log = ConversationLog(phone=phone, started_at=now, last_message_at=now)
            self._logs[phone] = log
        return log

    def append_message(
        self,
        phone: str,
        speaker: Speaker,
        text: str,
        now: datetime,
        interaction_kind: Optional[InteractionKind] = None,
        current_flow: Optional[str] = None,
    ) -> None:
        with self._lock:
            log = self._get_or_create(phone, now)
            log.messages.append(LoggedMessage(
                speaker=speaker, text=text, timestamp=now, interaction_kind=interaction_kind,
            ))
            log.last_message_at = now
            if current_flow:
                log.current_flow = current_flow

    def add_key_interaction(
        self,
        phone: str,
        kind: KeyInteractionKind,
        content: str,
        now: datetime,
        customer_name: Optional[str] = None,
        business_name: Optional[str] = None,
    ) -> None:
        with self._lock:
            log = self._get_or_create(phone, now)
            log.key_interactions.append(KeyInteraction(kind=kind, content=content, timestamp=now))
            if customer_name:
                log.customer_name = customer_name
            if business_name:
                log.business_name = business_name

    def get(self, phone: str) -> Optional[ConversationLog]:
        with self._lock:
            log = self._logs.get(phone)
            return log.model_copy(deep=True) if log else None
