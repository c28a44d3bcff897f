"""Conversation log schemas kept per phone number."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Speaker(str, Enum):
    USER = "user"
    BOT = "bot"


class InteractionKind(str, Enum):
    ORDER = "order"
    REGISTRATION = "registration"
    GENERAL = "general"


class KeyInteractionKind(str, Enum):
    ORDER = "order"
    REGISTRATION = "registration"


class LoggedMessage(BaseModel):
    """A single message in the conversation log."""

    speaker: Speaker
    text: str
    timestamp: datetime
    interaction_kind: Optional[InteractionKind] = None


class KeyInteraction(BaseModel):
    """A milestone worth surfacing in the dashboard (registration, order)."""

    kind: KeyInteractionKind
    content: str
    timestamp: datetime


class ConversationLog(BaseModel):
    """Complete chat record for one phone number."""

    phone: str
    customer_name: Optional[str] = None
    business_name: Optional[str] = None
    messages: list[LoggedMessage] = Field(default_factory=list)
    key_interactions: list[KeyInteraction] = Field(default_factory=list)
    current_flow: Optional[str] = None
    started_at: datetime
    last_message_at: datetime
