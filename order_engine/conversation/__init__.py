from order_engine.conversation.cart_resolver import resolve
from order_engine.conversation.profile_slots import ProfileSlots
from order_engine.conversation.session_store import (
    CollectingBusinessProfile,
    CollectingCart,
    Idle,
    ProfileKind,
    Session,
    SessionStore,
)

__all__ = [
    "resolve",
    "ProfileSlots",
    "Session",
    "SessionStore",
    "Idle",
    "CollectingBusinessProfile",
    "CollectingCart",
    "ProfileKind",
]
