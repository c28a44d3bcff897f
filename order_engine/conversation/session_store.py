"""
Ephemeral per-user dialogue session storage.

A session holds the customer's segment and the current dialogue mode.
Modes are a tagged union: each mode carries only the data that makes
sense in it, so a cart can exist only while collecting a cart.

The store does no dialogue logic. Callers run load -> mutate -> save
inside ``lock(user_id)``; different users never block each other.

Usage:
    with store.lock(user_id):
        session = store.load(user_id)
        session.mode = CollectingCart()
        store.save(session)
"""

import copy
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterator, Optional, Union

from order_engine.config import settings
from order_engine.logging_context import get_conversation_logger
from order_engine.schemas.order_schema import CartLine
from order_engine.schemas.customer_schema import Segment
from order_engine.utils import utc_now

logger = get_conversation_logger(__name__)


class ProfileKind(str, Enum):
    HOME = "home"
    BUSINESS = "business"


@dataclass
class Idle:
    """Waiting for a keyword. No payload."""


@dataclass
class CollectingBusinessProfile:
    """Registration in progress; slots hold the fields parsed so far."""

    kind: ProfileKind
    slots: dict[str, str] = field(default_factory=dict)


@dataclass
class CollectingCart:
    """Order taking in progress."""

    cart: list[CartLine] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(line.subtotal for line in self.cart)


DialogueMode = Union[Idle, CollectingBusinessProfile, CollectingCart]


@dataclass
class Session:
    """Dialogue state for one user."""

    user_id: str
    segment: Optional[Segment] = None
    mode: DialogueMode = field(default_factory=Idle)

    @property
    def cart(self) -> list[CartLine]:
        """The cart while collecting one, otherwise empty."""
        if isinstance(self.mode, CollectingCart):
            return self.mode.cart
        return []

    def reset(self) -> None:
        """Drop any cart or partial registration and go back to Idle."""
        self.mode = Idle()


class SessionStore:
    """In-memory session storage with per-user locks and inactivity deadlines."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        idle_timeout_minutes: Optional[float] = None,
    ) -> None:
        self._clock = clock
        timeout = idle_timeout_minutes or settings.session.idle_timeout_minutes
        self._idle_timeout = timedelta(minutes=timeout)
        self._sessions: dict[str, Session] = {}
        self._deadlines: dict[str, datetime] = {}
        # Entries vanish once no caller holds or waits on the lock.
        self._user_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    @contextmanager
    def lock(self, user_id: str) -> Iterator[None]:
        """Critical section for one user's load-mutate-save cycle."""
        user_lock = self._user_lock(user_id)
        with user_lock:
            yield

    def load(self, user_id: str) -> Session:
        """Return a copy of the user's session, or a fresh Idle one."""
        with self._registry_lock:
            session = self._sessions.get(user_id)
            if session is None:
                return Session(user_id=user_id)
            return copy.deepcopy(session)

    def save(self, session: Session) -> None:
        with self._registry_lock:
            self._sessions[session.user_id] = copy.deepcopy(session)
        logger.debug("Session saved for %s in mode %s", session.user_id, type(session.mode).__name__)

    def touch(self, user_id: str) -> None:
        """Push the user's inactivity deadline forward."""
        with self._registry_lock:
            self._deadlines[user_id] = self._clock() + self._idle_timeout

    def discard(self, user_id: str) -> None:
        with self._registry_lock:
            self._sessions.pop(user_id, None)
            self._deadlines.pop(user_id, None)
        logger.info("Session discarded for %s", user_id)

    def is_idle(self, user_id: str, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        with self._registry_lock:
            deadline = self._deadlines.get(user_id)
        return deadline is not None and deadline <= now

    def idle_users(self, now: Optional[datetime] = None) -> list[str]:
        """Users whose inactivity deadline has passed."""
        now = now or self._clock()
        with self._registry_lock:
            return [uid for uid, deadline in self._deadlines.items() if deadline <= now]
