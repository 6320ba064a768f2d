"""Process-wide authentication state.

Endpoints never look the session up on their own; they receive the store
through ``get_session_store`` and ask it to resolve the cookie token. Other
parts of the application observe sign-in and sign-out through
``subscribe``, which hands back the matching unsubscribe callable.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import settings

logger = logging.getLogger(__name__)


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


@dataclass(frozen=True)
class Account:
    id: str
    email: Optional[str] = None
    email_confirmed: bool = False


Listener = Callable[[AuthEvent, Optional[Account]], None]


@dataclass
class _Entry:
    account: Account
    expires_at: float


class SessionStore:
    def __init__(self, cache_seconds: int | None = None) -> None:
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.session_cache_seconds
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}
        self._listeners: list[Listener] = []

    # --- Subscriptions ---------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    # --- Tokens ----------------------------------------------------------
    def remember(
        self,
        token: str,
        account: Account,
        event: AuthEvent | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        """Cache ``account`` for ``token`` and optionally announce ``event``."""
        ttl = self.cache_seconds if ttl_seconds is None else ttl_seconds
        now = time.monotonic()
        with self._lock:
            self._sweep_expired(now)
            self._entries[token] = _Entry(account=account, expires_at=now + ttl)
        if event is not None:
            self._emit(event, account)

    def lookup(self, token: str | None) -> Optional[Account]:
        if not token:
            return None
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            if entry.expires_at <= time.monotonic():
                del self._entries[token]
                return None
            return entry.account

    def forget(self, token: str | None, event: AuthEvent | None = AuthEvent.SIGNED_OUT) -> Optional[Account]:
        if not token:
            return None
        with self._lock:
            entry = self._entries.pop(token, None)
        account = entry.account if entry else None
        if event is not None:
            self._emit(event, account)
        return account

    def announce(self, event: AuthEvent, account: Optional[Account]) -> None:
        self._emit(event, account)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep_expired(self, now: float) -> None:
        # caller holds the lock
        expired = [token for token, entry in self._entries.items() if entry.expires_at <= now]
        for token in expired:
            del self._entries[token]

    def _emit(self, event: AuthEvent, account: Optional[Account]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, account)
            except Exception:
                logger.exception("session_listener_failed event=%s listener=%r", event.value, listener)


session_store = SessionStore()


def get_session_store() -> SessionStore:
    return session_store
