"""Session store, the only place sessions are created, read or destroyed.

Sessions live in process memory for the lifetime of the process.  Every
session carries a TTL measured from its last activity; ``evict_expired``
drops idle sessions and ``create`` enforces a cap by evicting the least
recently active one.  The store also hands out one ``asyncio.Lock`` per
session id so that foreground turns and background deliveries never mutate
the same session concurrently.  A lock lives only while its session exists
or somebody is still holding or waiting on it.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from origination.config import settings
from origination.models.conversation import Session, utcnow

log = logging.getLogger("origination.store")


def new_session_id() -> str:
    return secrets.token_urlsafe(18)


class SessionStore:
    """In-memory keyed container of sessions with TTL eviction."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_sessions: Optional[int] = None,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
        self._max = max_sessions if max_sessions is not None else settings.max_sessions
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._delete_listeners: list[Callable[[str], None]] = []

    # ── CRUD ──────────────────────────────────────────────────

    def get(self, session_id: str) -> Optional[Session]:
        """Look up a live session. Expired sessions are evicted on access."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._expired(session, utcnow()):
            log.info("Session %s expired", session_id)
            self.delete(session_id)
            return None
        return session

    def create(self, session_id: Optional[str] = None) -> Session:
        """Create and register a fresh session."""
        session_id = session_id or new_session_id()
        if session_id in self._sessions:
            raise ValueError(f"Session {session_id} already exists")

        if self._max and len(self._sessions) >= self._max:
            self.evict_expired()
        if self._max and len(self._sessions) >= self._max:
            oldest = min(self._sessions.values(), key=lambda s: s.last_active)
            log.warning("Session cap reached, evicting %s", oldest.id)
            self.delete(oldest.id)

        session = Session(id=session_id)
        self._sessions[session_id] = session
        log.info("Session created: %s", session_id)
        return session

    def put(self, session: Session) -> bool:
        """Persist a session and refresh its activity timestamp.

        A session deleted while its turn was running stays deleted; the
        write is dropped and False returned.
        """
        if session.id not in self._sessions:
            log.info("Not persisting %s: session was deleted", session.id)
            return False
        session.last_active = utcnow()
        self._sessions[session.id] = session
        return True

    def delete(self, session_id: str) -> bool:
        """Destroy a session. Returns False if it did not exist."""
        existed = self._sessions.pop(session_id, None) is not None
        if session_id not in self._lock_users:
            self._locks.pop(session_id, None)
        if existed:
            log.info("Session deleted: %s", session_id)
            for listener in self._delete_listeners:
                listener(session_id)
        return existed

    def on_delete(self, listener: Callable[[str], None]) -> None:
        """Call ``listener(session_id)`` whenever a session is deleted or evicted."""
        self._delete_listeners.append(listener)

    # ── Locking ───────────────────────────────────────────────

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[None]:
        """Hold the per-session lock for the duration of the block."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                if session_id not in self._sessions:
                    self._locks.pop(session_id, None)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    # ── Eviction ──────────────────────────────────────────────

    def _expired(self, session: Session, now: datetime) -> bool:
        if self._ttl <= 0:
            return False
        return now - session.last_active > timedelta(seconds=self._ttl)

    def evict_expired(self, now: Optional[datetime] = None) -> list[str]:
        """Drop every session idle for longer than the TTL."""
        now = now or datetime.now(timezone.utc)
        expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for sid in expired:
            self.delete(sid)
        if expired:
            log.info("Evicted %d expired session(s)", len(expired))
        return expired

    # ── Introspection ─────────────────────────────────────────

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def ids(self) -> list[str]:
        return list(self._sessions)
