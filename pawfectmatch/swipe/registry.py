from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from pawfectmatch.config import DEFAULT_PAGE_SIZE, SESSION_IDLE_SECONDS
from pawfectmatch.session import SwipeSession
from pawfectmatch.swipe.auth import new_session_key

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory swipe sessions keyed by the signed cookie's session key.

    Sessions untouched for ``idle_seconds`` are dropped the next time a
    session is created.
    """

    def __init__(
        self,
        client,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        idle_seconds: float = SESSION_IDLE_SECONDS,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._page_size = page_size
        self._idle_seconds = idle_seconds
        self._now = now
        self._sessions: dict[str, tuple[SwipeSession, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str | None) -> SwipeSession | None:
        if not key:
            return None
        with self._lock:
            entry = self._sessions.get(key)
            if entry is None:
                return None
            session, _ = entry
            self._sessions[key] = (session, self._now())
            return session

    def create(self) -> tuple[str, SwipeSession]:
        session = SwipeSession(self._client, page_size=self._page_size)
        key = new_session_key()
        with self._lock:
            self._purge_idle_locked()
            self._sessions[key] = (session, self._now())
        return key, session

    def get_or_create(self, key: str | None) -> tuple[str, SwipeSession, bool]:
        """Return ``(key, session, created)`` for a possibly unknown key."""
        session = self.get(key)
        if session is not None:
            return key, session, False
        new_key, session = self.create()
        return new_key, session, True

    def _purge_idle_locked(self) -> None:
        cutoff = self._now() - self._idle_seconds
        stale = [key for key, (_, seen) in self._sessions.items() if seen < cutoff]
        for key in stale:
            del self._sessions[key]
        if stale:
            logger.info(f"Dropped {len(stale)} idle swipe session(s).")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
