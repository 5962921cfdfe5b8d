"""In-memory session store for images shared between analysis and ranking.

A client analyses an image once, then ranks search results against it by
session id instead of uploading the image again. Sessions live in process
memory only.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600
DEFAULT_MAX_SESSIONS = 100


@dataclass(frozen=True, slots=True)
class Session:
    session_id: str
    image: str
    created_at: float


class SessionStore:
    """Bounded TTL store keyed by session id.

    Expiry is checked lazily on `get` and eagerly by `sweep_expired`, which the
    scheduler calls on an interval. When full, the entry inserted first is
    evicted regardless of how recently it was read. All operations share one
    lock so route handlers running in the threadpool and the sweep job can
    use the store concurrently.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._lock = threading.Lock()

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.created_at > self.ttl_seconds

    def create(self, session_id: str, image: str) -> Session:
        """Store `image` under `session_id`, replacing any existing session."""
        with self._lock:
            self._sessions.pop(session_id, None)
            if len(self._sessions) >= self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Session capacity reached, evicted %s", evicted_id)
            session = Session(session_id, image, self._clock())
            self._sessions[session_id] = session
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._is_expired(session, self._clock()):
                del self._sessions[session_id]
                return None
            return session

    def end(self, session_id: str) -> bool:
        """Delete a session. Returns whether it existed."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def sweep_expired(self) -> int:
        """Remove every expired session and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                sid for sid, s in self._sessions.items() if self._is_expired(s, now)
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Swept %d expired sessions", len(expired))
        return len(expired)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
