"""In-memory store of booking sessions with idle expiry."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from core.config import settings
from domain.errors import NotFoundError
from .state import BookingSession


logger = logging.getLogger(__name__)


class SessionStore:
    """
    Booking sessions keyed by id.

    Sessions idle for longer than the TTL are dropped on access. Nothing in
    the store outlives the process.
    """

    def __init__(self, ttl_minutes: Optional[int] = None):
        self.ttl = timedelta(minutes=ttl_minutes or settings.session_ttl_minutes)
        self._sessions: Dict[str, BookingSession] = {}
        self._lock = threading.Lock()

    def save(self, session: BookingSession) -> BookingSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> BookingSession:
        """
        Live session by id.

        Raises:
            NotFoundError: If the session never existed or has expired
        """
        with self._lock:
            self._purge_expired()
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found or expired", {"session_id": session_id})
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def _purge_expired(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.ttl
        expired = [sid for sid, s in self._sessions.items() if s.updated_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Expired {len(expired)} booking sessions")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
