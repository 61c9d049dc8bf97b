"""
In-memory session table backing the login gate.

Sessions live for the lifetime of the process; a restart logs everyone
out. The lock guards only the mapping access, never any I/O.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Authenticated session"""
    token: str
    identity: str
    created_at: float


class SessionStore:
    """
    Thread-safe mapping from opaque session token to identity.

    ``max_age`` is an optional expiry in seconds. Left unset, sessions
    never expire and end only on logout or restart.
    """

    def __init__(self, max_age: Optional[float] = None):
        self.max_age = max_age
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _new_token() -> str:
        return f"sess_{time.time_ns()}_{uuid.uuid4().hex}"

    def create(self, identity: str) -> str:
        """Start a session for identity and return its token"""
        session = Session(token=self._new_token(), identity=identity, created_at=time.time())
        with self._lock:
            self._sessions[session.token] = session
        logger.info(f"Session created for {identity}")
        return session.token

    def lookup(self, token: Optional[str]) -> Optional[str]:
        """Return the identity bound to token, or None"""
        if not token:
            return None

        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if self.max_age is not None and time.time() - session.created_at > self.max_age:
                del self._sessions[token]
                return None
            return session.identity

    def destroy(self, token: Optional[str]) -> None:
        """Drop the session; unknown tokens are ignored"""
        if not token:
            return
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info(f"Session destroyed for {session.identity}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
