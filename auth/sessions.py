"""
auth/sessions.py -- In-process, TTL-aware session registry.

SessionStore keeps two indices:
  token    -> Session   (what bearer lookups hit)
  username -> token     (what the issuer consults to reuse a live session)

Both live behind one threading.Lock. FastAPI runs sync work in a thread pool,
so the store must be safe for arbitrary concurrent callers; the lock is held
only for dictionary work, never for I/O or hashing.

Expiry is lazy: every read compares the session's absolute expires_at with the
clock and evicts it on the spot if it has passed. sweep() does the same for
entries nobody reads any more; it only reclaims memory and never changes what
a lookup returns.

Sessions are not persisted. A restart logs everyone out.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from auth.errors import InternalStoreError
from auth.models import Session

logger = logging.getLogger("tollgate.auth.sessions")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Concurrent token and principal indices with lazy expiry.

    Usage:
        store = SessionStore()
        winner = store.put_if_absent(session)
        store.get(winner.token)        # Session, or None once expired/removed
        store.remove(winner.token)     # always succeeds
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._by_principal: dict[str, str] = {}

    def now(self) -> datetime:
        return self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, session: Session) -> None:
        """Insert or overwrite a session in both indices.

        The principal index now points at this session. A previous token for
        the same principal stays resolvable until it expires or is removed.
        """
        with self._lock:
            self._insert(session)

    def put_if_absent(self, session: Session) -> Session:
        """Insert session unless its principal already has a live one.

        Returns whichever session is live for the principal afterwards: the
        existing one if it won, otherwise `session`. Check and insert happen
        under one lock acquisition, so concurrent callers for one principal
        all get the same winner.
        """
        now = self._clock()
        with self._lock:
            existing = self._active_for(session.principal.username, now)
            if existing is not None:
                return existing
            self._insert(session)
            return session

    def remove(self, token: str) -> bool:
        """Drop a token. Idempotent: unknown, expired or garbage tokens are fine.

        Returns True if a session was actually dropped. Callers that face the
        network must not let this value change their response.
        """
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return False
            self._evict(session)
            return True

    def sweep(self) -> int:
        """Evict every expired session. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [s for s in self._sessions.values() if s.is_expired(now)]
            for session in expired:
                self._evict(session)
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, token: str) -> Session | None:
        """Return the live session for token, or None if absent, expired or removed."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(now):
                self._evict(session)
                return None
            return session

    def get_active_by_principal(self, username: str) -> Session | None:
        """Return the principal's current live session, or None."""
        now = self._clock()
        with self._lock:
            return self._active_for(username, now)

    # ------------------------------------------------------------------
    # Internals -- caller holds self._lock
    # ------------------------------------------------------------------

    def _active_for(self, username: str, now: datetime) -> Session | None:
        token = self._by_principal.get(username)
        if token is None:
            return None
        session = self._sessions.get(token)
        if session is None:
            # Principal index outlived its session; repair it.
            del self._by_principal[username]
            return None
        if session.is_expired(now):
            self._evict(session)
            return None
        return session

    def _insert(self, session: Session) -> None:
        current = self._sessions.get(session.token)
        if current is not None and current.principal.username != session.principal.username:
            raise InternalStoreError("session token collision")
        self._sessions[session.token] = session
        self._by_principal[session.principal.username] = session.token

    def _evict(self, session: Session) -> None:
        self._sessions.pop(session.token, None)
        username = session.principal.username
        if self._by_principal.get(username) == session.token:
            del self._by_principal[username]
