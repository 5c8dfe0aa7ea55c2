"""
auth/issuer.py -- Find-or-create sessions for authenticated principals.

The issuer never decides who someone is; it is handed a Principal the realm
already vouched for. Its only job is to keep the one-live-session-per-user
rule under concurrent logins:

  1. Fast path: the principal already has a live session -> return it as is.
  2. Otherwise build a candidate session and offer it to
     SessionStore.put_if_absent(). If another login got there first, the
     store hands back that session and the candidate is discarded.

Reused sessions are returned unchanged, so their expires_at (and the
expiresIn reported to the client) keeps counting down.

With allow_multiple_sessions=True every login mints a new session instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import timedelta

from auth.models import Principal, Session
from auth.sessions import SessionStore
from auth.tokens import new_session_token

logger = logging.getLogger("tollgate.auth.issuer")


class SessionIssuer:
    def __init__(
        self,
        store: SessionStore,
        ttl_seconds: int,
        allow_multiple_sessions: bool = False,
        token_factory: Callable[[], str] = new_session_token,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.allow_multiple_sessions = allow_multiple_sessions
        self._token_factory = token_factory

    def issue_or_reuse(self, principal: Principal) -> Session:
        """Return the principal's live session, creating one if needed."""
        if self.allow_multiple_sessions:
            session = self._new_session(principal)
            self.store.put(session)
            logger.info("Issued session for %s", principal.username)
            return session

        existing = self.store.get_active_by_principal(principal.username)
        if existing is not None:
            logger.info("Reused session for %s", principal.username)
            return existing

        candidate = self._new_session(principal)
        winner = self.store.put_if_absent(candidate)
        if winner is candidate:
            logger.info("Issued session for %s", principal.username)
        else:
            logger.info("Reused session for %s (concurrent login)", principal.username)
        return winner

    def _new_session(self, principal: Principal) -> Session:
        now = self.store.now()
        return Session(
            token=self._token_factory(),
            principal=principal,
            issued_at=now,
            expires_at=now + self.ttl,
        )
