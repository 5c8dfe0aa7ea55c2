"""
auth/logout.py -- Unconditional, idempotent session invalidation.

invalidate() succeeds for every input: a live token, an expired one, one
that never existed, or a string that is not a token at all. Logout must
never tell a caller whether a token was real.
"""

from __future__ import annotations

import logging

from auth.sessions import SessionStore

logger = logging.getLogger("tollgate.auth.logout")


class LogoutHandler:
    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def invalidate(self, token: str | None) -> None:
        if not token:
            return
        if self.store.remove(token):
            logger.info("Session revoked")
