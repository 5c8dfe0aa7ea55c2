"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (near-zero logic). Stores, the issuer, and routes do the
work; these types only own the domain shape plus the expiry arithmetic that
every caller must compute the same way.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Principal:
    """An authenticated identity, as resolved by a credential realm.

    username is the unique key: the session store indexes live sessions by it.
    The remaining attributes are whatever the realm knows about the user and
    are passed through to downstream handlers untouched.
    """

    username: str
    name: str = ""
    email: str = ""
    roles: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Session:
    """A bearer session bound to one principal.

    expires_at is absolute and fixed at creation. Reusing a session on a later
    login returns this same object, so the remaining lifetime keeps shrinking.
    """

    token: str
    principal: Principal
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def expires_in(self, now: datetime) -> int:
        """Whole seconds of lifetime left at `now`, never negative.

        Rounded down, so two reads less than a second apart usually return the
        same value. Observing a smaller expiresIn on re-login needs a delay of
        at least one second.
        """
        remaining = (self.expires_at - now).total_seconds()
        return max(0, math.floor(remaining))


@dataclass
class User:
    """A credential record in the SQL realm.

    hashed_password is a bcrypt hash; the plaintext is never stored.
    roles is persisted as a comma-separated string and exposed as a list.
    """

    username: str
    hashed_password: str
    name: str = ""
    email: str = ""
    roles: list[str] = field(default_factory=list)
    id: int | None = None
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True

    def to_principal(self) -> Principal:
        return Principal(
            username=self.username,
            name=self.name or self.username,
            email=self.email,
            roles=tuple(self.roles),
        )
