"""
auth/realm.py -- Pluggable credential realms.

A realm answers one question: does this username/password pair identify a
user, and if so, who? The session machinery depends only on the
CredentialRealm protocol, so the storage behind it can change freely.

Shipped realms:
  StaticRealm -- in-memory accounts, handy for tests and embedding.
  IniRealm    -- Shiro-style INI file:
                     [users]
                     foo = bar, admin, editor
                     [names]
                     foo = Foo Bar
                     [emails]
                     foo = foo@example.com
                 Values may be plaintext or bcrypt hashes ($2b$...). Plaintext
                 is hashed once at load so every check costs the same.
  SqlRealm    -- users table managed by auth.store.UserStore.

Timing equalization: PasswordRealm.validate() always runs exactly one bcrypt
check. Unknown users are checked against dummy_hash() at dummy_rounds, the
highest cost found among the realm's stored hashes (the configured rounds when
it has none), so "no such user" and "wrong password" take the same time even
for hashes made with a different cost.

Layer rule: no imports from api/. core/ is imported for typing only.
"""

from __future__ import annotations

import configparser
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import InternalStoreError
from auth.models import Principal
from auth.store import UserStore
from auth.tokens import (
    DEFAULT_BCRYPT_ROUNDS,
    MAX_PASSWORD_BYTES,
    dummy_hash,
    hash_password,
    hash_rounds,
    is_bcrypt_hash,
    verify_password,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("tollgate.auth.realm")


class CredentialRealm(Protocol):
    def validate(self, username: str, password: str) -> Principal | None: ...


@dataclass(frozen=True)
class _Account:
    principal: Principal
    hashed_password: str
    is_active: bool = True
    user_id: int | None = None


class PasswordRealm:
    """Base class for realms that hold bcrypt hashes.

    Subclasses implement _lookup(); validate() owns the comparison so every
    realm gets the same timing behavior.
    """

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        self.dummy_rounds = rounds
        self._costs_seen = False

    def _track_cost(self, hashed: str) -> None:
        """Keep dummy_rounds at the highest cost among stored hashes seen so far."""
        if not is_bcrypt_hash(hashed):
            return
        cost = hash_rounds(hashed)
        if not self._costs_seen or cost > self.dummy_rounds:
            self.dummy_rounds = cost
        self._costs_seen = True

    def _lookup(self, username: str) -> _Account | None:
        raise NotImplementedError

    def _on_success(self, account: _Account) -> None:
        pass

    def validate(self, username: str, password: str) -> Principal | None:
        """Return the Principal for a matching pair, None on any mismatch."""
        account = self._lookup(username)
        if account is None:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password, dummy_hash(self.dummy_rounds))
            return None
        if not verify_password(password, account.hashed_password):
            return None
        if not account.is_active:
            return None
        self._on_success(account)
        return account.principal


class StaticRealm(PasswordRealm):
    """Realm over a fixed set of (Principal, password-or-hash) pairs."""

    def __init__(self, accounts: Iterable[tuple[Principal, str]] = (), rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        super().__init__(rounds)
        self._accounts: dict[str, _Account] = {}
        for principal, secret in accounts:
            if is_bcrypt_hash(secret):
                hashed = secret
            elif len(secret.encode("utf-8")) > MAX_PASSWORD_BYTES:
                raise ValueError(f"password for user {principal.username!r} is longer than {MAX_PASSWORD_BYTES} bytes")
            else:
                hashed = hash_password(secret, rounds=rounds)
            self._track_cost(hashed)
            self._accounts[principal.username] = _Account(principal=principal, hashed_password=hashed)

    def __len__(self) -> int:
        return len(self._accounts)

    def _lookup(self, username: str) -> _Account | None:
        return self._accounts.get(username)


class IniRealm(StaticRealm):
    """StaticRealm loaded from a Shiro-style INI file (see module docstring)."""

    def __init__(self, path: str | Path, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        super().__init__(_read_ini_accounts(Path(path)), rounds=rounds)
        logger.info("Loaded %d user(s) from %s", len(self), path)


def _read_ini_accounts(path: Path) -> list[tuple[Principal, str]]:
    parser = configparser.ConfigParser(interpolation=None, delimiters=("=",))
    parser.optionxform = str  # usernames are case-sensitive
    with path.open(encoding="utf-8") as fh:
        parser.read_file(fh)
    if not parser.has_section("users"):
        raise ValueError(f"{path}: missing [users] section")

    names = dict(parser.items("names")) if parser.has_section("names") else {}
    emails = dict(parser.items("emails")) if parser.has_section("emails") else {}

    accounts: list[tuple[Principal, str]] = []
    for username, value in parser.items("users"):
        secret, *roles = [part.strip() for part in value.split(",")]
        if not secret:
            raise ValueError(f"{path}: empty password for user {username!r}")
        if not is_bcrypt_hash(secret) and len(secret.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"{path}: password for user {username!r} is longer than {MAX_PASSWORD_BYTES} bytes")
        principal = Principal(
            username=username,
            name=names.get(username, username),
            email=emails.get(username, ""),
            roles=tuple(r for r in roles if r),
        )
        accounts.append((principal, secret))
    return accounts


class SqlRealm(PasswordRealm):
    """Realm backed by UserStore. Disabled users never authenticate."""

    def __init__(self, store: UserStore, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        super().__init__(rounds)
        self.store = store
        for user in store.list_users():
            self._track_cost(user.hashed_password)

    def _lookup(self, username: str) -> _Account | None:
        try:
            user = self.store.get_by_username(username)
        except SQLAlchemyError as exc:
            raise InternalStoreError("user lookup failed") from exc
        if user is None:
            return None
        # Users added after startup may carry a higher cost.
        self._track_cost(user.hashed_password)
        return _Account(
            principal=user.to_principal(),
            hashed_password=user.hashed_password,
            is_active=user.is_active,
            user_id=user.id,
        )

    def _on_success(self, account: _Account) -> None:
        if account.user_id is None:
            return
        try:
            self.store.update_last_login(account.user_id)
        except SQLAlchemyError:
            # The login itself is valid; a missed timestamp is not worth a 500.
            logger.warning("Could not record last_login for %s", account.principal.username, exc_info=True)

    def close(self) -> None:
        self.store.close()


def build_realm(settings: Settings) -> CredentialRealm:
    """Construct the realm selected by settings: SQL, then INI, then empty."""
    if settings.users_db_url:
        logger.info("Using SQL credential realm")
        return SqlRealm(UserStore(settings.users_db_url), rounds=settings.bcrypt_rounds)
    if settings.users_file:
        logger.info("Using INI credential realm (%s)", settings.users_file)
        return IniRealm(settings.users_file, rounds=settings.bcrypt_rounds)
    logger.warning("No credential realm configured -- using an empty realm")
    return StaticRealm(rounds=settings.bcrypt_rounds)
