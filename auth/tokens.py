"""
auth/tokens.py -- Session token generation and password hashing utilities.

Security design decisions:
  Session tokens: UUID4 strings. uuid4() draws 122 random bits from os.urandom,
       so guessing or colliding with a live token is computationally infeasible.
       Tokens are opaque: they carry no claims and are only meaningful as keys
       into the in-process SessionStore, which is what makes logout immediate.

  Passwords: bcrypt, used directly (no passlib wrapper). Bcrypt's cost factor
       makes brute-force of stolen hashes expensive. dummy_hash() enables timing
       equalization in PasswordRealm.validate() so response time does not
       reveal whether a username exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from functools import lru_cache

import bcrypt

DEFAULT_BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes of its input; newer releases refuse more.
MAX_PASSWORD_BYTES = 72

# bcrypt hashes start with $2a$, $2b$ or $2y$. Anything else in a realm file is
# treated as a plaintext password and hashed on load.
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def new_session_token() -> str:
    """Return a fresh opaque bearer token (canonical UUID4 string)."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises ValueError for passwords longer than MAX_PASSWORD_BYTES when encoded
    as UTF-8, whatever the installed bcrypt release would do with them.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password is longer than {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the realm.
        return False


def is_bcrypt_hash(value: str) -> bool:
    return value.startswith(_BCRYPT_PREFIXES)


@lru_cache(maxsize=8)
def dummy_hash(rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return a throwaway hash with the given cost, computed once per cost.

    Always call verify_password() against this when a username does not exist.
    Matching the cost factor of real hashes keeps both failure paths equally slow.
    """
    return hash_password("tollgate_timing_dummy", rounds=rounds)


def hash_rounds(hashed: str) -> int:
    """Extract the cost factor from a bcrypt hash ($2b$12$... -> 12)."""
    try:
        return int(hashed.split("$")[2])
    except (IndexError, ValueError):
        return DEFAULT_BCRYPT_ROUNDS
