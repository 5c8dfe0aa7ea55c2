"""
auth/credentials.py -- Login request parsing and credential validation.

A login request carries a username/password pair in one of two encodings:

  PasswordGrant     form body: grant_type=password&username=<u>&password=<p>
  BasicCredentials  header:    Authorization: Basic base64(<u>:<p>)

Each encoding has its own stateless parser. Parsers run in a fixed order
(_PARSERS); the first one that recognises its shape wins. A parser returns
None when the request is not its shape at all, and raises MalformedRequest
when it is its shape but broken. If no parser claims the request, the request
is malformed too.

CredentialValidator joins parsing to a realm and turns every realm rejection
into the same AuthenticationFailed, whatever the cause.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Union

from auth.errors import AuthenticationFailed, MalformedRequest
from auth.models import Principal
from auth.realm import CredentialRealm
from auth.tokens import MAX_PASSWORD_BYTES

logger = logging.getLogger("tollgate.auth.credentials")

_MAX_USERNAME_CHARS = 255


@dataclass(frozen=True)
class PasswordGrant:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str = field(repr=False)


LoginCredential = Union[PasswordGrant, BasicCredentials]


@dataclass(frozen=True)
class LoginRequest:
    """The parts of an HTTP login request the parsers look at.

    form is None when the body is not form-encoded.
    """

    authorization: str = ""
    form: Mapping[str, str] | None = None


# ---------------------------------------------------------------------------
# Parsing strategies
# ---------------------------------------------------------------------------


def parse_basic_header(request: LoginRequest) -> LoginCredential | None:
    """Claim requests whose Authorization header uses the Basic scheme."""
    scheme, _, value = request.authorization.strip().partition(" ")
    if scheme.lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise MalformedRequest("Basic credentials are not valid base64 UTF-8.") from exc
    username, sep, password = decoded.partition(":")
    if not sep:
        raise MalformedRequest("Basic credentials must be in username:password form.")
    return BasicCredentials(username=_check_username(username), password=_check_password(password))


def parse_password_grant(request: LoginRequest) -> LoginCredential | None:
    """Claim form-encoded bodies (grant_type=password)."""
    if not request.form:
        return None
    grant_type = request.form.get("grant_type")
    if grant_type != "password":
        raise MalformedRequest(f"Unsupported grant_type: {grant_type!r}.")
    username = request.form.get("username")
    password = request.form.get("password")
    if username is None or password is None:
        raise MalformedRequest("username and password are required.")
    return PasswordGrant(username=_check_username(username), password=_check_password(password))


_PARSERS: tuple[Callable[[LoginRequest], LoginCredential | None], ...] = (
    parse_basic_header,
    parse_password_grant,
)


def parse_login_request(request: LoginRequest) -> LoginCredential:
    """Normalize a login request to a credential, or raise MalformedRequest."""
    for parser in _PARSERS:
        credential = parser(request)
        if credential is not None:
            return credential
    raise MalformedRequest("Expected a password grant form body or Basic credentials.")


def _check_username(username: str) -> str:
    if not username:
        raise MalformedRequest("username must not be empty.")
    if len(username) > _MAX_USERNAME_CHARS:
        raise MalformedRequest("username is too long.")
    return username


def _check_password(password: str) -> str:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise MalformedRequest("password is too long.")
    return password


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class CredentialValidator:
    """Parse a login request and check it against a realm."""

    def __init__(self, realm: CredentialRealm) -> None:
        self.realm = realm

    def validate(self, request: LoginRequest) -> Principal:
        """Return the authenticated Principal.

        Raises MalformedRequest for unparseable input and AuthenticationFailed
        for any credential mismatch. The two mismatch causes are never told apart.
        """
        credential = parse_login_request(request)
        principal = self.realm.validate(credential.username, credential.password)
        if principal is None:
            logger.info("Login rejected (%s)", type(credential).__name__)
            raise AuthenticationFailed()
        return principal
