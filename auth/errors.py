"""
auth/errors.py -- Exception taxonomy for the authentication core.

Every failure the core can produce is one of these. The HTTP layer maps them to
status codes in a single place (api/main.py exception handlers) so route code
never builds error responses by hand.

  AuthenticationFailed -> 401  bad credentials on login (cause never revealed)
  MalformedRequest     -> 400  login payload matches neither accepted shape
  Unauthenticated      -> 401  missing, malformed, unknown or expired bearer token
  InternalStoreError   -> 500  unexpected failure inside a store

Logout has no error type: invalidating an unknown token is a success.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. status_code and code drive the HTTP error envelope."""

    status_code: int = 500
    code: str = "auth_error"
    message: str = "Authentication error."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail


class AuthenticationFailed(AuthError):
    status_code = 401
    code = "bad_credentials"
    message = "Invalid username or password."

    def __init__(self) -> None:
        # No detail on purpose: unknown user and wrong password must render identically.
        super().__init__(None)


class MalformedRequest(AuthError):
    status_code = 400
    code = "malformed_request"
    message = "Login request is malformed."


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."

    def __init__(self) -> None:
        super().__init__(None)


class InternalStoreError(AuthError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
