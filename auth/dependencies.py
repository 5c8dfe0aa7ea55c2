"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The gate for protected routes. A request is authenticated only by an
`Authorization: bearer <token>` header (scheme matched case-insensitively)
whose token resolves to a live session in the app's SessionStore.

Missing header, another scheme, an empty token, an unknown token, an expired
token and a revoked token all end the same way: Unauthenticated (401). The
route body never runs.

On success the Principal and Session are attached to request.state so
downstream code can read them without re-resolving the token.

try_get_current_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises Unauthenticated.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
It does not import from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import Unauthenticated
from auth.models import Principal
from auth.sessions import SessionStore


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from a `bearer <token>` header value, else None."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def try_get_current_principal(request: Request) -> Principal | None:
    """Resolve the request's bearer token. Never raises."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    store: SessionStore = request.app.state.session_store
    session = store.get(token)
    if session is None:
        return None
    request.state.session = session
    request.state.principal = session.principal
    return session.principal


def get_current_principal(request: Request) -> Principal:
    """Require a live bearer session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise Unauthenticated()
    return principal
