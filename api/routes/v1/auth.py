"""
api/routes/v1/auth.py -- Login and logout endpoints.

Routes:
  POST /api/v1/login   -- password grant form body or Basic header; returns
                          {"accessToken", "expiresIn"}
  POST /api/v1/logout  -- bearer token; always 200

Security:
  Login is rate-limited per client IP (LOGIN_RATE_LIMIT, default 10/minute).
  Wrong username and wrong password produce the same 401 body; the realm
  equalizes bcrypt timing between the two.
  Cache-Control: no-store on login responses so tokens never sit in caches.
  Logout answers 200 for any token, so it cannot be used to probe for
  valid sessions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter, login_rate_limit
from api.models import AccessTokenResponse, MessageResponse
from auth.credentials import CredentialValidator, LoginRequest
from auth.dependencies import extract_bearer_token
from auth.issuer import SessionIssuer
from auth.logout import LogoutHandler

logger = logging.getLogger("tollgate.api.auth")

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Auth policy:
# - POST /api/v1/login:   public -- login endpoint must be unauthenticated
# - POST /api/v1/logout:  public -- revoking a token needs no proof it is valid
router = APIRouter()


# router decorator outermost: FastAPI must register the rate-limited wrapper.
@router.post("/login", response_model=AccessTokenResponse)
@limiter.limit(login_rate_limit)
async def login(request: Request) -> JSONResponse:
    """Authenticate and return the caller's session token.

    A second login while the first session is still live returns the same
    token with a smaller expiresIn.
    """
    login_request = await _read_login_request(request)
    validator: CredentialValidator = request.app.state.credential_validator
    # bcrypt is CPU-bound; keep it off the event loop.
    principal = await run_in_threadpool(validator.validate, login_request)

    issuer: SessionIssuer = request.app.state.session_issuer
    session = issuer.issue_or_reuse(principal)
    body = AccessTokenResponse(
        access_token=session.token,
        expires_in=session.expires_in(issuer.store.now()),
    )
    logger.info("Login succeeded for %s", principal.username)
    resp = JSONResponse(status_code=200, content=body.model_dump(by_alias=True))
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Invalidate the bearer token if it exists. Always 200."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    handler: LogoutHandler = request.app.state.logout_handler
    handler.invalidate(token)
    return JSONResponse(content=MessageResponse(message="Logged out.").model_dump())


async def _read_login_request(request: Request) -> LoginRequest:
    form: dict[str, str] | None = None
    content_type = request.headers.get("Content-Type", "")
    if content_type.split(";")[0].strip().lower() == _FORM_CONTENT_TYPE:
        raw = await request.form()
        form = {key: value for key, value in raw.items() if isinstance(value, str)}
    return LoginRequest(authorization=request.headers.get("Authorization", ""), form=form)
