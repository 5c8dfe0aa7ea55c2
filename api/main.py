"""
api/main.py -- FastAPI application entry point for Tollgate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the credential realm, the SessionStore and the components that
share it (validator, issuer, logout handler), and starts the expiry sweep.
Everything is stored on app.state; nothing in auth/ is a module-level global.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v0.users import router as users_router
from api.routes.v1.auth import router as auth_router
from auth.credentials import CredentialValidator
from auth.errors import AuthError, Unauthenticated
from auth.issuer import SessionIssuer
from auth.logout import LogoutHandler
from auth.realm import CredentialRealm, build_realm
from auth.sessions import SessionStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tollgate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(store: SessionStore, interval_seconds: int) -> None:
    """Evict expired sessions every interval_seconds.

    Lookups already hide expired sessions, so this only bounds memory held by
    tokens nobody presents again. CancelledError from task.cancel() during
    shutdown propagates out of asyncio.sleep and ends the loop. A failing sweep
    is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.sweep()
        except Exception:
            logger.exception("Session sweep failed")


def wire_auth(app: FastAPI, realm: CredentialRealm, store: SessionStore, ttl_seconds: int, allow_multiple_sessions: bool) -> None:
    """Attach the authentication components to app.state.

    Shared by the real lifespan and by tests, so both wire the same graph.
    """
    app.state.realm = realm
    app.state.session_store = store
    app.state.credential_validator = CredentialValidator(realm)
    app.state.session_issuer = SessionIssuer(
        store,
        ttl_seconds=ttl_seconds,
        allow_multiple_sessions=allow_multiple_sessions,
    )
    app.state.logout_handler = LogoutHandler(store)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build auth components on startup; stop the sweep and close the realm on shutdown."""
    settings = get_settings()
    logger.info("Tollgate API starting up")
    realm = build_realm(settings)
    store = SessionStore()
    wire_auth(
        app,
        realm,
        store,
        ttl_seconds=settings.session_timeout_seconds,
        allow_multiple_sessions=settings.allow_multiple_sessions,
    )
    logger.info(
        "Sessions initialized (ttl=%ds, multiple_sessions=%s)",
        settings.session_timeout_seconds,
        settings.allow_multiple_sessions,
    )
    app.state.sweep_task = asyncio.create_task(_sweep_loop(store, settings.session_sweep_interval_seconds))

    yield

    app.state.sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.sweep_task
    close = getattr(realm, "close", None)
    if close is not None:
        close()
    logger.info("Tollgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tollgate API",
    description="Session-based bearer token authentication.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- register in the order requests should meet them.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v0", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render the auth taxonomy: 400 malformed, 401 failed/unauthenticated, 500 store."""
    if exc.status_code >= 500:
        logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
        response = _error_response(exc.status_code, exc.code, exc.message)
    else:
        response = _error_response(exc.status_code, exc.code, exc.message, exc.detail)
    if isinstance(exc, Unauthenticated):
        response.headers["WWW-Authenticate"] = "Bearer"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request parameters fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint -- no auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and the number of sessions held in memory."""
    store: SessionStore = request.app.state.session_store
    return HealthResponse(version=__version__, active_sessions=len(store))
