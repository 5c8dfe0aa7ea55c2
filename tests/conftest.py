"""
tests/conftest.py -- Shared test fixtures for Tollgate tests.

This module provides:
  - FakeClock: a controllable clock so expiry can be tested without sleeping
  - realm: a StaticRealm with user foo/bar (cheap bcrypt cost)
  - store: a SessionStore driven by FakeClock
  - api_client: TestClient whose lifespan wires the realm and store above

Environment must be set before any api/ or core/ import: get_settings() is
cached on first call, and api/main.py reads it at import time.
"""

from __future__ import annotations

import base64
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before importing the app. DEBUG lets Settings start without a
# realm; the high rate limit keeps repeated logins in tests from hitting 429.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_auth
from auth.models import Principal
from auth.realm import StaticRealm
from auth.sessions import SessionStore

USERNAME = "foo"
PASSWORD = "bar"
WRONG_PASSWORD = "baz"
WRONG_SESSION_ID = "00000000-0000-0000-0000-000000000000"
TTL_SECONDS = 3600

# TrustedHostMiddleware only admits localhost hosts.
BASE_URL = "http://localhost"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def realm() -> StaticRealm:
    return StaticRealm(
        [
            (Principal(username=USERNAME, name="Foo", email="foo@localhost", roles=("user",)), PASSWORD),
            (Principal(username="alice"), "wonderland"),
        ],
        rounds=4,
    )


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(clock=clock)


def _patch_lifespan(realm, store: SessionStore, allow_multiple_sessions: bool = False):
    """Return a lifespan that wires test components instead of building real ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        wire_auth(
            app,
            realm,
            store,
            ttl_seconds=TTL_SECONDS,
            allow_multiple_sessions=allow_multiple_sessions,
        )
        yield

    return test_lifespan


@pytest.fixture
def api_client(realm: StaticRealm, store: SessionStore) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with an isolated realm and store."""
    app.router.lifespan_context = _patch_lifespan(realm, store)
    with TestClient(app, base_url=BASE_URL, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def multi_session_client(realm: StaticRealm, store: SessionStore) -> Generator[TestClient, None, None]:
    """Like api_client, with the multiple-sessions policy switched on."""
    app.router.lifespan_context = _patch_lifespan(realm, store, allow_multiple_sessions=True)
    with TestClient(app, base_url=BASE_URL, raise_server_exceptions=True) as client:
        yield client


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def login(client: TestClient, username: str, password: str):
    return client.post(
        "/api/v1/login",
        content=f"grant_type=password&username={username}&password={password}",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def login_with_basic_auth(client: TestClient, username: str = USERNAME, password: str = PASSWORD):
    encoded = base64.b64encode(f"{username}:{password}".encode("ascii")).decode("ascii")
    return client.post("/api/v1/login", headers={"Authorization": f"basic {encoded}"})


def logout(client: TestClient, session_id: str):
    return client.post("/api/v1/logout", headers={"Authorization": f"bearer {session_id}"})


def users_me(client: TestClient, session_id: str):
    return client.get("/api/v0/users/me", headers={"Authorization": f"bearer {session_id}"})
