"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version and active session count
  - No authentication required
  - Rejected Host headers never reach the app
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import PASSWORD, USERNAME, login


def test_health_returns_200(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert data["active_sessions"] == 0


def test_health_counts_sessions(api_client: TestClient) -> None:
    login(api_client, USERNAME, PASSWORD)
    login(api_client, USERNAME, PASSWORD)
    assert api_client.get("/api/v1/health").json()["active_sessions"] == 1


def test_health_no_auth_required(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_untrusted_host_rejected(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400


def test_unknown_route_uses_error_envelope(api_client: TestClient) -> None:
    resp = api_client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": {"code": "http_404", "message": "Not Found", "detail": None}}
