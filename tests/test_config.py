"""Unit tests for core/config.py -- Settings validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_defaults_in_debug() -> None:
    s = Settings(debug=True, _env_file=None)
    assert s.session_timeout_seconds > 0
    assert s.allow_multiple_sessions is False


def test_production_requires_realm(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("USERS_DB_URL", raising=False)
    monkeypatch.delenv("USERS_FILE", raising=False)
    with pytest.raises(ValidationError, match="credential realm"):
        Settings(debug=False, _env_file=None)


def test_production_with_db_url() -> None:
    s = Settings(debug=False, users_db_url="sqlite:///users.db", _env_file=None)
    assert s.users_db_url == "sqlite:///users.db"


def test_users_file_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="USERS_FILE"):
        Settings(debug=True, users_file=str(tmp_path / "missing.ini"), _env_file=None)


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(debug=True, session_timeout_seconds=0, _env_file=None)


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("ALLOW_MULTIPLE_SESSIONS", "true")
    s = Settings(debug=True, _env_file=None)
    assert s.session_timeout_seconds == 120
    assert s.allow_multiple_sessions is True
