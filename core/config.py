"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Tollgate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_timeout_seconds -> SESSION_TIMEOUT_SECONDS).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. A server with no credential realm configured refuses to start
      in production; in dev mode it starts with an empty realm and a warning.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tollgate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_timeout_seconds: int = Field(default=3600, gt=0)
    session_sweep_interval_seconds: int = Field(default=3600, gt=0)
    # Single live session per user unless explicitly relaxed. When true every
    # login mints a new token and older tokens stay valid until they expire.
    allow_multiple_sessions: bool = False

    # ------------------------------------------------------------------
    # Credential realm (first configured one wins: SQL, then INI)
    # ------------------------------------------------------------------

    users_db_url: str = ""
    users_file: str = ""
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_realm(self) -> "Settings":
        """Refuse to start without a usable credential realm.

        Production mode (DEBUG=false or not set): one of USERS_DB_URL or
            USERS_FILE must be set, otherwise every login would fail silently.

        Both modes: a configured USERS_FILE must point at an existing file.
        """
        if self.users_file and not Path(self.users_file).is_file():
            raise ValueError(f"USERS_FILE does not exist: {self.users_file}")
        if not self.users_db_url and not self.users_file:
            if self.debug:
                logger.warning("WARNING: No credential realm configured. All logins will be rejected.")
            else:
                raise ValueError(
                    "A credential realm is required in production mode. "
                    "Set USERS_DB_URL or USERS_FILE in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
