"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CronoCodex happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Test mode (TESTING=true) generates a
      throwaway signing key; every other mode, DEBUG included, refuses to
      start without one.

Operational notes:
  The signing secret is the only thing that makes a session token valid.
  Rotating SECRET_KEY invalidates every token issued under the old key;
  all users must log in again. There is no per-token revocation.

  The role hierarchy is NOT configuration. It lives in auth/policy.py as
  domain policy and cannot be changed through the environment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or hr/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("cronocodex.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'cronocodex.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    # Set only by the test suite. The one mode allowed to run without SECRET_KEY.
    testing: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a test key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # 8 hours -- one working shift.
    token_expire_seconds: int = 8 * 60 * 60
    login_rate_limit: str = "10/minute"

    # Root account seeded on first start. Both must be set; there is no
    # built-in default password.
    bootstrap_admin_email: str = ""
    bootstrap_admin_password: str = ""
    bootstrap_admin_name: str = "Administrador General"

    # ------------------------------------------------------------------
    # Persistence / transport
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Test mode (TESTING=true): auto-generate a random key with a warning.
            Tokens die with the process, which is what a test run wants.

        Any other mode, including DEBUG=true: refuse to start if SECRET_KEY
            is missing. A debug build that reaches a server must still be
            provisioned with a real key.

        Every mode: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.testing:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "For local development, any random value from secrets.token_hex(32) will do."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
