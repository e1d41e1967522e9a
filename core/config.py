"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for authstarter happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret_access_token -> JWT_SECRET_ACCESS_TOKEN).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Implements the DEBUG-conditional secret policy and checks that
      every token / storage expiry string parses.

Security notes:
  A JWT secret shorter than 32 chars is rejected outright. HS256 relies on
  key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing secret is a hard
  startup failure. Running with a random key would silently invalidate every
  session on restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.duration import parse_duration

logger = logging.getLogger("authstarter.config")


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
    app_name: str = "authstarter"
    database_url: str = "sqlite:///./authstarter.db"
    enable_api_docs: bool = True

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret_access_token: str = ""
    access_token_expires: str = "1d"
    reset_token_expires: str = "1h"
    verification_token_expires: str = "1d"
    bcrypt_rounds: int = 12
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    rate_limit: str = "100/minute"
    # Login and forgot-password: brute-force and mail-flood mitigation.
    auth_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Mail (SMTP). Empty host means mail is not configured.
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_starttls: bool = True
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = "noreply@authstarter.local"

    # ------------------------------------------------------------------
    # Object storage (S3-compatible). Empty endpoint disables storage.
    # ------------------------------------------------------------------

    s3_endpoint: str = ""
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_region: str = ""
    s3_bucket: str = "authstarter"
    s3_secure: bool = True
    s3_expires: str = "1d"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the JWT secret policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if JWT_SECRET_ACCESS_TOKEN is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret_access_token:
            if self.debug:
                self.jwt_secret_access_token = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT secret. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET_ACCESS_TOKEN is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret_access_token) < 32:
            raise ValueError("JWT_SECRET_ACCESS_TOKEN must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_durations(self) -> "Settings":
        """Fail at startup, not at first login, on a malformed expiry string."""
        for field in ("access_token_expires", "reset_token_expires", "verification_token_expires", "s3_expires"):
            parse_duration(getattr(self, field))
        return self

    @property
    def mail_configured(self) -> bool:
        return bool(self.smtp_host)

    @property
    def storage_configured(self) -> bool:
        return bool(self.s3_endpoint)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
