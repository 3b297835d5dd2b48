"""
core/config.py -- ParkSpot settings, read from the environment and .env.

Every environment variable the app understands is a field on Settings. Other
modules call get_settings() and never touch os.environ themselves.

get_settings() is wrapped in lru_cache, so the environment is parsed once per
process. Field names are matched case-insensitively against env vars
(token_expire_seconds <- TOKEN_EXPIRE_SECONDS) and pydantic coerces the types.

Signing key:
  SECRET_KEY signs every session token and there is no session table to
  revoke from, so whoever holds the key can mint a session for any user. It
  must be at least 32 characters. JWTSECRET is read when SECRET_KEY is absent,
  for deployments configured under the older name. With DEBUG=true a missing
  key is replaced by a random one (sessions die with the process); otherwise
  a missing key stops startup.

Layer rule: core/ is the kernel. Nothing here imports api/, web/, auth/, or
records/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("parkspot.config")

# Session cookie max-age and token exp both use this lifetime.
DEFAULT_SESSION_SECONDS = 24 * 60 * 60
_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Runtime configuration. Only secret_key lacks a usable default."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    debug: bool = False
    # "" means unset; validate_secret_key() replaces it or raises.
    secret_key: str = Field(default="", validation_alias=AliasChoices("secret_key", "jwtsecret"))
    log_level: str = "INFO"

    # Storage
    database_url: str = "sqlite:///parkspot.db"

    # Sessions. Set SECURE_COOKIES=false only for plain-http local development.
    secure_cookies: bool = True
    token_expire_seconds: int = DEFAULT_SESSION_SECONDS

    # HTTP
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # Login and registration throttling, slowapi limit syntax.
    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject the signing key, then sanity-check the lifetime."""
        if not self.secret_key and self.debug:
            self.secret_key = secrets.token_hex(32)
            logger.warning("DEBUG is on and SECRET_KEY is unset; using a random key for this process only.")
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required when DEBUG is off. "
                "Set SECRET_KEY (or JWTSECRET) in the environment or .env file."
            )
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, building it on first call.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
