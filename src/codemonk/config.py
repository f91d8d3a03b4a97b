"""Centralised client configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/codemonk/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_USN_PREFIXES = ("NU25MCA", "NU24MCA", "NNM24MC", "NNM25MC")


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class ApiConfig(BaseModel):
    """Backend REST API location."""

    base_url: str = "http://localhost:5000/api"


class SessionConfig(BaseModel):
    """Credential persistence and startup probe behaviour."""

    token_file: Path = Path("~/.codemonk/token")
    probe_max_attempts: int = 2
    probe_retry_delay: float = 1.0

    @model_validator(mode="after")
    def at_least_one_attempt(self) -> SessionConfig:
        if self.probe_max_attempts < 1:
            msg = "SESSION__PROBE_MAX_ATTEMPTS must be at least 1"
            raise ValueError(msg)
        return self


class RegistrationConfig(BaseModel):
    """Client-side rules for the OTP-gated registration flow."""

    resend_cooldown_seconds: int = 60
    password_policy: Literal["standard", "strict"] = "standard"
    usn_prefixes: tuple[str, ...] = DEFAULT_USN_PREFIXES
    usn_number_min: int = 1
    usn_number_max: int = 180

    @model_validator(mode="after")
    def usn_range_is_ordered(self) -> RegistrationConfig:
        if self.usn_number_min > self.usn_number_max:
            msg = (
                "REGISTRATION__USN_NUMBER_MIN must not exceed "
                "REGISTRATION__USN_NUMBER_MAX"
            )
            raise ValueError(msg)
        return self


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


class DevConfig(BaseModel):
    """Development and testing toggles."""

    api_mock: bool = False


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Client settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``API__BASE_URL``, ``SESSION__TOKEN_FILE``, ``DEV__API_MOCK``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: ApiConfig = ApiConfig()
    session: SessionConfig = SessionConfig()
    registration: RegistrationConfig = RegistrationConfig()
    app: AppConfig = AppConfig()
    dev: DevConfig = DevConfig()

    @property
    def token_path(self) -> Path:
        """Token file with ``~`` expanded."""
        return self.session.token_file.expanduser()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
