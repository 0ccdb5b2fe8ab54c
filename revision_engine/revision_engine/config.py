"""Revision engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Client-side settings loaded from environment variables with REVKIT_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="REVKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Revision server
    endpoint: str = "http://127.0.0.1:65432"
    http_timeout: float = 30.0

    # Packaging
    staging_dir: Path = Path(".revkit/tmp")

    # Environment variables with this prefix become system default parameters.
    param_env_prefix: str = "REVKIT_PARAM_"

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings for endpoint: %s", settings.endpoint)

    return settings
