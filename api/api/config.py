"""Server configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Revision server settings.

    All values can be overridden via environment variables prefixed with
    ``REVKIT_SERVER_`` (e.g. ``REVKIT_SERVER_PORT=8080``) or through a
    ``.env`` file in the working directory.  ``revkit sched`` passes its
    options to the server process this way, which is why every value here
    is a flat scalar.
    """

    model_config = SettingsConfigDict(
        env_prefix="REVKIT_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 65432
    debug: bool = False

    # Directory of the durable revision store.  Empty keeps revisions in
    # memory only.
    database: str = ""

    # Local project served with hot reload.  Empty disables local mode.
    local_project: str = ""
    local_project_name: str = "default"
    # Encoded ParameterSet (see revision_engine.params.codec).
    local_overwrite_params: str = "{}"
    reload_debounce_seconds: float = Field(default=0.5, ge=0)

    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = Field(default=1.0, gt=0)

    # Upper bound for uploaded archives.
    max_archive_bytes: int = Field(default=256 * 1024 * 1024, gt=0)

    structured_logging: bool = False


def load_server_settings(**overrides: object) -> ServerSettings:
    """Load settings from environment, with optional overrides for testing."""
    return ServerSettings(**overrides)  # type: ignore[arg-type]
