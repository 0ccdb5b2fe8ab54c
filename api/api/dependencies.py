"""FastAPI dependency injection for settings, the revision store and the registry."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends
from revision_engine.reload.active_reference import ProjectRegistry
from revision_engine.reload.auto_reloader import RevisionAutoReloader
from revision_engine.state import RevisionStore, open_store

from api.config import ServerSettings, load_server_settings
from api.services.revision_service import RevisionService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: ServerSettings | None = None


def init_settings(settings: ServerSettings) -> ServerSettings:
    global _settings_cache  # noqa: PLW0603
    _settings_cache = settings
    return settings


def get_settings() -> ServerSettings:
    """Return the cached :class:`ServerSettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_server_settings()
    return _settings_cache


SettingsDep = Annotated[ServerSettings, Depends(get_settings)]

# ---------------------------------------------------------------------------
# Revision store
# ---------------------------------------------------------------------------

_store: RevisionStore | None = None


def init_store(settings: ServerSettings) -> RevisionStore:
    """Open and cache the global revision store."""
    global _store  # noqa: PLW0603
    _store = open_store(settings.database)
    return _store


def dispose_store() -> None:
    """Close the global revision store (call during shutdown)."""
    global _store  # noqa: PLW0603
    if _store is not None:
        _store.close()
        _store = None


def get_store() -> RevisionStore:
    if _store is None:
        raise RuntimeError("Revision store not initialised. Call init_store() during app startup.")
    return _store


StoreDep = Annotated[RevisionStore, Depends(get_store)]

# ---------------------------------------------------------------------------
# Active project registry and local reloader
# ---------------------------------------------------------------------------

_registry: ProjectRegistry | None = None
_reloader: RevisionAutoReloader | None = None


def init_registry() -> ProjectRegistry:
    global _registry  # noqa: PLW0603
    _registry = ProjectRegistry()
    return _registry


def get_registry() -> ProjectRegistry:
    if _registry is None:
        raise RuntimeError("Project registry not initialised. Call init_registry() during app startup.")
    return _registry


RegistryDep = Annotated[ProjectRegistry, Depends(get_registry)]


def set_reloader(reloader: RevisionAutoReloader | None) -> None:
    global _reloader  # noqa: PLW0603
    _reloader = reloader


def get_reloader() -> RevisionAutoReloader | None:
    """Return the local-project reloader, or ``None`` outside local mode."""
    return _reloader


ReloaderDep = Annotated[RevisionAutoReloader | None, Depends(get_reloader)]


def get_revision_service(store: StoreDep, registry: RegistryDep) -> RevisionService:
    return RevisionService(store, registry)


RevisionServiceDep = Annotated[RevisionService, Depends(get_revision_service)]
