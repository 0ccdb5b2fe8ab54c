"""Active project references and the local-directory auto-reloader."""

from revision_engine.reload.active_reference import ActiveProjectReference, ProjectRegistry, VersionedSnapshot
from revision_engine.reload.auto_reloader import DEFAULT_DEBOUNCE_SECONDS, ReloaderState, RevisionAutoReloader
from revision_engine.reload.watcher import ChangeSource, WatchdogChangeSource

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "ActiveProjectReference",
    "ChangeSource",
    "ProjectRegistry",
    "ReloaderState",
    "RevisionAutoReloader",
    "VersionedSnapshot",
    "WatchdogChangeSource",
]
