"""Hot reload of a local project directory into the active project reference.

The reloader watches a project directory, coalesces bursts of change events
(editors typically write several files, or write-then-rename, per save) and
reloads the project once the directory has been quiet for
``debounce_seconds``.  A successful reload swaps the active reference in a
single step; a failed one is logged and leaves the previous snapshot in
place, so the running server never sees a partially loaded project.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from revision_engine.archive.loader import ProjectArchiveLoader
from revision_engine.errors import RevisionError
from revision_engine.project.models import ProjectSnapshot
from revision_engine.reload.active_reference import ActiveProjectReference
from revision_engine.reload.watcher import ChangeSource, WatchdogChangeSource
from revision_engine.revision.naming import generate_default_revision

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class ReloaderState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    RELOADING = "reloading"
    STOPPED = "stopped"


class RevisionAutoReloader:
    """Keep an :class:`ActiveProjectReference` in sync with a local directory.

    Parameters
    ----------
    reference:
        The reference this reloader owns.  Nothing else may write to it.
    loader:
        Loader used for every (re)load.  Defaults to a fresh
        :class:`ProjectArchiveLoader`.
    change_source:
        Source of change notifications.  Defaults to a watchdog observer.
    debounce_seconds:
        Quiet period required after the last change before reloading.
    revision_factory:
        Produces the revision identity of each successful reload.
    """

    def __init__(
        self,
        reference: ActiveProjectReference,
        loader: ProjectArchiveLoader | None = None,
        *,
        change_source: ChangeSource | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        revision_factory: Callable[[], str] = generate_default_revision,
    ) -> None:
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")
        self._reference = reference
        self._loader = loader or ProjectArchiveLoader()
        self._change_source = change_source or WatchdogChangeSource()
        self._debounce_seconds = debounce_seconds
        self._revision_factory = revision_factory

        self._state = ReloaderState.IDLE
        self._project_dir: Path | None = None
        self._overwrite_params: dict[str, Any] = {}
        self._schedule_from: datetime | None = None
        self._queue: asyncio.Queue[str] | None = None
        self._task: asyncio.Task[None] | None = None
        self._reload_lock = asyncio.Lock()

        self.successful_reloads = 0
        self.failed_reloads = 0
        self.last_error: str | None = None

    @property
    def state(self) -> ReloaderState:
        return self._state

    @property
    def project_dir(self) -> Path | None:
        return self._project_dir

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def watch(
        self,
        project_dir: Path,
        overwrite_params: Mapping[str, Any] | None = None,
        schedule_from: datetime | None = None,
    ) -> ProjectSnapshot:
        """Load and install the initial snapshot of *project_dir*.

        Runs synchronously so that the server never starts without an active
        project.  Load errors propagate to the caller.

        Raises
        ------
        RuntimeError
            If the reloader is not idle.
        ProjectDirNotFoundError, InvalidManifestError
            If the initial load fails.
        """
        if self._state is not ReloaderState.IDLE:
            raise RuntimeError(f"watch() called in state '{self._state.value}'")

        self._project_dir = project_dir
        self._overwrite_params = dict(overwrite_params or {})
        self._schedule_from = schedule_from

        snapshot = self._load()
        self._reference.replace(snapshot)
        self._state = ReloaderState.WATCHING
        logger.info(
            "Serving local project '%s' from '%s' as revision %s.",
            self._reference.project_name,
            project_dir,
            snapshot.revision,
        )
        return snapshot

    async def start(self) -> None:
        """Start the change source and the background reload task."""
        if self._state is not ReloaderState.WATCHING or self._project_dir is None:
            raise RuntimeError("start() requires a successful watch() first")
        if self._task is not None:
            logger.warning("RevisionAutoReloader already running; ignoring start()")
            return
        self._queue = asyncio.Queue()
        self._change_source.start(self._project_dir, self._queue, asyncio.get_running_loop())
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop watching.  A reload in progress is abandoned without a swap."""
        self._state = ReloaderState.STOPPED
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._change_source.stop()
        logger.info("RevisionAutoReloader stopped for '%s'.", self._reference.project_name)

    # ------------------------------------------------------------------
    # Reload
    # ------------------------------------------------------------------

    async def reload_now(self) -> bool:
        """Reload the project immediately.

        Returns
        -------
        bool
            ``True`` if a new snapshot was installed; ``False`` if the reload
            failed, the content was unchanged, or the reloader is stopped.
        """
        async with self._reload_lock:
            if self._state in (ReloaderState.IDLE, ReloaderState.STOPPED):
                return False
            self._state = ReloaderState.RELOADING
            try:
                snapshot = await asyncio.to_thread(self._load)
            except (RevisionError, OSError) as exc:
                self.failed_reloads += 1
                self.last_error = str(exc)
                logger.error(
                    "Reload of '%s' failed; keeping revision %s: %s",
                    self._project_dir,
                    self._active_revision(),
                    exc,
                    exc_info=True,
                )
                return False
            finally:
                if self._state is ReloaderState.RELOADING:
                    self._state = ReloaderState.WATCHING

            if self._state is ReloaderState.STOPPED:
                return False
            current = self._reference.get()
            if current is not None and current.digest == snapshot.digest:
                logger.debug("Project content unchanged (sha256=%s); no reload needed.", snapshot.digest[:12])
                return False

            self._reference.replace(snapshot)
            self.successful_reloads += 1
            self.last_error = None
            return True

    async def _run_loop(self) -> None:
        assert self._queue is not None
        while True:
            changed = await self._queue.get()
            logger.debug("Change detected: %s", changed)
            await self._wait_for_quiet()
            try:
                await self.reload_now()
            except Exception as exc:
                self.failed_reloads += 1
                self.last_error = f"{type(exc).__name__}: {exc}"
                logger.error(
                    "Unexpected error reloading '%s'; keeping revision %s: %s",
                    self._project_dir,
                    self._active_revision(),
                    exc,
                    exc_info=True,
                )

    async def _wait_for_quiet(self) -> None:
        assert self._queue is not None
        while True:
            try:
                await asyncio.wait_for(self._queue.get(), timeout=self._debounce_seconds)
            except TimeoutError:
                return

    def _load(self) -> ProjectSnapshot:
        assert self._project_dir is not None
        return self._loader.load(
            self._project_dir,
            self._revision_factory(),
            project_name=self._reference.project_name,
            overwrite_params=self._overwrite_params,
            schedule_from=self._schedule_from,
        )

    def _active_revision(self) -> str:
        current = self._reference.get()
        return current.revision if current is not None else "none"
