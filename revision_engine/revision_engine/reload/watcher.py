"""Filesystem change sources feeding the auto-reloader.

A change source delivers change notifications (relative paths) into an
:class:`asyncio.Queue` owned by the reloader.  The watchdog implementation
runs its observer on a background thread and hands each event to the event
loop with :meth:`asyncio.AbstractEventLoop.call_soon_threadsafe`.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePath
from typing import Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class ChangeSource(Protocol):
    """Anything that can push change notifications into a queue."""

    def start(self, root: Path, queue: asyncio.Queue[str], loop: asyncio.AbstractEventLoop) -> None: ...

    def stop(self) -> None: ...


def is_ignored(root: Path, path: str) -> bool:
    """Return ``True`` for paths outside *root* or below a dot-file/dot-directory."""
    try:
        rel = PurePath(path).relative_to(root)
    except ValueError:
        return True
    return any(part.startswith(".") for part in rel.parts)


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, root: Path, queue: asyncio.Queue[str], loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._root = root
        self._queue = queue
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for raw in paths:
            path = raw.decode() if isinstance(raw, bytes) else raw
            if is_ignored(self._root, path):
                continue
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, path)
            except RuntimeError:
                # Event loop already closed during shutdown.
                return


class WatchdogChangeSource:
    """Recursive watchdog observer over a project directory."""

    def __init__(self) -> None:
        self._observer: Observer | None = None  # type: ignore[valid-type]

    def start(self, root: Path, queue: asyncio.Queue[str], loop: asyncio.AbstractEventLoop) -> None:
        if self._observer is not None:
            raise RuntimeError("Change source already started.")
        resolved = root.resolve()
        observer = Observer()
        observer.schedule(_QueueingHandler(resolved, queue, loop), str(resolved), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching '%s' for changes.", resolved)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.debug("Stopped watching for changes.")
