"""Atomically swappable handle on the currently effective project snapshot.

Readers call :meth:`ActiveProjectReference.get` and keep the returned
snapshot for the whole of their work (one scheduler evaluation cycle, one API
request).  Because snapshots are immutable and a swap replaces a single
``(version, snapshot)`` tuple, a reader sees either the old snapshot in full
or the new one in full.  Readers never lock; writers serialize on a lock so
that a version number is never issued twice.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import NamedTuple

from revision_engine.project.models import ProjectSnapshot

logger = logging.getLogger(__name__)


class VersionedSnapshot(NamedTuple):
    version: int
    snapshot: ProjectSnapshot | None
    activated_at: datetime | None = None


class ActiveProjectReference:
    """Single-writer, many-reader reference cell for one project."""

    def __init__(self, project_name: str) -> None:
        self.project_name = project_name
        self._cell = VersionedSnapshot(0, None)
        self._write_lock = threading.Lock()

    def get(self) -> ProjectSnapshot | None:
        """Return the active snapshot, or ``None`` before the first install."""
        return self._cell.snapshot

    def get_versioned(self) -> VersionedSnapshot:
        return self._cell

    @property
    def version(self) -> int:
        return self._cell.version

    def replace(self, snapshot: ProjectSnapshot) -> int:
        """Install *snapshot* as the active revision and return the new version."""
        if snapshot.project_name != self.project_name:
            raise ValueError(
                f"Snapshot for project '{snapshot.project_name}' cannot replace '{self.project_name}'."
            )
        with self._write_lock:
            previous = self._cell
            self._cell = VersionedSnapshot(previous.version + 1, snapshot, datetime.now(UTC))
        logger.info(
            "Activated revision %s of '%s' (version %d, previous %s).",
            snapshot.revision,
            self.project_name,
            previous.version + 1,
            previous.snapshot.revision if previous.snapshot else "none",
        )
        return previous.version + 1


class ProjectRegistry:
    """Active project references of a running server, keyed by project name.

    The auto-reloader owns the reference of the local project; the upload
    handler owns the references of published projects.  Names reserved for
    the local project are rejected for uploads.
    """

    def __init__(self) -> None:
        self._refs: dict[str, ActiveProjectReference] = {}
        self._reserved: set[str] = set()
        self._lock = threading.Lock()

    def reference(self, project_name: str) -> ActiveProjectReference:
        """Return the reference for *project_name*, creating it if needed."""
        with self._lock:
            ref = self._refs.get(project_name)
            if ref is None:
                ref = ActiveProjectReference(project_name)
                self._refs[project_name] = ref
            return ref

    def reserve(self, project_name: str) -> ActiveProjectReference:
        """Mark *project_name* as owned by the local auto-reloader."""
        ref = self.reference(project_name)
        with self._lock:
            self._reserved.add(project_name)
        return ref

    def is_reserved(self, project_name: str) -> bool:
        return project_name in self._reserved

    def get(self, project_name: str) -> ProjectSnapshot | None:
        ref = self._refs.get(project_name)
        return ref.get() if ref is not None else None

    def __iter__(self) -> Iterator[ActiveProjectReference]:
        with self._lock:
            refs = list(self._refs.values())
        return iter(refs)

    def snapshots(self) -> list[ProjectSnapshot]:
        """Return every installed snapshot, sorted by project name."""
        found = [snap for ref in self if (snap := ref.get()) is not None]
        return sorted(found, key=lambda s: s.project_name)
