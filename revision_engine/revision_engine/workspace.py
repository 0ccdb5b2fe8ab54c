"""Working directories for executing a revision's workflows.

Published revisions exist only as stored archives, so every use extracts the
archive into a fresh temporary directory.  A local project served by
``revkit sched`` is used in place.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Protocol

from revision_engine.archive.loader import extract_archive
from revision_engine.errors import LoadError
from revision_engine.project.models import ProjectSnapshot, SnapshotSource
from revision_engine.state.store import RevisionStore

logger = logging.getLogger(__name__)


class WorkspaceManager(Protocol):
    """Provides the directory a firing of *snapshot* runs in."""

    def workspace(self, snapshot: ProjectSnapshot) -> AbstractContextManager[Path]: ...


class ArchiveWorkspaceManager:
    """Extract the stored archive of a revision into a temporary directory.

    Parameters
    ----------
    store:
        Store holding the archive bytes.
    root:
        Parent directory for workspaces.  Defaults to the system temp dir.
    """

    def __init__(self, store: RevisionStore, root: Path | None = None) -> None:
        self._store = store
        self._root = root

    @contextmanager
    def workspace(self, snapshot: ProjectSnapshot) -> Iterator[Path]:
        data = self._store.get_archive(snapshot.project_name, snapshot.revision)
        if data is None:
            raise LoadError(f"No stored archive for revision {snapshot.revision} of '{snapshot.project_name}'.")
        path = Path(tempfile.mkdtemp(prefix=f"{snapshot.project_name}-", dir=self._root))
        try:
            extract_archive(data, path)
            logger.debug("Extracted revision %s into '%s'.", snapshot.revision, path)
            yield path
        finally:
            shutil.rmtree(path, ignore_errors=True)


class NoopWorkspaceManager:
    """Use the local project directory as the workspace; nothing is copied."""

    def __init__(self, project_dir: Path) -> None:
        self._project_dir = project_dir

    @contextmanager
    def workspace(self, snapshot: ProjectSnapshot) -> Iterator[Path]:
        yield self._project_dir


class LocalAwareWorkspaceManager:
    """Route local snapshots to a :class:`NoopWorkspaceManager` and the rest to archives."""

    def __init__(self, archives: ArchiveWorkspaceManager, local: NoopWorkspaceManager) -> None:
        self._archives = archives
        self._local = local

    @contextmanager
    def workspace(self, snapshot: ProjectSnapshot) -> Iterator[Path]:
        manager = self._local if snapshot.source is SnapshotSource.LOCAL else self._archives
        with manager.workspace(snapshot) as path:
            yield path


def select_workspace_manager(store: RevisionStore, local_project_dir: Path | None = None) -> WorkspaceManager:
    """Pick the workspace manager for a server.

    Without a local project every revision comes from the store.  With one,
    the local project is used in place and uploaded revisions still come from
    their archives.
    """
    archives = ArchiveWorkspaceManager(store)
    if local_project_dir is None:
        return archives
    return LocalAwareWorkspaceManager(archives, NoopWorkspaceManager(local_project_dir))
