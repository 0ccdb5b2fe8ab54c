"""Accept uploaded revisions and keep the active project registry current.

Every upload is loaded (and thereby validated) before it is stored, so a
revision that reaches the store is always loadable.  A newly stored revision
becomes the active revision of its project; re-uploading identical content
is a no-op, whatever revision name it arrives under.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from datetime import datetime

from revision_engine.archive.loader import ProjectArchiveLoader
from revision_engine.errors import DuplicateRevisionError, InputError, RevisionError
from revision_engine.publish.models import ActiveProjectRecord, RevisionRecord
from revision_engine.reload.active_reference import ProjectRegistry
from revision_engine.revision.naming import validate_project_name, validate_revision_name
from revision_engine.state.store import RevisionStore

logger = logging.getLogger(__name__)


class ReservedProjectError(InputError):
    """Raised when an upload targets the project served from the local directory."""


class DigestMismatchError(InputError):
    """Raised when the uploaded bytes do not match the declared digest."""


class RevisionService:
    """Revision upload and query operations shared by the API routes."""

    def __init__(
        self,
        store: RevisionStore,
        registry: ProjectRegistry,
        loader: ProjectArchiveLoader | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._loader = loader or ProjectArchiveLoader()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _project_lock(self, project_name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(project_name, threading.Lock())

    def upload(
        self,
        project_name: str,
        revision: str,
        data: bytes,
        *,
        schedule_from: datetime | None = None,
        declared_digest: str | None = None,
    ) -> tuple[RevisionRecord, bool]:
        """Store *data* as *revision* of *project_name* and activate it.

        Returns
        -------
        tuple[RevisionRecord, bool]
            The stored record and whether it was newly created.  Content
            already stored under another revision name returns that record.

        Raises
        ------
        InputError
            For invalid names, a reserved project or a digest mismatch.
        InvalidManifestError
            If the archive does not load.
        DuplicateRevisionError
            If *revision* already exists with different content.
        """
        validate_project_name(project_name)
        validate_revision_name(revision)
        if self._registry.is_reserved(project_name):
            raise ReservedProjectError(f"Project '{project_name}' is served from a local directory.")
        digest = hashlib.sha256(data).hexdigest()
        if declared_digest is not None and digest != declared_digest.lower():
            raise DigestMismatchError("Uploaded archive does not match its declared SHA-256 digest.")

        # Store and activation happen under one lock so the active revision
        # is always the latest stored one.
        with self._project_lock(project_name):
            existing = self._store.get_revision(project_name, revision)
            if existing is not None:
                if existing.digest != digest:
                    raise DuplicateRevisionError(project_name, revision, existing.digest)
                return existing, False
            same_content = self._store.find_by_digest(project_name, digest)
            if same_content is not None:
                logger.info(
                    "Upload %s of '%s' matches stored revision %s (sha256=%s).",
                    revision,
                    project_name,
                    same_content.revision,
                    digest[:12],
                )
                return same_content, False

            snapshot = self._loader.load(data, revision, project_name=project_name, schedule_from=schedule_from)
            record, created = self._store.put_revision(project_name, revision, data, schedule_from)
            if created:
                self._registry.reference(project_name).replace(snapshot)
        return record, created

    def restore_active(self) -> int:
        """Re-activate the latest stored revision of every project.

        Revisions that no longer load are logged and skipped.

        Returns
        -------
        int
            Number of projects activated.
        """
        restored = 0
        for record in self._store.latest_revisions():
            if self._registry.is_reserved(record.project_name):
                continue
            data = self._store.get_archive(record.project_name, record.revision)
            if data is None:
                logger.error("Stored revision %s of '%s' has no archive.", record.revision, record.project_name)
                continue
            try:
                snapshot = self._loader.load(
                    data,
                    record.revision,
                    project_name=record.project_name,
                    schedule_from=record.schedule_from,
                )
            except RevisionError as exc:
                logger.error(
                    "Cannot restore revision %s of '%s': %s",
                    record.revision,
                    record.project_name,
                    exc,
                    exc_info=True,
                )
                continue
            self._registry.reference(record.project_name).replace(snapshot)
            restored += 1
        if restored:
            logger.info("Restored %d active project(s) from the revision store.", restored)
        return restored

    def active_projects(self) -> list[ActiveProjectRecord]:
        records: list[ActiveProjectRecord] = []
        for ref in sorted(self._registry, key=lambda r: r.project_name):
            current = ref.get_versioned()
            snapshot = current.snapshot
            if snapshot is None:
                continue
            records.append(
                ActiveProjectRecord(
                    project_name=snapshot.project_name,
                    revision=snapshot.revision,
                    digest=snapshot.digest,
                    source=snapshot.source.value,
                    version=current.version,
                    activated_at=current.activated_at,
                    schedule_from=snapshot.schedule_from,
                    workflows=[wf.name for wf in snapshot.workflows],
                )
            )
        return records
