"""Load project archives (or local project directories) into snapshots.

Loading is a pure function of its inputs: it never touches the active project
reference.  Installing the returned snapshot is the caller's job.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import tarfile
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from revision_engine.archive.archiver import digest_tree
from revision_engine.errors import InvalidManifestError
from revision_engine.params.parameter_set import ParameterSet
from revision_engine.project.models import (
    MANIFEST_FILE_NAME,
    ArchiveManifest,
    ProjectSnapshot,
    SnapshotSource,
)
from revision_engine.project.workflow_loader import parse_workflow_document, scan_project
from revision_engine.yaml_loader import load_yaml

logger = logging.getLogger(__name__)

# Guard against decompression bombs when reading uploaded archives.
_MAX_MEMBER_BYTES = 64 * 1024 * 1024


def _safe_member_name(name: str) -> str:
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts or not path.parts:
        raise InvalidManifestError(f"Archive member has an unsafe path: '{name}'")
    return path.as_posix()


def _read_members(data: bytes) -> dict[str, bytes]:
    """Return ``{relative_path: content}`` for every regular file in *data*."""
    members: dict[str, bytes] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            for member in tar:
                if member.isdir():
                    continue
                if not member.isfile():
                    raise InvalidManifestError(f"Archive member '{member.name}' is not a regular file.")
                if member.size > _MAX_MEMBER_BYTES:
                    raise InvalidManifestError(f"Archive member '{member.name}' is too large.")
                name = _safe_member_name(member.name)
                fh = tar.extractfile(member)
                if fh is None:
                    raise InvalidManifestError(f"Cannot read archive member '{member.name}'.")
                members[name] = fh.read()
    except (tarfile.TarError, gzip.BadGzipFile, EOFError, OSError) as exc:
        raise InvalidManifestError(f"Corrupt project archive: {exc}") from exc
    return members


def read_manifest(members: Mapping[str, bytes]) -> ArchiveManifest:
    """Parse and validate the embedded ``.revision.yml`` manifest."""
    raw = members.get(MANIFEST_FILE_NAME)
    if raw is None:
        raise InvalidManifestError(f"Project archive has no {MANIFEST_FILE_NAME} manifest.")
    try:
        doc = load_yaml(raw.decode("utf-8"))
    except (UnicodeDecodeError, yaml.YAMLError) as exc:
        raise InvalidManifestError(f"{MANIFEST_FILE_NAME} is not valid YAML: {exc}") from exc
    if not isinstance(doc, dict):
        raise InvalidManifestError(f"{MANIFEST_FILE_NAME} must be a mapping.")
    try:
        return ArchiveManifest.model_validate(doc)
    except ValidationError as exc:
        raise InvalidManifestError(f"{MANIFEST_FILE_NAME} does not match the manifest schema: {exc}") from exc


def extract_archive(data: bytes, destination: Path) -> list[str]:
    """Extract the project files of *data* below *destination*.

    Member paths are validated, so nothing is ever written outside
    *destination*.  The manifest itself is not extracted.

    Returns
    -------
    list[str]
        Relative paths written, in archive order.
    """
    written: list[str] = []
    for name, content in _read_members(data).items():
        if name == MANIFEST_FILE_NAME:
            continue
        target = destination / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        written.append(name)
    return written


class ProjectArchiveLoader:
    """Parse archives and local project directories into :class:`ProjectSnapshot` objects."""

    def load(
        self,
        source: bytes | Path,
        identity: str | None = None,
        *,
        project_name: str,
        overwrite_params: Mapping[str, Any] | None = None,
        schedule_from: datetime | None = None,
    ) -> ProjectSnapshot:
        """Load *source* and attach *identity*.

        Parameters
        ----------
        source:
            Archive bytes, or a project directory (local mode: no compression,
            parameters are merged here instead of coming from a manifest).
        identity:
            Revision identity to attach.  For archives, defaults to the
            revision embedded in the manifest.
        project_name:
            Project the snapshot belongs to.
        overwrite_params:
            Local mode only: parameters layered over ``project.yml`` defaults.
        schedule_from:
            Optional activation time carried into the snapshot.

        Raises
        ------
        InvalidManifestError
            If workflow definitions or the manifest are malformed, the archive
            is corrupt, or no identity is available.
        ProjectDirNotFoundError
            Local mode, if the directory does not exist.
        """
        if isinstance(source, Path):
            return self._load_directory(source, identity, project_name, overwrite_params or {}, schedule_from)
        return self._load_archive(source, identity, project_name, schedule_from)

    def _load_archive(
        self,
        data: bytes,
        identity: str | None,
        project_name: str,
        schedule_from: datetime | None,
    ) -> ProjectSnapshot:
        members = _read_members(data)
        manifest = read_manifest(members)

        revision = identity or manifest.revision
        if not revision:
            raise InvalidManifestError("No revision identity supplied and none embedded in the manifest.")

        workflows = []
        for wf in manifest.workflows:
            content = members.get(wf.path)
            if content is None:
                raise InvalidManifestError(f"Workflow '{wf.name}' refers to missing file '{wf.path}'.")
            # Re-parse the packaged file so schedule and timezone rules are
            # enforced on the server exactly as they were on the client.
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidManifestError(f"Workflow file '{wf.path}' is not UTF-8: {exc}") from exc
            parsed = parse_workflow_document(wf.name, wf.path, text)
            if parsed != wf:
                raise InvalidManifestError(f"Workflow '{wf.name}' does not match its packaged file '{wf.path}'.")
            workflows.append(parsed)
        workflows.sort(key=lambda w: w.name)

        missing = [f for f in manifest.files if f not in members]
        if missing:
            raise InvalidManifestError(f"Archive is missing declared file(s): {', '.join(missing[:5])}")

        snapshot = ProjectSnapshot(
            project_name=project_name,
            revision=revision,
            digest=hashlib.sha256(data).hexdigest(),
            workflows=tuple(workflows),
            params=ParameterSet(manifest.params),
            schedule_from=schedule_from,
            source=SnapshotSource.ARCHIVE,
        )
        logger.debug("Loaded archive revision %s of '%s' (%d workflow(s)).", revision, project_name, len(workflows))
        return snapshot

    def _load_directory(
        self,
        root: Path,
        identity: str | None,
        project_name: str,
        overwrite_params: Mapping[str, Any],
        schedule_from: datetime | None,
    ) -> ProjectSnapshot:
        if not identity:
            raise InvalidManifestError("A revision identity is required to load a project directory.")

        tree = scan_project(root)
        try:
            params = ParameterSet(tree.params).merged_with(overwrite_params)
        except (TypeError, ValueError) as exc:
            raise InvalidManifestError(f"Invalid overwrite parameters: {exc}") from exc
        digest = digest_tree(tree, overwrite_params)

        snapshot = ProjectSnapshot(
            project_name=project_name,
            revision=identity,
            digest=digest,
            workflows=tree.workflows,
            params=params,
            schedule_from=schedule_from,
            source=SnapshotSource.LOCAL,
        )
        logger.debug("Loaded local project '%s' from '%s' as %s.", project_name, root, identity)
        return snapshot
