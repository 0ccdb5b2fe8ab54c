"""Deterministic packaging of a project directory into a ``.tar.gz`` archive.

Identical directory trees and parameter sets always produce byte-identical
archives, which makes the SHA-256 digest usable for idempotent re-push
detection.  To get there every source of nondeterminism is pinned:

* files are written in sorted relative-path order, the generated manifest
  first;
* tar headers carry ``mtime=0``, ``uid=gid=0``, empty owner names and a
  mode of ``0644`` (``0755`` when the source file is executable);
* the gzip header carries ``mtime=0`` and no file name.

The merged parameters are embedded into the ``.revision.yml`` manifest
before packaging, so a loader sees them as part of the committed content.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import os
import shutil
import stat
import tarfile
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

import yaml  # type: ignore[import-untyped]

from revision_engine.errors import ArchiveIOError, InvalidManifestError
from revision_engine.params.parameter_set import ParameterSet
from revision_engine.project.models import MANIFEST_FILE_NAME, ArchiveManifest
from revision_engine.project.workflow_loader import ProjectTree, scan_project

logger = logging.getLogger(__name__)

_FILE_MODE = 0o644
_EXEC_MODE = 0o755


@dataclass(frozen=True)
class ProjectArchive:
    """An in-memory archive and its content digest."""

    data: bytes
    digest: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StagedArchive:
    """An archive written to a staging file owned by :meth:`ProjectArchiver.staged`.

    The staging file is deleted when the ``staged()`` block exits unless
    :meth:`persist` moved it somewhere else first.
    """

    path: Path
    digest: str
    size: int
    persisted: bool = field(default=False)

    def persist(self, destination: Path) -> Path:
        """Move the archive to *destination* and take ownership of it."""
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(self.path, destination)
        except OSError as exc:
            raise ArchiveIOError(f"Failed to persist archive to '{destination}': {exc}") from exc
        self.path = destination
        self.persisted = True
        return destination


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


def build_manifest(
    tree: ProjectTree,
    params: Mapping[str, Any],
    revision: str | None = None,
) -> ArchiveManifest:
    """Return the manifest for *tree* with *params* layered over project defaults."""
    try:
        merged = ParameterSet(tree.params).merged_with(params)
    except (TypeError, ValueError) as exc:
        raise InvalidManifestError(f"Invalid parameters: {exc}") from exc
    return ArchiveManifest(
        revision=revision,
        workflows=list(tree.workflows),
        params=merged.to_dict(),
        files=list(tree.files),
    )


def render_manifest(manifest: ArchiveManifest) -> bytes:
    """Serialise *manifest* to YAML bytes.

    Key order follows the model and the source documents rather than being
    sorted, so parameter order survives the round trip.
    """
    try:
        data = manifest.model_dump(mode="json")
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    except (TypeError, ValueError, yaml.YAMLError) as exc:
        raise InvalidManifestError(f"Cannot serialise {MANIFEST_FILE_NAME}: {exc}") from exc
    return text.encode("utf-8")


# ---------------------------------------------------------------------------
# Tar writing
# ---------------------------------------------------------------------------


def _tar_info(name: str, size: int, executable: bool) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name=name)
    info.size = size
    info.mtime = 0
    info.mode = _EXEC_MODE if executable else _FILE_MODE
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    info.type = tarfile.REGTYPE
    return info


def _write_archive(fileobj: BinaryIO, tree: ProjectTree, manifest_bytes: bytes) -> None:
    with gzip.GzipFile(filename="", mode="wb", fileobj=fileobj, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            tar.addfile(_tar_info(MANIFEST_FILE_NAME, len(manifest_bytes), False), io.BytesIO(manifest_bytes))
            for rel in tree.files:
                source = tree.root / rel
                data = source.read_bytes()
                executable = bool(source.stat().st_mode & stat.S_IXUSR)
                tar.addfile(_tar_info(rel, len(data), executable), io.BytesIO(data))


def compute_tree_digest(project_dir: Path, params: Mapping[str, Any]) -> str:
    """Return the digest :meth:`ProjectArchiver.archive` would produce, in memory.

    Used in local mode to recognise a tree whose content did not change.
    """
    return digest_tree(scan_project(project_dir), params)


def digest_tree(tree: ProjectTree, params: Mapping[str, Any]) -> str:
    manifest_bytes = render_manifest(build_manifest(tree, params))
    buffer = io.BytesIO()
    _write_archive(buffer, tree, manifest_bytes)
    return hashlib.sha256(buffer.getvalue()).hexdigest()


# ---------------------------------------------------------------------------
# Archiver
# ---------------------------------------------------------------------------


class ProjectArchiver:
    """Package project directories into deterministic archives.

    Parameters
    ----------
    staging_dir:
        Directory that receives temporary archive files.  Created on demand.
        Defaults to the system temporary directory.
    """

    def __init__(self, staging_dir: Path | None = None) -> None:
        self._staging_dir = staging_dir

    @contextmanager
    def staged(
        self,
        project_dir: Path,
        params: Mapping[str, Any],
        revision: str | None = None,
    ) -> Iterator[StagedArchive]:
        """Write the archive to a staging file and yield it.

        *revision*, when given, is embedded in the manifest so that the
        archive can be loaded without an external identity.

        The project is scanned and validated before the staging file is
        created, so input errors leave nothing behind.  The staging file is
        removed on every exit path unless the caller persisted it.

        Raises
        ------
        ProjectDirNotFoundError
            If *project_dir* does not exist.
        InvalidManifestError
            If a workflow file or ``project.yml`` is malformed.
        ArchiveIOError
            If the staging file cannot be created or written.
        """
        tree = scan_project(project_dir)
        manifest_bytes = render_manifest(build_manifest(tree, params, revision))

        try:
            if self._staging_dir is not None:
                self._staging_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix="archive-", suffix=".tar.gz", dir=self._staging_dir)
        except OSError as exc:
            raise ArchiveIOError(f"Cannot create staging archive in '{self._staging_dir}': {exc}") from exc

        path = Path(name)
        staged: StagedArchive | None = None
        try:
            try:
                with os.fdopen(fd, "w+b") as fh:
                    _write_archive(fh, tree, manifest_bytes)
                    fh.flush()
                    size = fh.tell()
                    fh.seek(0)
                    digest = hashlib.file_digest(fh, "sha256").hexdigest()
            except OSError as exc:
                raise ArchiveIOError(f"Failed to write archive '{path}': {exc}") from exc

            staged = StagedArchive(path=path, digest=digest, size=size)
            logger.info(
                "Archived %d file(s) from '%s' (%d bytes, sha256=%s).",
                len(tree.files),
                project_dir,
                size,
                digest[:12],
            )
            yield staged
        finally:
            if staged is None or not staged.persisted:
                path.unlink(missing_ok=True)

    def archive(
        self,
        project_dir: Path,
        params: Mapping[str, Any],
        revision: str | None = None,
    ) -> ProjectArchive:
        """Build the archive and return its bytes and digest; nothing is left on disk."""
        with self.staged(project_dir, params, revision) as staged:
            data = staged.path.read_bytes()
            digest = staged.digest
        return ProjectArchive(data=data, digest=digest)
