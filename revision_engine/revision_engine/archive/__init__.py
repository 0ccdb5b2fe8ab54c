"""Deterministic project archives and the loader that reads them back."""

from revision_engine.archive.archiver import (
    ProjectArchive,
    ProjectArchiver,
    StagedArchive,
    build_manifest,
    compute_tree_digest,
    render_manifest,
)
from revision_engine.archive.loader import ProjectArchiveLoader, extract_archive, read_manifest

__all__ = [
    "ProjectArchive",
    "ProjectArchiveLoader",
    "ProjectArchiver",
    "StagedArchive",
    "build_manifest",
    "compute_tree_digest",
    "extract_archive",
    "read_manifest",
    "render_manifest",
]
