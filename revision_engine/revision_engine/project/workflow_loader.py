"""Discover and parse the workflow definitions of a project directory.

A project directory contains ``*.dig`` workflow files (YAML documents) at its
root and, optionally, a ``project.yml`` manifest declaring default
``params``.  Any file or directory whose name starts with ``.`` is ignored.

Typical usage::

    tree = scan_project(Path("my_project"))
    for wf in tree.workflows:
        print(wf.name, wf.schedule)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from revision_engine.errors import InvalidManifestError, ProjectDirNotFoundError
from revision_engine.params.parameter_set import to_json_compatible
from revision_engine.project.models import ScheduleKind, ScheduleSpec, WorkflowDefinition
from revision_engine.schedule.triggers import ScheduleExpressionError, validate_schedule, validate_timezone
from revision_engine.yaml_loader import load_yaml

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIX = ".dig"
PROJECT_MANIFEST_NAME = "project.yml"

_SCHEDULE_OPERATORS: dict[str, ScheduleKind] = {kind.value: kind for kind in ScheduleKind}


@dataclass(frozen=True)
class ProjectTree:
    """Result of scanning a project directory."""

    root: Path
    files: tuple[str, ...]
    workflows: tuple[WorkflowDefinition, ...]
    params: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# File enumeration
# ---------------------------------------------------------------------------


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def list_project_files(root: Path) -> list[str]:
    """Return every packaged file under *root* as sorted POSIX relative paths.

    The order depends only on the path strings, never on filesystem
    iteration order.  Symlinked directories are not followed.
    """
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = [d for d in dirnames if not _is_hidden(d)]
        rel_dir = PurePosixPath(Path(dirpath).relative_to(root).as_posix())
        for name in filenames:
            if _is_hidden(name):
                continue
            full = Path(dirpath) / name
            if not full.is_file():
                continue
            files.append(str(rel_dir / name) if str(rel_dir) != "." else name)
    files.sort()
    return files


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_schedule(name: str, block: Any) -> ScheduleSpec:
    if not isinstance(block, dict):
        raise InvalidManifestError(f"Workflow '{name}': 'schedule' must be a mapping.")
    operators = [key for key in block if key in _SCHEDULE_OPERATORS]
    unknown = [key for key in block if isinstance(key, str) and key.endswith(">") and key not in _SCHEDULE_OPERATORS]
    if unknown:
        raise InvalidManifestError(f"Workflow '{name}': unknown schedule operator '{unknown[0]}'.")
    if len(operators) != 1:
        raise InvalidManifestError(f"Workflow '{name}': 'schedule' must declare exactly one operator.")
    op = operators[0]
    return ScheduleSpec(kind=_SCHEDULE_OPERATORS[op], expression=str(block[op]))


def parse_workflow_document(name: str, rel_path: str, text: str) -> WorkflowDefinition:
    """Parse the YAML text of one workflow file.

    Raises
    ------
    InvalidManifestError
        If the YAML is malformed, is not a mapping, or declares an invalid
        timezone or schedule.
    """
    try:
        doc = load_yaml(text)
    except yaml.YAMLError as exc:
        raise InvalidManifestError(f"Workflow '{rel_path}' is not valid YAML: {exc}") from exc

    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise InvalidManifestError(f"Workflow '{rel_path}' must be a mapping, got {type(doc).__name__}.")

    # Keys and YAML timestamps become strings so the definition embeds into,
    # and compares equal against, the archive manifest.
    try:
        doc = to_json_compatible(doc)
    except (TypeError, ValueError) as exc:
        raise InvalidManifestError(f"Workflow '{rel_path}': {exc}") from exc

    timezone = doc.get("timezone", "UTC")
    if not isinstance(timezone, str) or not timezone:
        raise InvalidManifestError(f"Workflow '{rel_path}': 'timezone' must be a non-empty string.")

    schedule = _parse_schedule(name, doc["schedule"]) if "schedule" in doc else None
    try:
        validate_timezone(timezone)
        if schedule is not None:
            validate_schedule(schedule, timezone)
    except ScheduleExpressionError as exc:
        raise InvalidManifestError(f"Workflow '{rel_path}': {exc}") from exc

    try:
        return WorkflowDefinition(name=name, path=rel_path, timezone=timezone, schedule=schedule, config=doc)
    except ValidationError as exc:
        raise InvalidManifestError(f"Workflow '{rel_path}': {exc}") from exc


def parse_workflow_file(path: Path, root: Path) -> WorkflowDefinition:
    """Read and parse a single ``.dig`` file located under *root*."""
    rel_path = path.relative_to(root).as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidManifestError(f"Failed to read workflow file '{rel_path}': {exc}") from exc
    return parse_workflow_document(path.stem, rel_path, text)


def parse_project_manifest(text: str) -> dict[str, Any]:
    """Parse ``project.yml`` text and return its ``params`` mapping."""
    try:
        doc = load_yaml(text)
    except yaml.YAMLError as exc:
        raise InvalidManifestError(f"{PROJECT_MANIFEST_NAME} is not valid YAML: {exc}") from exc
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise InvalidManifestError(f"{PROJECT_MANIFEST_NAME} must be a mapping.")
    params = doc.get("params") or {}
    if not isinstance(params, dict):
        raise InvalidManifestError(f"{PROJECT_MANIFEST_NAME}: 'params' must be a mapping.")
    try:
        return to_json_compatible(params)
    except (TypeError, ValueError) as exc:
        raise InvalidManifestError(f"{PROJECT_MANIFEST_NAME}: {exc}") from exc


# ---------------------------------------------------------------------------
# Directory scanning
# ---------------------------------------------------------------------------


def scan_project(root: Path) -> ProjectTree:
    """Enumerate files and parse workflow definitions under *root*.

    Raises
    ------
    ProjectDirNotFoundError
        If *root* does not exist or is not a directory.
    InvalidManifestError
        If any top-level workflow or the project manifest is malformed.
    """
    if not root.is_dir():
        raise ProjectDirNotFoundError(f"Project directory does not exist or is not a directory: '{root}'")

    files = list_project_files(root)

    params: dict[str, Any] = {}
    if PROJECT_MANIFEST_NAME in files:
        try:
            text = (root / PROJECT_MANIFEST_NAME).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidManifestError(f"Failed to read {PROJECT_MANIFEST_NAME}: {exc}") from exc
        params = parse_project_manifest(text)

    workflows = [
        parse_workflow_file(root / rel, root)
        for rel in files
        if "/" not in rel and rel.endswith(WORKFLOW_SUFFIX)
    ]
    workflows.sort(key=lambda wf: wf.name)

    if not workflows:
        logger.warning("No %s workflow files found under '%s'.", WORKFLOW_SUFFIX, root)
    logger.debug("Scanned %d file(s), %d workflow(s) under '%s'.", len(files), len(workflows), root)

    return ProjectTree(root=root, files=tuple(files), workflows=tuple(workflows), params=params)
