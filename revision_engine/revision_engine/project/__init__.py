"""Project tree scanning and the project/workflow schema."""

from revision_engine.project.models import (
    MANIFEST_FILE_NAME,
    ArchiveManifest,
    ProjectSnapshot,
    ScheduleKind,
    ScheduleSpec,
    SnapshotSource,
    WorkflowDefinition,
)
from revision_engine.project.workflow_loader import (
    PROJECT_MANIFEST_NAME,
    ProjectTree,
    list_project_files,
    parse_project_manifest,
    parse_workflow_document,
    scan_project,
)

__all__ = [
    "MANIFEST_FILE_NAME",
    "PROJECT_MANIFEST_NAME",
    "ArchiveManifest",
    "ProjectSnapshot",
    "ProjectTree",
    "ScheduleKind",
    "ScheduleSpec",
    "SnapshotSource",
    "WorkflowDefinition",
    "list_project_files",
    "parse_project_manifest",
    "parse_workflow_document",
    "scan_project",
]
