"""Schema for workflow definitions, archive manifests and project snapshots."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from revision_engine.params.parameter_set import ParameterSet
from revision_engine.schedule.spec import ScheduleKind, ScheduleSpec

MANIFEST_FILE_NAME = ".revision.yml"
MANIFEST_SCHEMA_VERSION = 1

__all__ = [
    "MANIFEST_FILE_NAME",
    "MANIFEST_SCHEMA_VERSION",
    "ArchiveManifest",
    "ProjectSnapshot",
    "ScheduleKind",
    "ScheduleSpec",
    "SnapshotSource",
    "WorkflowDefinition",
]


class SnapshotSource(str, Enum):
    ARCHIVE = "archive"
    LOCAL = "local"


class WorkflowDefinition(BaseModel):
    """One top-level ``.dig`` workflow of a project."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Workflow name (file stem).")
    path: str = Field(..., min_length=1, description="POSIX path relative to the project root.")
    timezone: str = Field(default="UTC", min_length=1)
    schedule: ScheduleSpec | None = None
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="The workflow document as parsed from YAML.",
    )


class ArchiveManifest(BaseModel):
    """Metadata embedded as ``.revision.yml`` inside every project archive.

    ``params`` holds the merged parameter set (project defaults overlaid with
    the caller's overrides) so that the loader sees parameters as part of the
    committed content.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=MANIFEST_SCHEMA_VERSION)
    revision: str | None = None
    workflows: list[WorkflowDefinition] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)
    files: list[str] = Field(default_factory=list)

    @field_validator("schema_version")
    @classmethod
    def _supported_version(cls, v: int) -> int:
        if v != MANIFEST_SCHEMA_VERSION:
            raise ValueError(f"unsupported manifest schema_version {v}")
        return v


class ProjectSnapshot(BaseModel):
    """Loaded, in-memory form of one project revision.

    Snapshots are replaced as a whole and never modified in place; holding a
    reference to one guarantees a consistent view of its workflows and
    parameters.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    project_name: str = Field(..., min_length=1)
    revision: str = Field(..., min_length=1)
    digest: str = Field(..., min_length=1, description="SHA-256 hex digest of the content.")
    workflows: tuple[WorkflowDefinition, ...] = ()
    params: ParameterSet = Field(default_factory=ParameterSet)
    schedule_from: datetime | None = None
    source: SnapshotSource = SnapshotSource.ARCHIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def workflow(self, name: str) -> WorkflowDefinition | None:
        for wf in self.workflows:
            if wf.name == name:
                return wf
        return None

    def with_schedule_from(self, schedule_from: datetime | None) -> ProjectSnapshot:
        return self.model_copy(update={"schedule_from": schedule_from})
