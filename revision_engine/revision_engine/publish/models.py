"""Records exchanged between the publisher and the revision server."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

ARCHIVE_TYPE = "tar.gz"
ARCHIVE_MEDIA_TYPE = "application/gzip"
DIGEST_HEADER = "X-Content-SHA256"


class PublishOutcome(str, Enum):
    NEW = "new"
    EXISTING = "existing"


class RevisionRecord(BaseModel):
    """Server-side record of one stored project revision."""

    project_name: str
    revision: str
    digest: str = Field(..., description="SHA-256 hex digest of the archive bytes.")
    size: int = Field(..., ge=0, description="Archive size in bytes.")
    schedule_from: datetime | None = None
    created_at: datetime
    archive_type: str = ARCHIVE_TYPE


class ActiveProjectRecord(BaseModel):
    """Revision currently active for a project on a running server."""

    project_name: str
    revision: str
    digest: str
    source: str
    version: int
    activated_at: datetime | None = None
    schedule_from: datetime | None = None
    workflows: list[str] = Field(default_factory=list)


class PublishResult(BaseModel):
    record: RevisionRecord
    outcome: PublishOutcome

    @property
    def created(self) -> bool:
        return self.outcome is PublishOutcome.NEW
