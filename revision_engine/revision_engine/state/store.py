"""Revision store protocol and the in-memory (ephemeral) implementation."""

from __future__ import annotations

import hashlib
import itertools
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from revision_engine.errors import DuplicateRevisionError
from revision_engine.publish.models import RevisionRecord


class AttemptStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AttemptRecord(BaseModel):
    """One dispatched schedule firing."""

    id: int | None = None
    project_name: str
    revision: str
    workflow_name: str
    fire_time: datetime
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: AttemptStatus
    error: str | None = None


class RevisionStore(Protocol):
    """Persistence of project revisions, their archives and firing attempts."""

    @property
    def durable(self) -> bool: ...

    def put_revision(
        self,
        project_name: str,
        revision: str,
        data: bytes,
        schedule_from: datetime | None = None,
    ) -> tuple[RevisionRecord, bool]: ...

    def get_revision(self, project_name: str, revision: str) -> RevisionRecord | None: ...

    def find_by_digest(self, project_name: str, digest: str) -> RevisionRecord | None: ...

    def list_revisions(self, project_name: str) -> list[RevisionRecord]: ...

    def latest_revisions(self) -> list[RevisionRecord]: ...

    def get_archive(self, project_name: str, revision: str) -> bytes | None: ...

    def record_attempt(self, attempt: AttemptRecord) -> AttemptRecord: ...

    def list_attempts(self, project_name: str | None = None, limit: int = 100) -> list[AttemptRecord]: ...

    def close(self) -> None: ...


@dataclass
class _StoredRevision:
    seq: int
    record: RevisionRecord
    data: bytes


class MemoryRevisionStore:
    """Ephemeral store: everything is lost when the process exits."""

    durable = False

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._revisions: dict[tuple[str, str], _StoredRevision] = {}
        self._attempts: list[AttemptRecord] = []

    def put_revision(
        self,
        project_name: str,
        revision: str,
        data: bytes,
        schedule_from: datetime | None = None,
    ) -> tuple[RevisionRecord, bool]:
        digest = hashlib.sha256(data).hexdigest()
        with self._lock:
            existing = self._revisions.get((project_name, revision))
            if existing is not None:
                if existing.record.digest != digest:
                    raise DuplicateRevisionError(project_name, revision, existing.record.digest)
                return existing.record, False
            record = RevisionRecord(
                project_name=project_name,
                revision=revision,
                digest=digest,
                size=len(data),
                schedule_from=schedule_from,
                created_at=datetime.now(UTC),
            )
            self._revisions[(project_name, revision)] = _StoredRevision(next(self._seq), record, data)
            return record, True

    def get_revision(self, project_name: str, revision: str) -> RevisionRecord | None:
        stored = self._revisions.get((project_name, revision))
        return stored.record if stored is not None else None

    def find_by_digest(self, project_name: str, digest: str) -> RevisionRecord | None:
        for stored in self._ordered(project_name):
            if stored.record.digest == digest:
                return stored.record
        return None

    def list_revisions(self, project_name: str) -> list[RevisionRecord]:
        return [stored.record for stored in self._ordered(project_name)]

    def latest_revisions(self) -> list[RevisionRecord]:
        latest: dict[str, _StoredRevision] = {}
        with self._lock:
            for stored in self._revisions.values():
                current = latest.get(stored.record.project_name)
                if current is None or stored.seq > current.seq:
                    latest[stored.record.project_name] = stored
        return [latest[name].record for name in sorted(latest)]

    def get_archive(self, project_name: str, revision: str) -> bytes | None:
        stored = self._revisions.get((project_name, revision))
        return stored.data if stored is not None else None

    def record_attempt(self, attempt: AttemptRecord) -> AttemptRecord:
        with self._lock:
            saved = attempt.model_copy(update={"id": len(self._attempts) + 1})
            self._attempts.append(saved)
        return saved

    def list_attempts(self, project_name: str | None = None, limit: int = 100) -> list[AttemptRecord]:
        with self._lock:
            attempts = [a for a in self._attempts if project_name is None or a.project_name == project_name]
        return list(reversed(attempts))[:limit]

    def close(self) -> None:
        pass

    def _ordered(self, project_name: str) -> list[_StoredRevision]:
        with self._lock:
            found = [s for (project, _), s in self._revisions.items() if project == project_name]
        return sorted(found, key=lambda s: s.seq)
