"""Durable revision store on SQLite via SQLAlchemy 2.0.

Uses the same ORM style as the rest of the platform's state layer.  Tables
are created on first open, so pointing the server at an empty directory is
enough to get a durable store.

Key differences from :class:`MemoryRevisionStore`:

* Revisions, archives and attempts survive a restart.
* SQLite returns naive datetimes; they are re-attached to UTC on read.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import Engine, create_engine, event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from revision_engine.errors import DuplicateRevisionError
from revision_engine.publish.models import RevisionRecord
from revision_engine.state.store import AttemptRecord, AttemptStatus
from revision_engine.state.tables import ArchiveTable, AttemptTable, Base, RevisionTable

logger = logging.getLogger(__name__)

DATABASE_FILE_NAME = "revisions.db"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_record(row: RevisionTable) -> RevisionRecord:
    return RevisionRecord(
        project_name=row.project_name,
        revision=row.revision,
        digest=row.digest,
        size=row.size,
        schedule_from=_as_utc(row.schedule_from),
        created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
        archive_type=row.archive_type,
    )


def _to_attempt(row: AttemptTable) -> AttemptRecord:
    return AttemptRecord(
        id=row.id,
        project_name=row.project_name,
        revision=row.revision,
        workflow_name=row.workflow_name,
        fire_time=_as_utc(row.fire_time),  # type: ignore[arg-type]
        started_at=_as_utc(row.started_at),  # type: ignore[arg-type]
        status=AttemptStatus(row.status),
        error=row.error,
    )


def get_engine(db_path: Path) -> Engine:
    """Create a SQLAlchemy engine for the SQLite file at *db_path*.

    Parent directories are created automatically.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite:///{db_path}"
    engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine: %s", url)
    return engine


class SqlRevisionStore:
    """Durable :class:`RevisionStore` backed by a SQLite file.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    """

    durable = True

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._engine = get_engine(db_path)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def _find(self, session: Session, project_name: str, revision: str) -> RevisionTable | None:
        stmt = select(RevisionTable).where(
            RevisionTable.project_name == project_name,
            RevisionTable.revision == revision,
        )
        return session.scalars(stmt).first()

    def put_revision(
        self,
        project_name: str,
        revision: str,
        data: bytes,
        schedule_from: datetime | None = None,
    ) -> tuple[RevisionRecord, bool]:
        digest = hashlib.sha256(data).hexdigest()
        with self._sessions() as session:
            existing = self._find(session, project_name, revision)
            if existing is not None:
                if existing.digest != digest:
                    raise DuplicateRevisionError(project_name, revision, existing.digest)
                return _to_record(existing), False

            row = RevisionTable(
                project_name=project_name,
                revision=revision,
                digest=digest,
                size=len(data),
                schedule_from=_as_utc(schedule_from),
            )
            session.add(row)
            try:
                session.flush()
                session.add(ArchiveTable(revision_id=row.id, data=data))
                session.commit()
            except IntegrityError:
                # Lost a race against a concurrent upload of the same name.
                session.rollback()
                return self._resolve_race(project_name, revision, digest)
            logger.info("Stored revision %s of '%s' (%d bytes).", revision, project_name, len(data))
            return _to_record(row), True

    def _resolve_race(self, project_name: str, revision: str, digest: str) -> tuple[RevisionRecord, bool]:
        with self._sessions() as session:
            existing = self._find(session, project_name, revision)
            if existing is None:
                raise RuntimeError(f"Revision '{revision}' vanished during insert")
            if existing.digest != digest:
                raise DuplicateRevisionError(project_name, revision, existing.digest)
            return _to_record(existing), False

    def get_revision(self, project_name: str, revision: str) -> RevisionRecord | None:
        with self._sessions() as session:
            row = self._find(session, project_name, revision)
            return _to_record(row) if row is not None else None

    def find_by_digest(self, project_name: str, digest: str) -> RevisionRecord | None:
        stmt = (
            select(RevisionTable)
            .where(RevisionTable.project_name == project_name, RevisionTable.digest == digest)
            .order_by(RevisionTable.id)
        )
        with self._sessions() as session:
            row = session.scalars(stmt).first()
            return _to_record(row) if row is not None else None

    def list_revisions(self, project_name: str) -> list[RevisionRecord]:
        stmt = select(RevisionTable).where(RevisionTable.project_name == project_name).order_by(RevisionTable.id)
        with self._sessions() as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def latest_revisions(self) -> list[RevisionRecord]:
        latest_ids = select(func.max(RevisionTable.id)).group_by(RevisionTable.project_name)
        stmt = select(RevisionTable).where(RevisionTable.id.in_(latest_ids)).order_by(RevisionTable.project_name)
        with self._sessions() as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def get_archive(self, project_name: str, revision: str) -> bytes | None:
        stmt = (
            select(ArchiveTable.data)
            .join(RevisionTable, RevisionTable.id == ArchiveTable.revision_id)
            .where(RevisionTable.project_name == project_name, RevisionTable.revision == revision)
        )
        with self._sessions() as session:
            return session.scalars(stmt).first()

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def record_attempt(self, attempt: AttemptRecord) -> AttemptRecord:
        row = AttemptTable(
            project_name=attempt.project_name,
            revision=attempt.revision,
            workflow_name=attempt.workflow_name,
            fire_time=_as_utc(attempt.fire_time),
            started_at=_as_utc(attempt.started_at),
            status=attempt.status.value,
            error=attempt.error,
        )
        with self._sessions() as session:
            session.add(row)
            session.commit()
            return attempt.model_copy(update={"id": row.id})

    def list_attempts(self, project_name: str | None = None, limit: int = 100) -> list[AttemptRecord]:
        stmt = select(AttemptTable)
        if project_name is not None:
            stmt = stmt.where(AttemptTable.project_name == project_name)
        stmt = stmt.order_by(AttemptTable.id.desc()).limit(limit)
        with self._sessions() as session:
            return [_to_attempt(row) for row in session.scalars(stmt)]
