"""Revision stores: ephemeral in-memory or durable SQLite."""

from __future__ import annotations

import logging
from pathlib import Path

from revision_engine.state.sql_store import DATABASE_FILE_NAME, SqlRevisionStore
from revision_engine.state.store import AttemptRecord, AttemptStatus, MemoryRevisionStore, RevisionStore

logger = logging.getLogger(__name__)

__all__ = [
    "DATABASE_FILE_NAME",
    "AttemptRecord",
    "AttemptStatus",
    "MemoryRevisionStore",
    "RevisionStore",
    "SqlRevisionStore",
    "open_store",
]


def open_store(database_dir: Path | str | None) -> RevisionStore:
    """Open the revision store for *database_dir*.

    An empty or missing directory setting selects the in-memory store, whose
    content is lost when the server stops.
    """
    if not database_dir:
        logger.info("Using in-memory revision store (not durable).")
        return MemoryRevisionStore()
    path = Path(database_dir) / DATABASE_FILE_NAME
    logger.info("Using durable revision store at '%s'.", path)
    return SqlRevisionStore(path)
