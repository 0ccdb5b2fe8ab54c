"""API router for scheduled firing attempts."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Query
from revision_engine.state import AttemptRecord

from api.dependencies import StoreDep

router = APIRouter(prefix="/api/attempts", tags=["attempts"])


@router.get("")
async def list_attempts(
    store: StoreDep,
    project: str | None = Query(None, description="Filter by project name."),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return."),
) -> list[AttemptRecord]:
    """Return recorded firing attempts, newest first."""
    return await asyncio.to_thread(store.list_attempts, project, limit)
