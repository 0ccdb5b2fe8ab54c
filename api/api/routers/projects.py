"""API router for project revisions.

Provides endpoints for uploading a revision archive, listing and downloading
stored revisions, and reporting which revision is active per project.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from revision_engine.errors import DuplicateRevisionError, InputError, LoadError
from revision_engine.publish.models import ARCHIVE_MEDIA_TYPE, DIGEST_HEADER, ActiveProjectRecord, RevisionRecord
from revision_engine.schedule.window import parse_schedule_from

from api.dependencies import RevisionServiceDep, SettingsDep, StoreDep
from api.services.revision_service import ReservedProjectError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/active")
async def list_active_projects(service: RevisionServiceDep) -> list[ActiveProjectRecord]:
    """Return the active revision of every project, sorted by project name."""
    return service.active_projects()


@router.put("/{project_name}/revisions/{revision}", status_code=201)
async def put_revision(
    project_name: str,
    revision: str,
    request: Request,
    service: RevisionServiceDep,
    settings: SettingsDep,
    schedule_from: str | None = Query(None, description="Suppress scheduled firings before this instant."),
) -> JSONResponse:
    """Upload a gzip-compressed project archive as a named revision.

    Responds 201 for a new revision, 200 when the same content was already
    stored under this name, 409 when the name is bound to different content.
    """
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Request body must contain the project archive.")
    if len(data) > settings.max_archive_bytes:
        raise HTTPException(status_code=413, detail="Project archive exceeds the maximum upload size.")

    try:
        activation = parse_schedule_from(schedule_from) if schedule_from else None
        record, created = await asyncio.to_thread(
            service.upload,
            project_name,
            revision,
            data,
            schedule_from=activation,
            declared_digest=request.headers.get(DIGEST_HEADER),
        )
    except ReservedProjectError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DuplicateRevisionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (InputError, LoadError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info(
        "Revision %s of '%s' %s (%d bytes).",
        revision,
        project_name,
        "stored" if created else "already present",
        record.size,
    )
    return JSONResponse(status_code=201 if created else 200, content=record.model_dump(mode="json"))


@router.get("/{project_name}/revisions")
async def list_revisions(project_name: str, store: StoreDep) -> list[RevisionRecord]:
    """List stored revisions of a project, oldest first."""
    return await asyncio.to_thread(store.list_revisions, project_name)


@router.get("/{project_name}/revisions/{revision}/archive")
async def get_revision_archive(project_name: str, revision: str, store: StoreDep) -> Response:
    """Download the archive of a stored revision."""
    data = await asyncio.to_thread(store.get_archive, project_name, revision)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Revision '{revision}' of '{project_name}' not found.")
    return Response(
        content=data,
        media_type=ARCHIVE_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{project_name}-{revision}.tar.gz"'},
    )
