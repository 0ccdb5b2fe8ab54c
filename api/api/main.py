"""FastAPI application entry-point for the revision server."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from revision_engine.params.codec import decode_params
from revision_engine.reload.auto_reloader import RevisionAutoReloader
from revision_engine.schedule.evaluator import ScheduleEvaluator, SchedulerLoop
from revision_engine.schedule.firing import RecordingFiringHandler
from revision_engine.workspace import select_workspace_manager

from api import __version__
from api.config import ServerSettings, load_server_settings
from api.dependencies import (
    dispose_store,
    init_registry,
    init_settings,
    init_store,
    set_reloader,
)
from api.middleware.json_formatter import install_json_logging
from api.middleware.logging import RequestLoggingMiddleware
from api.routers import attempts, health, projects
from api.services.revision_service import RevisionService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Open the revision store (durable when a database directory is set).
    - Re-activate the latest stored revision of every project.
    - In local mode, load the local project synchronously and start the
      auto-reloader.  A project that fails to load aborts startup.
    - Start the schedule evaluation loop.

    On shutdown:
    - Stop the scheduler and the reloader, then close the store.
    """
    settings: ServerSettings = app.state.settings
    init_settings(settings)

    if settings.structured_logging:
        install_json_logging(logging.DEBUG if settings.debug else logging.INFO)
        logger.info("Structured JSON logging enabled")

    store = init_store(settings)
    registry = init_registry()

    local_dir = Path(settings.local_project) if settings.local_project else None
    reloader: RevisionAutoReloader | None = None
    if local_dir is not None:
        reference = registry.reserve(settings.local_project_name)
        reloader = RevisionAutoReloader(reference, debounce_seconds=settings.reload_debounce_seconds)
        try:
            reloader.watch(local_dir, decode_params(settings.local_overwrite_params))
        except Exception:
            dispose_store()
            raise
        await reloader.start()
        set_reloader(reloader)

    RevisionService(store, registry).restore_active()

    workspaces = select_workspace_manager(store, local_dir)
    evaluator = ScheduleEvaluator(registry, RecordingFiringHandler(store, workspaces))
    scheduler = SchedulerLoop(evaluator, settings.scheduler_interval_seconds)
    if settings.scheduler_enabled:
        await scheduler.start()

    logger.info(
        "Revision server ready (store=%s, local project=%s)",
        "durable" if store.durable else "memory",
        local_dir or "none",
    )

    yield

    # Shutdown.
    await scheduler.stop()
    if reloader is not None:
        await reloader.stop()
        set_reloader(None)
    dispose_store()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Construct and configure the FastAPI application.

    Parameters
    ----------
    settings:
        Server settings.  Loaded from the environment when omitted, which is
        how ``revkit sched`` hands its options to the server.
    """
    app = FastAPI(
        title="revkit revision server",
        description="Stores project revisions and keeps their schedules active.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings or load_server_settings()

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router)
    app.include_router(projects.router)
    app.include_router(attempts.router)

    return app
