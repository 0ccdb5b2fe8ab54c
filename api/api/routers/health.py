"""Health-check endpoint.

Always answers 200 while the process serves requests; the body reports
the store durability and, in local mode, the state of the auto-reloader.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from api import __version__
from api.dependencies import RegistryDep, ReloaderDep, StoreDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(store: StoreDep, registry: RegistryDep, reloader: ReloaderDep) -> dict[str, Any]:
    """Return service health and revision lifecycle status."""
    result: dict[str, Any] = {
        "status": "healthy",
        "version": __version__,
        "durable_store": store.durable,
        "active_projects": len(registry.snapshots()),
    }
    if reloader is not None:
        result["local_reload"] = {
            "state": reloader.state.value,
            "successful_reloads": reloader.successful_reloads,
            "failed_reloads": reloader.failed_reloads,
            "last_error": reloader.last_error,
        }
    return result
