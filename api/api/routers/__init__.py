"""API router modules for the revision server."""

from __future__ import annotations

from api.routers import attempts, health, projects

__all__ = [
    "attempts",
    "health",
    "projects",
]
