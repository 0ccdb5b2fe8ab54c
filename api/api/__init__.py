"""Revision server: FastAPI application hosting revisions and their schedules."""

__version__ = "0.4.0"
