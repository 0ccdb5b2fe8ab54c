"""Revision identity generation and validation."""

from revision_engine.revision.naming import (
    generate_default_revision,
    validate_project_name,
    validate_revision_name,
)

__all__ = [
    "generate_default_revision",
    "validate_project_name",
    "validate_revision_name",
]
