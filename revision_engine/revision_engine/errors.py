"""Exception hierarchy shared by every revision lifecycle component.

The hierarchy mirrors how failures are handled:

* :class:`InputError` -- bad caller input, detected before any side effect.
* :class:`PackagingError` -- the archive could not be produced.
* :class:`LoadError` -- an archive or project tree could not be parsed.
* :class:`TransportError` -- the remote server could not be reached or
  rejected the request.
* :class:`DuplicateRevisionError` -- the revision store already binds a
  revision name to different content.

Input errors are never retried.  Load errors abort the publish flow but are
recovered locally by the auto-reloader.
"""

from __future__ import annotations


class RevisionError(Exception):
    """Base class for all revision lifecycle failures."""


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(RevisionError):
    """Raised when caller-supplied input is invalid."""


class MalformedParameterError(InputError):
    """Raised when an explicit override is not of the form ``key=value``."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Malformed parameter '{token}': expected KEY=VALUE.")


class ConfigParseError(InputError):
    """Raised when a parameter file or encoded parameter string cannot be parsed."""


class InvalidProjectNameError(InputError):
    """Raised when a project name is empty or contains unsafe characters."""


class InvalidRevisionNameError(InputError):
    """Raised when a revision identity is empty or contains unsafe characters."""


class InvalidScheduleFromError(InputError):
    """Raised when a ``--schedule-from`` value cannot be parsed."""


class ProjectDirNotFoundError(InputError):
    """Raised when the project directory does not exist."""


# ---------------------------------------------------------------------------
# Packaging / load errors
# ---------------------------------------------------------------------------


class PackagingError(RevisionError):
    """Raised when a project archive cannot be produced."""


class ArchiveIOError(PackagingError):
    """Raised when the staging archive cannot be written."""


class LoadError(RevisionError):
    """Raised when an archive or project directory cannot be loaded."""


class InvalidManifestError(LoadError):
    """Raised when workflow definitions or the embedded manifest are malformed."""


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(RevisionError):
    """Raised when the revision server cannot be reached."""


class ServerRejectedError(TransportError):
    """Raised when the revision server answers with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Server rejected request ({status_code}): {detail}")


class RevisionConflictError(ServerRejectedError):
    """Raised when a revision name is already bound to different content."""


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------


class DuplicateRevisionError(RevisionError):
    """Raised when a revision name is already stored with a different digest."""

    def __init__(self, project_name: str, revision: str, existing_digest: str) -> None:
        self.project_name = project_name
        self.revision = revision
        self.existing_digest = existing_digest
        super().__init__(
            f"Revision '{revision}' of project '{project_name}' already exists with different content "
            f"(sha256={existing_digest[:12]})."
        )
