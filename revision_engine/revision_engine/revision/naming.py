"""Default revision identities and name validation.

Generated revisions look like ``20240115T120000.000123Z_7f3a1c9e``: a UTC
timestamp with microsecond precision followed by a random hex suffix.  Within
one process the timestamp part is strictly increasing, so lexical order of
generated names is creation order even when the clock does not advance
between two calls.
"""

from __future__ import annotations

import re
import secrets
import threading
from datetime import UTC, datetime, timedelta

from revision_engine.errors import InvalidProjectNameError, InvalidRevisionNameError

_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S.%fZ"
_SUFFIX_BYTES = 4

# Path-segment and URL-path safe: no separators, no whitespace, no percent.
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-]*$")
_MAX_NAME_LENGTH = 255

_lock = threading.Lock()
_last_issued: datetime | None = None


def _next_timestamp(now: datetime) -> datetime:
    global _last_issued  # noqa: PLW0603
    with _lock:
        if _last_issued is not None and now <= _last_issued:
            now = _last_issued + timedelta(microseconds=1)
        _last_issued = now
        return now


def generate_default_revision(now: datetime | None = None) -> str:
    """Return a unique, lexically sortable revision identity.

    Parameters
    ----------
    now:
        Reference time (UTC).  Defaults to the current time; exposed so that
        tests can pin the clock.
    """
    issued = _next_timestamp((now or datetime.now(UTC)).astimezone(UTC))
    return f"{issued.strftime(_TIMESTAMP_FORMAT)}_{secrets.token_hex(_SUFFIX_BYTES)}"


def _is_safe_name(name: str) -> bool:
    return bool(name) and len(name) <= _MAX_NAME_LENGTH and bool(_SAFE_NAME_RE.match(name)) and ".." not in name


def validate_revision_name(name: str) -> str:
    """Return *name* unchanged if it is usable as a revision identity.

    Raises
    ------
    InvalidRevisionNameError
        If the name is empty, too long, or contains characters that are not
        safe in a path segment or URL path component.
    """
    if not _is_safe_name(name):
        raise InvalidRevisionNameError(
            f"Invalid revision name {name!r}: use letters, digits, '.', '_' or '-' "
            f"(max {_MAX_NAME_LENGTH} characters)."
        )
    return name


def validate_project_name(name: str) -> str:
    """Return *name* unchanged if it is usable as a project name.

    Raises
    ------
    InvalidProjectNameError
        Under the same rules as :func:`validate_revision_name`.
    """
    if not _is_safe_name(name):
        raise InvalidProjectNameError(
            f"Invalid project name {name!r}: use letters, digits, '.', '_' or '-' "
            f"(max {_MAX_NAME_LENGTH} characters)."
        )
    return name
