"""Schedule activation window of a newly activated revision.

When a revision becomes active, schedule firings due strictly before the
window start are suppressed for that revision; firings at or after it run
normally.  The start is the revision's ``schedule_from`` instant when the
publisher supplied one, otherwise the moment the revision was activated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from revision_engine.errors import InvalidScheduleFromError

# Accepted ``--schedule-from`` layouts besides ISO-8601.
_SCHEDULE_FROM_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S%z",
)


@dataclass(frozen=True)
class ScheduleActivationWindow:
    """Earliest instant for which firings of a revision are considered due."""

    start: datetime

    @classmethod
    def for_revision(
        cls,
        schedule_from: datetime | None,
        activated_at: datetime,
    ) -> ScheduleActivationWindow:
        """Build the window for a revision activated at *activated_at*."""
        start = schedule_from if schedule_from is not None else activated_at
        return cls(start=start.astimezone(UTC))

    def is_due(self, fire_time: datetime) -> bool:
        return fire_time >= self.start


def parse_schedule_from(value: str) -> datetime:
    """Parse a ``schedule-from`` time into an aware UTC datetime.

    Accepts ``yyyy-MM-dd HH:mm:ss Z`` (e.g. ``2024-01-01 00:00:00 +0900``) and
    ISO-8601 with an explicit offset or ``Z`` suffix.

    Raises
    ------
    InvalidScheduleFromError
        If the value matches no accepted layout or carries no offset.
    """
    text = value.strip()
    for fmt in _SCHEDULE_FROM_FORMATS:
        try:
            return datetime.strptime(text, fmt).astimezone(UTC)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    except ValueError as exc:
        raise InvalidScheduleFromError(
            f"Invalid schedule-from '{value}': expected 'yyyy-MM-dd HH:mm:ss Z' or ISO-8601."
        ) from exc
    if parsed.tzinfo is None:
        raise InvalidScheduleFromError(f"Invalid schedule-from '{value}': a time zone offset is required.")
    return parsed.astimezone(UTC)
