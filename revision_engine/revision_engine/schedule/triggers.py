"""Parse workflow schedule expressions and compute their fire times.

Supported operators:

* ``hourly>: MM:SS``
* ``daily>: HH:MM:SS``
* ``weekly>: DOW,HH:MM:SS`` (``DOW`` is ``Sun`` .. ``Sat``)
* ``minutes_interval>: N`` (aligned to the Unix epoch)
* ``cron>: "M H * * D"`` -- a practical subset: minute numeric, hour
  numeric or ``*``, day-of-month and month ``*``, day-of-week numeric or ``*``.

All computations happen in the workflow's time zone and are returned in UTC.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from revision_engine.schedule.spec import ScheduleKind, ScheduleSpec

_HMS_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
_MS_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_WEEKLY_RE = re.compile(r"^([A-Za-z]{3})[A-Za-z]*\s*,\s*(\d{1,2}:\d{2}:\d{2})$")
_CRON_RE = re.compile(r"^(\d{1,2})\s+(\d{1,2}|\*)\s+\*\s+\*\s+(\d|\*)$")

# Python weekday(): Monday=0 ... Sunday=6
_DAY_NAMES: dict[str, int] = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}


class ScheduleExpressionError(ValueError):
    """Raised when a schedule expression is not valid for its operator."""


@dataclass(frozen=True)
class _Trigger:
    period: timedelta
    weekday: int | None = None
    hour: int | None = None
    minute: int = 0
    second: int = 0


def _parse_hms(value: str, label: str) -> tuple[int, int, int]:
    match = _HMS_RE.match(value.strip())
    if not match:
        raise ScheduleExpressionError(f"{label}: expected HH:MM:SS, got '{value}'")
    h, m, s = (int(g) for g in match.groups())
    if h > 23 or m > 59 or s > 59:
        raise ScheduleExpressionError(f"{label}: time out of range in '{value}'")
    return h, m, s


def _parse_trigger(spec: ScheduleSpec) -> _Trigger:
    expr = spec.expression.strip()

    if spec.kind is ScheduleKind.HOURLY:
        match = _MS_RE.match(expr)
        if not match or int(match.group(1)) > 59 or int(match.group(2)) > 59:
            raise ScheduleExpressionError(f"hourly>: expected MM:SS, got '{expr}'")
        return _Trigger(timedelta(hours=1), minute=int(match.group(1)), second=int(match.group(2)))

    if spec.kind is ScheduleKind.DAILY:
        h, m, s = _parse_hms(expr, "daily>")
        return _Trigger(timedelta(days=1), hour=h, minute=m, second=s)

    if spec.kind is ScheduleKind.WEEKLY:
        match = _WEEKLY_RE.match(expr)
        if not match or match.group(1).lower() not in _DAY_NAMES:
            raise ScheduleExpressionError(f"weekly>: expected DOW,HH:MM:SS, got '{expr}'")
        h, m, s = _parse_hms(match.group(2), "weekly>")
        return _Trigger(timedelta(weeks=1), weekday=_DAY_NAMES[match.group(1).lower()], hour=h, minute=m, second=s)

    if spec.kind is ScheduleKind.MINUTES_INTERVAL:
        if not expr.isdigit() or int(expr) < 1:
            raise ScheduleExpressionError(f"minutes_interval>: expected a positive integer, got '{expr}'")
        return _Trigger(timedelta(minutes=int(expr)))

    # cron>
    match = _CRON_RE.match(expr)
    if not match:
        raise ScheduleExpressionError(
            f"Unsupported cron expression: '{expr}'. "
            f"Supported patterns: 'M * * * *' (hourly), "
            f"'M H * * *' (daily), 'M H * * D' (weekly)."
        )
    minute = int(match.group(1))
    hour = None if match.group(2) == "*" else int(match.group(2))
    dow = None if match.group(3) == "*" else int(match.group(3))
    if minute > 59 or (hour is not None and hour > 23) or (dow is not None and dow > 6):
        raise ScheduleExpressionError(f"cron>: field out of range in '{expr}'")
    if hour is None:
        if dow is not None:
            raise ScheduleExpressionError(f"cron>: day-of-week requires an hour in '{expr}'")
        return _Trigger(timedelta(hours=1), minute=minute)
    if dow is None:
        return _Trigger(timedelta(days=1), hour=hour, minute=minute)
    # Cron day-of-week: Sunday=0 ... Saturday=6
    return _Trigger(timedelta(weeks=1), weekday=(dow - 1) % 7, hour=hour, minute=minute)


def validate_schedule(spec: ScheduleSpec, timezone: str = "UTC") -> None:
    """Raise :class:`ScheduleExpressionError` if *spec* or *timezone* is invalid."""
    _parse_trigger(spec)
    _zone(timezone)


def validate_timezone(timezone: str) -> None:
    _zone(timezone)


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleExpressionError(f"Unknown timezone '{timezone}'") from exc


def next_fire_time(
    spec: ScheduleSpec,
    after: datetime,
    timezone: str = "UTC",
    *,
    inclusive: bool = False,
) -> datetime:
    """Return the first fire time after *after* (or at it, if *inclusive*).

    Parameters
    ----------
    spec:
        The schedule declaration.
    after:
        Timezone-aware reference instant.
    timezone:
        IANA zone the schedule's wall-clock times are expressed in.
    inclusive:
        When ``True`` a fire time equal to *after* is returned as-is.

    Returns
    -------
    datetime
        The fire time in UTC.
    """
    trigger = _parse_trigger(spec)

    def _passed(candidate: datetime) -> bool:
        return candidate < after or (candidate == after and not inclusive)

    if spec.kind is ScheduleKind.MINUTES_INTERVAL:
        period = int(trigger.period.total_seconds())
        epoch_seconds = after.timestamp()
        slots = int(epoch_seconds // period)
        candidate = datetime.fromtimestamp(slots * period, tz=UTC)
        while _passed(candidate):
            candidate += trigger.period
        return candidate

    local = after.astimezone(_zone(timezone))
    candidate = local.replace(minute=trigger.minute, second=trigger.second, microsecond=0)
    if trigger.hour is not None:
        candidate = candidate.replace(hour=trigger.hour)
    if trigger.weekday is not None:
        candidate += timedelta(days=(trigger.weekday - candidate.weekday()) % 7)
    if trigger.hour is None and trigger.weekday is None:
        # Hourly steps are taken in UTC so a repeated wall-clock hour fires
        # twice and a skipped one not at all.
        instant = candidate.astimezone(UTC)
        while _passed(instant):
            instant += trigger.period
        return instant
    while _passed(candidate.astimezone(UTC)):
        candidate += trigger.period
    return candidate.astimezone(UTC)
