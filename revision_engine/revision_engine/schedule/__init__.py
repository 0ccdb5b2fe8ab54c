"""Schedule expressions and the activation window of a revision.

The evaluator and its background loop live in
:mod:`revision_engine.schedule.evaluator`.
"""

from revision_engine.schedule.triggers import (
    ScheduleExpressionError,
    next_fire_time,
    validate_schedule,
)
from revision_engine.schedule.window import ScheduleActivationWindow, parse_schedule_from

__all__ = [
    "ScheduleActivationWindow",
    "ScheduleExpressionError",
    "next_fire_time",
    "parse_schedule_from",
    "validate_schedule",
]
