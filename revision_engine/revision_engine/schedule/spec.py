"""Schedule declaration schema."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ScheduleKind(str, Enum):
    """Schedule operators recognised in a workflow's ``schedule:`` block."""

    HOURLY = "hourly>"
    DAILY = "daily>"
    WEEKLY = "weekly>"
    MINUTES_INTERVAL = "minutes_interval>"
    CRON = "cron>"


class ScheduleSpec(BaseModel):
    """A single schedule declaration, e.g. ``daily>: 07:00:00``."""

    model_config = ConfigDict(frozen=True)

    kind: ScheduleKind
    expression: str = Field(..., min_length=1)
