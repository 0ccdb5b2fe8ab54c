"""Evaluate workflow schedules of the active revisions.

Each evaluation cycle reads every active project reference exactly once and
works on that snapshot for the rest of the cycle, so a concurrent hot reload
is observed either entirely (next cycle) or not at all.

When the evaluator first sees a new activation of a project it computes the
revision's :class:`ScheduleActivationWindow` and seeds every scheduled
workflow with its first fire time at or after the window start.  Fire times
before the window are therefore never produced.  Due fire times are
delivered to the firing handler oldest first, including fire times missed
while the server was busy (bounded per cycle by ``max_catch_up``).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from revision_engine.project.models import ProjectSnapshot
from revision_engine.reload.active_reference import ProjectRegistry
from revision_engine.schedule.triggers import next_fire_time
from revision_engine.schedule.window import ScheduleActivationWindow

logger = logging.getLogger(__name__)

DEFAULT_MAX_CATCH_UP = 100


@dataclass(frozen=True)
class ScheduledFiring:
    """One due schedule occurrence of a workflow."""

    project_name: str
    revision: str
    workflow_name: str
    fire_time: datetime


FiringHandler = Callable[[ProjectSnapshot, ScheduledFiring], None]


@dataclass
class _ActivationState:
    version: int
    revision: str
    window: ScheduleActivationWindow
    next_fire: dict[str, datetime] = field(default_factory=dict)


class ScheduleEvaluator:
    """Compute and dispatch due schedule firings for all active projects.

    Parameters
    ----------
    registry:
        Registry of active project references.
    handler:
        Called once per due firing with the snapshot it belongs to.
    max_catch_up:
        Upper bound of firings dispatched per workflow and cycle.
    """

    def __init__(
        self,
        registry: ProjectRegistry,
        handler: FiringHandler,
        *,
        max_catch_up: int = DEFAULT_MAX_CATCH_UP,
    ) -> None:
        self._registry = registry
        self._handler = handler
        self._max_catch_up = max_catch_up
        self._states: dict[str, _ActivationState] = {}

    def window_for(self, project_name: str) -> ScheduleActivationWindow | None:
        state = self._states.get(project_name)
        return state.window if state is not None else None

    def next_fire_times(self, project_name: str) -> dict[str, datetime]:
        state = self._states.get(project_name)
        return dict(state.next_fire) if state is not None else {}

    def evaluate(self, now: datetime | None = None) -> list[ScheduledFiring]:
        """Run one evaluation cycle and return the firings dispatched."""
        now = (now or datetime.now(UTC)).astimezone(UTC)
        fired: list[ScheduledFiring] = []
        seen: set[str] = set()

        for ref in self._registry:
            current = ref.get_versioned()
            snapshot = current.snapshot
            if snapshot is None:
                continue
            seen.add(ref.project_name)

            state = self._states.get(ref.project_name)
            if state is None or state.version != current.version:
                state = self._activate(snapshot, current.version, current.activated_at or now)
                self._states[ref.project_name] = state

            fired.extend(self._dispatch_due(snapshot, state, now))

        for stale in set(self._states) - seen:
            del self._states[stale]
        return fired

    def _activate(self, snapshot: ProjectSnapshot, version: int, activated_at: datetime) -> _ActivationState:
        window = ScheduleActivationWindow.for_revision(snapshot.schedule_from, activated_at)
        state = _ActivationState(version=version, revision=snapshot.revision, window=window)
        for wf in snapshot.workflows:
            if wf.schedule is None:
                continue
            state.next_fire[wf.name] = next_fire_time(wf.schedule, window.start, wf.timezone, inclusive=True)
        logger.info(
            "Scheduling revision %s of '%s' from %s (%d scheduled workflow(s)).",
            snapshot.revision,
            snapshot.project_name,
            window.start.isoformat(),
            len(state.next_fire),
        )
        return state

    def _dispatch_due(
        self,
        snapshot: ProjectSnapshot,
        state: _ActivationState,
        now: datetime,
    ) -> list[ScheduledFiring]:
        fired: list[ScheduledFiring] = []
        for wf_name in sorted(state.next_fire):
            wf = snapshot.workflow(wf_name)
            if wf is None or wf.schedule is None:
                continue
            fire_time = state.next_fire[wf_name]
            dispatched = 0
            while fire_time <= now and dispatched < self._max_catch_up:
                if state.window.is_due(fire_time):
                    firing = ScheduledFiring(
                        project_name=snapshot.project_name,
                        revision=snapshot.revision,
                        workflow_name=wf_name,
                        fire_time=fire_time,
                    )
                    self._fire(snapshot, firing)
                    fired.append(firing)
                    dispatched += 1
                fire_time = next_fire_time(wf.schedule, fire_time, wf.timezone)
            state.next_fire[wf_name] = fire_time
        return fired

    def _fire(self, snapshot: ProjectSnapshot, firing: ScheduledFiring) -> None:
        try:
            self._handler(snapshot, firing)
        except Exception as exc:
            logger.error(
                "Firing of %s/%s at %s failed: %s",
                firing.project_name,
                firing.workflow_name,
                firing.fire_time.isoformat(),
                exc,
                exc_info=True,
            )


class SchedulerLoop:
    """AsyncIO background task running :meth:`ScheduleEvaluator.evaluate` periodically.

    Each cycle runs in a worker thread because firing handlers may touch
    the filesystem.
    """

    def __init__(self, evaluator: ScheduleEvaluator, interval_seconds: float = 1.0) -> None:
        self._evaluator = evaluator
        self._interval = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the scheduler loop is active."""
        return self._running

    async def start(self) -> None:
        """Start the scheduler background task."""
        if self._running:
            logger.warning("SchedulerLoop already running; ignoring start()")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("SchedulerLoop started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("SchedulerLoop stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.to_thread(self._evaluator.evaluate, datetime.now(UTC))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.critical("SchedulerLoop unexpected error: %s", exc, exc_info=True)
                raise
            await asyncio.sleep(self._interval)
