"""Default firing handler: prepare the workspace and record the attempt.

Workflow task execution is owned by the executor layer; this handler takes a
firing as far as a ready workspace and keeps an auditable record of it.
"""

from __future__ import annotations

import logging

from revision_engine.errors import LoadError, RevisionError
from revision_engine.project.models import ProjectSnapshot
from revision_engine.schedule.evaluator import ScheduledFiring
from revision_engine.state.store import AttemptRecord, AttemptStatus, RevisionStore
from revision_engine.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class RecordingFiringHandler:
    """Callable firing handler storing one :class:`AttemptRecord` per firing."""

    def __init__(self, store: RevisionStore, workspaces: WorkspaceManager) -> None:
        self._store = store
        self._workspaces = workspaces

    def __call__(self, snapshot: ProjectSnapshot, firing: ScheduledFiring) -> AttemptRecord:
        status = AttemptStatus.SUCCEEDED
        error: str | None = None
        try:
            with self._workspaces.workspace(snapshot) as path:
                workflow = snapshot.workflow(firing.workflow_name)
                if workflow is None or not (path / workflow.path).is_file():
                    raise LoadError(f"Workflow file for '{firing.workflow_name}' is missing from the workspace.")
                logger.info(
                    "Firing %s/%s (revision %s) for %s in '%s' with %d param(s).",
                    firing.project_name,
                    firing.workflow_name,
                    firing.revision,
                    firing.fire_time.isoformat(),
                    path,
                    len(snapshot.params),
                )
        except (RevisionError, OSError) as exc:
            status = AttemptStatus.FAILED
            error = str(exc)
            logger.error("Firing %s/%s failed: %s", firing.project_name, firing.workflow_name, exc)

        return self._store.record_attempt(
            AttemptRecord(
                project_name=firing.project_name,
                revision=firing.revision,
                workflow_name=firing.workflow_name,
                fire_time=firing.fire_time,
                status=status,
                error=error,
            )
        )
