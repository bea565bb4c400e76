"""Task acknowledgment: new hires confirm the tasks their manager assigned.

Acknowledgment runs beside the wizard's step validation and is gated only on
the submission having both a manager and a team. Each (task, submission)
pair maps to at most one TaskAssignment, whose ``acknowledged_at`` is written
once and never moved.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from triguard.core.exceptions import ReferenceNotFoundError, TaskGateError
from triguard.core.protocols import IReferenceDirectory, ITaskStore
from triguard.models.events import EventKind
from triguard.models.submission import OnboardingSubmission
from triguard.models.tasks import Task, TaskAssignment
from triguard.notifications.dispatcher import SideEffectDispatcher
from triguard.notifications.payloads import task_assignment_payload

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskAcknowledgmentService:
    """Lists, acknowledges and assigns manager tasks."""

    def __init__(
        self,
        *,
        task_store: ITaskStore,
        directory: IReferenceDirectory,
        dispatcher: SideEffectDispatcher | None = None,
    ) -> None:
        self._tasks = task_store
        self._directory = directory
        self._dispatcher = dispatcher

    async def list_assigned_tasks(self, manager_id: str, team_id: str) -> list[Task]:
        """Active tasks for the (manager, team) pair; empty is a normal result."""
        tasks = await self._tasks.list_active_tasks(manager_id, team_id)
        return [task for task in tasks if task.is_active]

    async def acknowledged_task_ids(self, submission_id: str) -> set[str]:
        assignments = await self._tasks.list_assignments(submission_id)
        return {a.task_id for a in assignments if a.acknowledged_at is not None}

    async def acknowledge(
        self, submission: OnboardingSubmission, task_ids: Iterable[str]
    ) -> list[TaskAssignment]:
        """Record acknowledgment of ``task_ids`` for ``submission``.

        Idempotent per task id: an already-acknowledged task keeps its original
        timestamp. Raises TaskGateError until both manager and team are set,
        or when the submission has not been persisted yet. Raises
        ReferenceNotFoundError, before anything is written, for an id that is
        neither an active task of the pair nor already assigned to the
        submission.
        """
        if not submission.manager_id or not submission.team_id:
            raise TaskGateError("Select a team and manager before acknowledging tasks")
        if not submission.id:
            raise TaskGateError("Save the submission before acknowledging tasks")

        requested = list(dict.fromkeys(task_ids))
        active = await self.list_assigned_tasks(submission.manager_id, submission.team_id)
        allowed = {task.id for task in active}
        allowed.update(a.task_id for a in await self._tasks.list_assignments(submission.id))
        unknown = [task_id for task_id in requested if task_id not in allowed]
        if unknown:
            raise ReferenceNotFoundError(
                f"Tasks {unknown!r} are not assigned to submission {submission.id!r}"
            )

        now = _utcnow()
        recorded: list[TaskAssignment] = []
        for task_id in requested:
            existing = await self._tasks.get_assignment(task_id, submission.id)
            if existing is None:
                assignment = TaskAssignment(
                    task_id=task_id, submission_id=submission.id,
                    acknowledged_at=now, assigned_at=now,
                )
                if await self._tasks.insert_assignment_if_absent(assignment):
                    recorded.append(assignment)
                    continue
                existing = await self._tasks.get_assignment(task_id, submission.id)
                if existing is None:
                    continue
            if existing.acknowledged_at is None:
                if await self._tasks.set_acknowledged(task_id, submission.id, now):
                    existing = existing.model_copy(update={"acknowledged_at": now})
                else:
                    # acknowledged concurrently; report the stored timestamp
                    existing = await self._tasks.get_assignment(task_id, submission.id) or existing
            recorded.append(existing)

        logger.info("Submission %s acknowledged %d task(s)", submission.id, len(recorded))
        return recorded

    async def assign_task(
        self,
        *,
        manager_id: str,
        team_id: str,
        title: str,
        description: str = "",
        submissions: Iterable[OnboardingSubmission] = (),
    ) -> tuple[Task, list[TaskAssignment]]:
        """Create a task and assign it to persisted submissions.

        Records the manager's activity and dispatches one ``task_assignment``
        notification per new assignee.
        """
        task = await self._tasks.create_task(
            Task(
                id=str(uuid.uuid4()),
                title=title,
                description=description,
                manager_id=manager_id,
                team_id=team_id,
                created_at=_utcnow(),
            )
        )
        manager = await self._directory.get_manager(manager_id)

        assignments: list[TaskAssignment] = []
        for submission in submissions:
            if not submission.id:
                logger.warning("Skipping unsaved submission for task %s", task.id)
                continue
            assignment = TaskAssignment(
                task_id=task.id, submission_id=submission.id, assigned_at=_utcnow()
            )
            if not await self._tasks.insert_assignment_if_absent(assignment):
                continue
            assignments.append(assignment)
            if self._dispatcher is not None:
                self._dispatcher.dispatch(
                    EventKind.TASK_ASSIGNMENT,
                    task_assignment_payload(task, submission, manager),
                )

        await self._directory.update_activity(manager_id)
        logger.info("Task %s assigned to %d submission(s)", task.id, len(assignments))
        return task, assignments


class AcknowledgmentSelection:
    """Tasks ticked in the UI but not yet saved."""

    def __init__(self, service: TaskAcknowledgmentService, acknowledged: Iterable[str] = ()) -> None:
        self._service = service
        self.acknowledged: set[str] = set(acknowledged)
        self.selected: set[str] = set()

    def select(self, task_id: str) -> None:
        if task_id not in self.acknowledged:
            self.selected.add(task_id)

    def deselect(self, task_id: str) -> None:
        self.selected.discard(task_id)

    def toggle(self, task_id: str) -> bool:
        """Flip selection; returns whether the task is now selected."""
        if task_id in self.selected:
            self.deselect(task_id)
            return False
        self.select(task_id)
        return task_id in self.selected

    def is_checked(self, task_id: str) -> bool:
        return task_id in self.selected or task_id in self.acknowledged

    async def save(self, submission: OnboardingSubmission) -> list[TaskAssignment]:
        if not self.selected:
            return []
        recorded = await self._service.acknowledge(submission, sorted(self.selected))
        self.acknowledged.update(a.task_id for a in recorded)
        self.selected.clear()
        return recorded
