"""In-memory backends for unit tests and local runs: dict-backed fakes."""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any

from triguard.core.exceptions import SubmissionNotFoundError
from triguard.models.reference import Manager, Recruiter, Team
from triguard.models.submission import OnboardingSubmission
from triguard.models.tasks import EmailAddressRecord, Task, TaskAssignment


class MemoryDraftStore:
    """Dict-backed IDraftStore. ``writes`` logs every (op, id, fields) call."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.writes: list[tuple[str, str, dict[str, Any]]] = []

    async def create_draft(self, submission_id: str, fields: dict[str, Any]) -> str:
        """Insert under the caller's id; repeating a create merges into the record."""
        record = self.records.setdefault(submission_id, {"id": submission_id})
        record.update(copy.deepcopy({k: v for k, v in fields.items() if k != "id"}))
        self.writes.append(("create", submission_id, copy.deepcopy(fields)))
        return submission_id

    async def update_draft(self, submission_id: str, fields: dict[str, Any]) -> None:
        if submission_id not in self.records:
            raise SubmissionNotFoundError(submission_id)
        self.records[submission_id].update(copy.deepcopy(fields))
        self.writes.append(("update", submission_id, copy.deepcopy(fields)))

    async def load_draft(self, submission_id: str) -> OnboardingSubmission | None:
        record = self.records.get(submission_id)
        return OnboardingSubmission.model_validate(record) if record is not None else None


class MemoryEmailLedger:
    """Set-backed IEmailLedger; the lock makes insert-if-absent atomic."""

    def __init__(self, existing: list[str] | None = None) -> None:
        self._records: dict[str, EmailAddressRecord] = {}
        self._lock = asyncio.Lock()
        for email in existing or []:
            self._records[email.lower()] = EmailAddressRecord(email=email, first_name="", last_name="")

    async def exists(self, email: str) -> bool:
        return email.lower() in self._records

    async def get(self, email: str) -> EmailAddressRecord | None:
        return self._records.get(email.lower())

    async def insert_if_absent(self, record: EmailAddressRecord) -> bool:
        async with self._lock:
            key = record.email.lower()
            if key in self._records:
                return False
            self._records[key] = record
            return True

    def __len__(self) -> int:
        return len(self._records)


class MemoryTaskStore:
    """Dict-backed ITaskStore."""

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self._tasks: dict[str, Task] = {t.id: t for t in tasks or []}
        self._assignments: dict[tuple[str, str], TaskAssignment] = {}

    async def list_active_tasks(self, manager_id: str, team_id: str) -> list[Task]:
        return [
            t for t in self._tasks.values()
            if t.manager_id == manager_id and t.team_id == team_id and t.is_active
        ]

    async def create_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    async def get_assignment(self, task_id: str, submission_id: str) -> TaskAssignment | None:
        return self._assignments.get((task_id, submission_id))

    async def insert_assignment_if_absent(self, assignment: TaskAssignment) -> bool:
        key = (assignment.task_id, assignment.submission_id)
        if key in self._assignments:
            return False
        self._assignments[key] = assignment
        return True

    async def set_acknowledged(
        self, task_id: str, submission_id: str, acknowledged_at: datetime
    ) -> bool:
        existing = self._assignments.get((task_id, submission_id))
        if existing is None or existing.acknowledged_at is not None:
            return False
        self._assignments[(task_id, submission_id)] = existing.model_copy(
            update={"acknowledged_at": acknowledged_at}
        )
        return True

    async def list_assignments(self, submission_id: str) -> list[TaskAssignment]:
        return [a for (_, sid), a in self._assignments.items() if sid == submission_id]


class MemoryReferenceDirectory:
    """Dict-backed IReferenceDirectory."""

    def __init__(
        self,
        teams: list[Team] | None = None,
        managers: list[Manager] | None = None,
        recruiters: list[Recruiter] | None = None,
    ) -> None:
        self._teams = {t.id: t for t in teams or []}
        self._managers = {m.id: m for m in managers or []}
        self._recruiters = {r.id: r for r in recruiters or []}

    async def get_team(self, team_id: str) -> Team | None:
        return self._teams.get(team_id)

    async def get_manager(self, manager_id: str) -> Manager | None:
        return self._managers.get(manager_id)

    async def get_recruiter(self, recruiter_id: str) -> Recruiter | None:
        return self._recruiters.get(recruiter_id)

    async def list_teams(self) -> list[Team]:
        return [t for t in self._teams.values() if t.is_active]

    async def list_managers(self, team_id: str | None = None) -> list[Manager]:
        return [
            m for m in self._managers.values()
            if m.is_active and (team_id is None or m.team_id == team_id)
        ]

    async def list_recruiters(self) -> list[Recruiter]:
        return [r for r in self._recruiters.values() if r.is_active]

    async def update_activity(self, manager_id: str, at: datetime | None = None) -> None:
        manager = self._managers.get(manager_id)
        if manager is not None:
            self._managers[manager_id] = manager.model_copy(
                update={"last_activity_at": at or datetime.now(timezone.utc)}
            )


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryFileStore:
    """Dict-backed IFileStore for unit tests."""

    def __init__(self, public_url_base: str = "memory://files") -> None:
        self._files: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self._public_url_base = public_url_base

    def read(self, path: str) -> bytes:
        return self._files[path]

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._files[path] = data
        self.content_types[path] = content_type
        return path

    def public_url(self, path: str) -> str:
        return f"{self._public_url_base}/{path}"

    def list_files(self, prefix: str) -> list[str]:
        return [k for k in self._files if k.startswith(prefix)]
