"""Protocol interfaces for all onboarding collaborators.

The wizard and services depend only on these Protocols; production backends
(DynamoDB, S3, Redis, HTTP) and the in-memory fakes satisfy them structurally.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from triguard.models.events import NotificationEvent
from triguard.models.reference import Manager, Recruiter, Team
from triguard.models.submission import OnboardingSubmission
from triguard.models.tasks import EmailAddressRecord, Task, TaskAssignment


# ---------------------------------------------------------------------------
# Persistence: Draft Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IDraftStore(Protocol):
    """Single-record persistence for onboarding submissions."""

    async def create_draft(self, submission_id: str, fields: dict[str, Any]) -> str: ...

    async def update_draft(self, submission_id: str, fields: dict[str, Any]) -> None: ...

    async def load_draft(self, submission_id: str) -> OnboardingSubmission | None: ...


# ---------------------------------------------------------------------------
# Persistence: Email Ledger
# ---------------------------------------------------------------------------

@runtime_checkable
class IEmailLedger(Protocol):
    """Allocated company addresses, unique on the email string."""

    async def exists(self, email: str) -> bool: ...

    async def insert_if_absent(self, record: EmailAddressRecord) -> bool: ...

    async def get(self, email: str) -> EmailAddressRecord | None: ...


# ---------------------------------------------------------------------------
# Persistence: Tasks
# ---------------------------------------------------------------------------

@runtime_checkable
class ITaskStore(Protocol):
    """Manager tasks and their per-submission assignments."""

    async def list_active_tasks(self, manager_id: str, team_id: str) -> list[Task]: ...

    async def create_task(self, task: Task) -> Task: ...

    async def get_assignment(self, task_id: str, submission_id: str) -> TaskAssignment | None: ...

    async def insert_assignment_if_absent(self, assignment: TaskAssignment) -> bool: ...

    async def set_acknowledged(
        self, task_id: str, submission_id: str, acknowledged_at: datetime
    ) -> bool: ...

    async def list_assignments(self, submission_id: str) -> list[TaskAssignment]: ...


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

@runtime_checkable
class IReferenceDirectory(Protocol):
    """Teams, managers and recruiters used to resolve recipients."""

    async def get_team(self, team_id: str) -> Team | None: ...

    async def get_manager(self, manager_id: str) -> Manager | None: ...

    async def get_recruiter(self, recruiter_id: str) -> Recruiter | None: ...

    async def list_teams(self) -> list[Team]: ...

    async def list_managers(self, team_id: str | None = None) -> list[Manager]: ...

    async def list_recruiters(self) -> list[Recruiter]: ...

    async def update_activity(self, manager_id: str, at: datetime | None = None) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: File Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFileStore(Protocol):
    """S3-compatible blob storage interface."""

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def public_url(self, path: str) -> str: ...

    def list_files(self, prefix: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@runtime_checkable
class INotifier(Protocol):
    """Delivers one milestone event to the notification service."""

    async def send(self, event: NotificationEvent) -> dict[str, Any]: ...
