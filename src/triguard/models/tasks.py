"""Manager-created tasks, their assignments, and the email allocation ledger."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Task(BaseModel):
    """A task a manager creates for the new hires on one team."""

    id: str
    title: str
    description: str = ""
    manager_id: str
    team_id: str
    is_active: bool = True
    created_at: Optional[datetime] = None


class TaskAssignment(BaseModel):
    """Join of a task to a submission; ``acknowledged_at`` is set at most once."""

    task_id: str
    submission_id: str
    acknowledged_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None


class EmailAddressRecord(BaseModel):
    """Allocation ledger entry keyed by the canonical address."""

    email: str
    first_name: str
    last_name: str
    is_active: bool = True
    created_at: Optional[datetime] = None
