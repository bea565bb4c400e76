"""Read-mostly reference data: teams, managers, recruiters."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Team(BaseModel):
    id: str
    name: str
    description: str = ""
    is_active: bool = True


class Manager(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    team_id: Optional[str] = None
    is_active: bool = True
    last_activity_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Recruiter(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    is_active: bool = True
