"""Milestone notification events and delivery outcomes."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class EventKind(StrEnum):
    ONBOARDING_STARTED = "onboarding_started"
    ONBOARDING_COMPLETED = "onboarding_completed"
    TASK_ASSIGNMENT = "task_assignment"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationEvent(BaseModel):
    event_kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class DispatchOutcome(BaseModel):
    """Result of one delivery attempt; used for logging only."""

    event_kind: EventKind
    delivered: bool
    error: str = ""
    response: dict[str, Any] = Field(default_factory=dict)
