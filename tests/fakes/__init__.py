"""Shared test doubles: memory backends plus recording/failing notifiers."""

from __future__ import annotations

import asyncio
from typing import Any

from triguard.core.exceptions import DispatchError
from triguard.models.events import NotificationEvent
from triguard.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryDraftStore,
    MemoryEmailLedger,
    MemoryFileStore,
    MemoryReferenceDirectory,
    MemoryTaskStore,
)


class RecordingNotifier:
    """INotifier that remembers every event it was asked to send."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def send(self, event: NotificationEvent) -> dict[str, Any]:
        self.events.append(event)
        return {"success": True}

    def kinds(self) -> list[str]:
        return [e.event_kind.value for e in self.events]


class FailingNotifier:
    """INotifier whose every delivery fails."""

    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, event: NotificationEvent) -> dict[str, Any]:
        self.attempts += 1
        raise DispatchError(event.event_kind.value, "HTTP 500: boom")


class SlowNotifier:
    """INotifier that never answers within a sane timeout."""

    async def send(self, event: NotificationEvent) -> dict[str, Any]:
        await asyncio.sleep(10)
        return {}


__all__ = [
    "FailingNotifier",
    "MemoryCacheBackend",
    "MemoryDraftStore",
    "MemoryEmailLedger",
    "MemoryFileStore",
    "MemoryReferenceDirectory",
    "MemoryTaskStore",
    "RecordingNotifier",
    "SlowNotifier",
]
