"""Fire-and-forget milestone dispatch.

Deliveries run as background tasks; their failures are logged and recorded
as outcomes, never raised to the code that triggered them. Delivery is
at-least-once: a retried wizard transition may dispatch the same event again.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from triguard.core.protocols import INotifier
from triguard.models.events import DispatchOutcome, EventKind, NotificationEvent

logger = logging.getLogger(__name__)


class SideEffectDispatcher:

    def __init__(self, notifier: INotifier, timeout: float = 15.0, history: int = 100) -> None:
        self._notifier = notifier
        self._timeout = timeout
        self._pending: set[asyncio.Task[DispatchOutcome]] = set()
        self.recent_outcomes: deque[DispatchOutcome] = deque(maxlen=history)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _spawn(self, coro: Awaitable[DispatchOutcome]) -> asyncio.Task[DispatchOutcome]:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def dispatch(self, event_kind: EventKind, payload: dict[str, Any]) -> asyncio.Task[DispatchOutcome]:
        """Schedule delivery and return immediately; must run inside an event loop."""
        return self._spawn(self.deliver(event_kind, payload))

    def dispatch_deferred(
        self, event_kind: EventKind, build: Callable[[], Awaitable[dict[str, Any]]]
    ) -> asyncio.Task[DispatchOutcome]:
        """Like dispatch, but the payload is assembled inside the background task."""
        return self._spawn(self._build_and_deliver(event_kind, build))

    async def _build_and_deliver(
        self, event_kind: EventKind, build: Callable[[], Awaitable[dict[str, Any]]]
    ) -> DispatchOutcome:
        try:
            payload = await build()
        except Exception as exc:
            logger.warning("Could not build %s payload: %s", event_kind.value, exc)
            outcome = DispatchOutcome(event_kind=event_kind, delivered=False, error=str(exc))
            self.recent_outcomes.append(outcome)
            return outcome
        return await self.deliver(event_kind, payload)

    async def deliver(self, event_kind: EventKind, payload: dict[str, Any]) -> DispatchOutcome:
        event = NotificationEvent(event_kind=event_kind, payload=payload)
        try:
            response = await asyncio.wait_for(self._notifier.send(event), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Dispatch of %s timed out after %.1fs", event_kind.value, self._timeout)
            outcome = DispatchOutcome(event_kind=event_kind, delivered=False, error="timeout")
        except Exception as exc:
            logger.warning("Dispatch of %s failed (non-critical): %s", event_kind.value, exc)
            outcome = DispatchOutcome(event_kind=event_kind, delivered=False, error=str(exc))
        else:
            logger.info("Dispatched %s", event_kind.value)
            outcome = DispatchOutcome(event_kind=event_kind, delivered=True, response=response or {})
        self.recent_outcomes.append(outcome)
        return outcome

    async def drain(self) -> list[DispatchOutcome]:
        """Wait for every in-flight delivery (shutdown, tests)."""
        if not self._pending:
            return []
        return list(await asyncio.gather(*list(self._pending)))
