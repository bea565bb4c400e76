"""HTTP notifier posting milestone events to the notification functions."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from triguard.core.exceptions import DispatchError
from triguard.models.events import EventKind, NotificationEvent

logger = logging.getLogger(__name__)

EVENT_PATHS: dict[EventKind, str] = {
    EventKind.ONBOARDING_STARTED: "webhook-onboarding-started",
    EventKind.ONBOARDING_COMPLETED: "webhook-onboarding-completed",
    EventKind.TASK_ASSIGNMENT: "webhook-task-assigned",
}


class WebhookNotifier:
    """Production INotifier backed by httpx."""

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": "TriGuard-Webhook/1.0"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def send(self, event: NotificationEvent) -> dict[str, Any]:
        url = f"{self._base_url}/{EVENT_PATHS[event.event_kind]}"
        body = {
            "event": event.event_kind.value,
            "timestamp": event.timestamp.isoformat(),
            "data": event.payload,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise DispatchError(event.event_kind.value, f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code >= 400:
            raise DispatchError(event.event_kind.value, f"HTTP {resp.status_code}: {resp.text[:200]}")

        logger.debug("Delivered %s to %s", event.event_kind.value, url)
        try:
            return resp.json()
        except ValueError:
            return {"status_code": resp.status_code}
