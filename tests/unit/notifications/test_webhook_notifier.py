"""Tests for the httpx webhook notifier using MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from triguard.core.exceptions import DispatchError
from triguard.models.events import EventKind, NotificationEvent
from triguard.notifications.webhook_notifier import WebhookNotifier

BASE_URL = "https://hooks.example.test/functions/v1"


def _notifier(handler, token: str = "") -> WebhookNotifier:
    return WebhookNotifier(BASE_URL, api_token=token, transport=httpx.MockTransport(handler))


class TestSend:
    @pytest.mark.asyncio
    async def test_posts_event_envelope(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        event = NotificationEvent(event_kind=EventKind.ONBOARDING_STARTED, payload={"form_id": "abc"})
        result = await _notifier(handler).send(event)

        assert result == {"success": True}
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/webhook-onboarding-started"
        assert request.headers["User-Agent"] == "TriGuard-Webhook/1.0"
        assert "Authorization" not in request.headers
        body = json.loads(request.content)
        assert body["event"] == "onboarding_started"
        assert body["data"] == {"form_id": "abc"}
        assert "timestamp" in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, path", [
        (EventKind.ONBOARDING_COMPLETED, "webhook-onboarding-completed"),
        (EventKind.TASK_ASSIGNMENT, "webhook-task-assigned"),
    ])
    async def test_event_paths(self, kind, path):
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={})

        await _notifier(handler).send(NotificationEvent(event_kind=kind))
        assert urls == [f"{BASE_URL}/{path}"]

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers.get("Authorization", ""))
            return httpx.Response(200, json={})

        await _notifier(handler, token="s3cret").send(
            NotificationEvent(event_kind=EventKind.ONBOARDING_STARTED)
        )
        assert headers == ["Bearer s3cret"]

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        notifier = _notifier(lambda request: httpx.Response(202, text="accepted"))
        result = await notifier.send(NotificationEvent(event_kind=EventKind.ONBOARDING_STARTED))
        assert result == {"status_code": 202}


class TestErrors:
    @pytest.mark.asyncio
    async def test_http_error_status(self):
        notifier = _notifier(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(DispatchError, match="HTTP 500"):
            await notifier.send(NotificationEvent(event_kind=EventKind.ONBOARDING_COMPLETED))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DispatchError, match="ConnectError"):
            await _notifier(handler).send(NotificationEvent(event_kind=EventKind.TASK_ASSIGNMENT))
