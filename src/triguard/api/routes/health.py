"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from triguard.api.dependencies import get_services
from triguard.api.services import Services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(services: Services = Depends(get_services)) -> dict:
    cache_ok = True
    ping = getattr(services.cache, "ping", None)
    if callable(ping):
        cache_ok = bool(ping())
    return {
        "status": "ready" if cache_ok else "degraded",
        "cache": cache_ok,
        "active_sessions": len(services.sessions),
        "pending_notifications": services.dispatcher.pending,
    }
