"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from triguard.api.routes import health, onboarding, reference, tasks
from triguard.api.services import Services, create_services
from triguard.core.config import AppSettings
from triguard.core.exceptions import (
    PersistenceError,
    ReferenceNotFoundError,
    StorageError,
    SubmissionNotFoundError,
    TaskGateError,
    TriGuardError,
    UploadRejectedError,
    ValidationError,
)
from triguard.core.logging import configure_logging

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_CODES: list[tuple[type[TriGuardError], int]] = [
    (SubmissionNotFoundError, 404),
    (ReferenceNotFoundError, 404),
    (ValidationError, 422),
    (UploadRejectedError, 400),
    (TaskGateError, 409),
    (StorageError, 502),
    (PersistenceError, 503),
]


def status_for(exc: TriGuardError) -> int:
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def handle_triguard_error(_: Request, exc: TriGuardError) -> JSONResponse:
    """Return standardized responses for domain exceptions."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    content: dict = {"detail": str(exc), "code": type(exc).__name__}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` overrides the production wiring (tests pass memory backends).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize and tear down application resources."""
        container = services or create_services(AppSettings())
        configure_logging(container.settings.log_level)
        app.state.settings = container.settings
        app.state.services = container
        try:
            yield
        finally:
            outcomes = await container.dispatcher.drain()
            if outcomes:
                logger.info("Drained %d pending notification(s) on shutdown", len(outcomes))

    app = FastAPI(
        title="TriGuard Employee Onboarding",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(TriGuardError, handle_triguard_error)
    app.include_router(health.router)
    app.include_router(onboarding.router, prefix="/onboarding")
    app.include_router(tasks.router, prefix="/tasks")
    app.include_router(reference.router, prefix="/reference")
    return app
