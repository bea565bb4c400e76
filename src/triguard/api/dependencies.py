"""FastAPI dependencies resolving the service container and wizard sessions."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from triguard.api.services import Services
from triguard.wizard.sequencer import OnboardingWizard


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_wizard(session_id: str, services: Services = Depends(get_services)) -> OnboardingWizard:
    wizard = services.sessions.get(session_id)
    if wizard is None:
        raise HTTPException(status_code=404, detail=f"Unknown onboarding session {session_id!r}")
    return wizard
