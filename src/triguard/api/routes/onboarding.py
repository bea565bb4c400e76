"""Wizard session endpoints: start, resume, edit, navigate, upload."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Query, Request
from pydantic import BaseModel

from triguard.api.dependencies import get_services, get_wizard
from triguard.api.services import Services
from triguard.wizard.schema import format_phone_number
from triguard.wizard.sequencer import AdvanceResult, OnboardingWizard, WizardState
from triguard.wizard.steps import STEPS, WizardStep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["onboarding"])


class UploadKind(StrEnum):
    BADGE_PHOTO = "badge-photo"
    SOCIAL_SECURITY = "social-security"
    DRIVERS_LICENSE = "drivers-license"
    DIRECT_DEPOSIT = "direct-deposit"
    VOICE_PITCH = "voice-pitch"


# Upload kind -> form field that receives the stored URL.
UPLOAD_FIELDS: dict[UploadKind, str] = {
    UploadKind.BADGE_PHOTO: "badge_photo_url",
    UploadKind.SOCIAL_SECURITY: "social_security_card_url",
    UploadKind.DRIVERS_LICENSE: "drivers_license_url",
    UploadKind.DIRECT_DEPOSIT: "direct_deposit_form_url",
    UploadKind.VOICE_PITCH: "voice_recording_url",
}


class SessionResponse(BaseModel):
    session_id: str
    state: WizardState


class UploadResponse(BaseModel):
    field: str
    url: str


@router.get("/steps")
async def list_steps() -> list[WizardStep]:
    return list(STEPS)


@router.post("", status_code=201)
async def start_session(services: Services = Depends(get_services)) -> SessionResponse:
    wizard = services.new_wizard()
    session_id = services.sessions.add(wizard)
    logger.info("Started onboarding session %s", session_id)
    return SessionResponse(session_id=session_id, state=wizard.state())


@router.post("/resume/{submission_id}", status_code=201)
async def resume_session(
    submission_id: str, services: Services = Depends(get_services)
) -> SessionResponse:
    wizard = await services.resume_wizard(submission_id)
    session_id = services.sessions.add(wizard)
    return SessionResponse(session_id=session_id, state=wizard.state())


@router.get("/{session_id}")
async def get_state(wizard: OnboardingWizard = Depends(get_wizard)) -> WizardState:
    return wizard.state()


@router.patch("/{session_id}/fields")
async def update_fields(
    values: dict[str, Any] = Body(...),
    wizard: OnboardingWizard = Depends(get_wizard),
) -> WizardState:
    if isinstance(values.get("cell_phone"), str):
        values["cell_phone"] = format_phone_number(values["cell_phone"])
    wizard.update_fields(values)
    return wizard.state()


@router.post("/{session_id}/advance")
async def advance(
    session_id: str,
    wizard: OnboardingWizard = Depends(get_wizard),
    services: Services = Depends(get_services),
) -> AdvanceResult:
    result = await wizard.advance()
    if result.completed:
        services.sessions.discard(session_id)
        logger.info("Closed onboarding session %s for submitted %s", session_id, result.submission_id)
    return result


@router.post("/{session_id}/retreat")
async def retreat(wizard: OnboardingWizard = Depends(get_wizard)) -> AdvanceResult:
    return wizard.retreat()


@router.post("/{session_id}/jump/{step}")
async def jump(step: int, wizard: OnboardingWizard = Depends(get_wizard)) -> AdvanceResult:
    return wizard.jump_to(step)


@router.post("/{session_id}/save")
async def save(wizard: OnboardingWizard = Depends(get_wizard)) -> AdvanceResult:
    return await wizard.save_progress()


@router.put("/{session_id}/uploads/{kind}")
async def upload(
    kind: UploadKind,
    request: Request,
    filename: str = Query(""),
    content_type: str = Header("application/octet-stream"),
    wizard: OnboardingWizard = Depends(get_wizard),
    services: Services = Depends(get_services),
) -> UploadResponse:
    """Store the raw request body and record its URL on the form."""
    uploader = services.uploader
    uploader.check_declared_size(request.headers.get("content-length"))
    data = await request.body()
    if kind is UploadKind.VOICE_PITCH:
        url = await asyncio.to_thread(uploader.upload_voice_recording, data, content_type)
    elif kind is UploadKind.BADGE_PHOTO:
        url = await asyncio.to_thread(uploader.upload_badge_photo, filename, data, content_type)
    else:
        url = await asyncio.to_thread(
            uploader.upload_identity_document, kind.value, filename, data, content_type
        )
    field = UPLOAD_FIELDS[kind]
    wizard.update_fields({field: url})
    return UploadResponse(field=field, url=url)
