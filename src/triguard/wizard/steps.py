"""Ordered wizard steps and the fields each step writes."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WizardStep(BaseModel):
    """One page of the onboarding wizard."""

    index: int
    key: str
    title: str
    description: str = ""
    fields: list[str] = Field(default_factory=list)  # persisted on advance


STEPS: tuple[WizardStep, ...] = (
    WizardStep(
        index=1, key="basic_information", title="Basic Information",
        description="Name and contact details",
        fields=["first_name", "last_name", "nickname", "cell_phone", "personal_email"],
    ),
    WizardStep(
        index=2, key="role_selection", title="Role Selection",
        description="Select your role",
        fields=["employee_role"],
    ),
    WizardStep(
        index=3, key="email_preview", title="Email Preview",
        description="Review your generated credentials",
    ),
    WizardStep(
        index=4, key="address_information", title="Address Information",
        description="Mailing and shipping addresses",
        fields=[
            "street_address", "city", "state", "zip_code", "same_as_mailing",
            "shipping_street_address", "shipping_city", "shipping_state",
            "shipping_zip_code",
        ],
    ),
    WizardStep(
        index=5, key="gear_sizing", title="Gear Sizing",
        description="Uniform and equipment sizes",
        fields=["gender", "shirt_size", "coat_size", "pant_size", "shoe_size", "hat_size"],
    ),
    WizardStep(
        index=6, key="badge_photo", title="Badge Photo",
        description="Upload and edit your badge photo",
        fields=["badge_photo_url"],
    ),
    WizardStep(
        index=7, key="team_assignment", title="Team Assignment",
        description="Select team, manager, and recruiter",
        fields=["team_id", "manager_id", "recruiter_id"],
    ),
    WizardStep(
        index=8, key="task_acknowledgment", title="Task Acknowledgment",
        description="Review and acknowledge your tasks",
    ),
    WizardStep(
        index=9, key="w9_form", title="W9 Form",
        description="Complete tax documentation",
        fields=["w9_completed", "w9_submitted_at"],
    ),
    WizardStep(
        index=10, key="document_upload", title="Document Upload",
        description="Upload required identification documents",
        fields=["social_security_card_url", "drivers_license_url"],
    ),
    WizardStep(
        index=11, key="direct_deposit", title="Direct Deposit",
        description="Set up your direct deposit information",
        fields=[
            "bank_routing_number", "bank_account_number", "account_type",
            "direct_deposit_form_url", "direct_deposit_confirmed",
        ],
    ),
    WizardStep(
        index=12, key="voice_pitch", title="Voice Pitch",
        description="Record your pitch to join our team",
        fields=["voice_recording_url", "voice_recording_completed_at"],
    ),
    WizardStep(
        index=13, key="review_submit", title="Review & Submit",
        description="Review and submit your application",
    ),
)

NAME_STEP = 1
FINAL_STEP = len(STEPS)


def get_step(index: int) -> WizardStep:
    if not 1 <= index <= len(STEPS):
        raise IndexError(f"No wizard step {index}; valid range is 1..{len(STEPS)}")
    return STEPS[index - 1]


def step_fields(index: int) -> list[str]:
    """Fields a single step collects."""
    return list(get_step(index).fields)


def fields_through(index: int) -> list[str]:
    """Fields of every step from 1 through ``index``, in step order.

    An advance writes all of them so edits made after jumping back to an
    earlier step reach the store on the next advance.
    """
    names: dict[str, None] = {}
    for step in range(1, index + 1):
        names.update(dict.fromkeys(get_step(step).fields))
    return list(names)
