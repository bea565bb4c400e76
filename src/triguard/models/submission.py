"""Onboarding submission: the aggregate root persisted by the draft store.

Field names match the ``onboarding_forms`` columns so the same dict shape
flows from the UI form, through validation, into the store.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel


class SubmissionStatus(StrEnum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def is_final(self) -> bool:
        return self in (SubmissionStatus.SUBMITTED, SubmissionStatus.COMPLETED)


_STATUS_ORDER = [
    SubmissionStatus.DRAFT,
    SubmissionStatus.IN_PROGRESS,
    SubmissionStatus.SUBMITTED,
    SubmissionStatus.COMPLETED,
]


def forward_status(current: SubmissionStatus, proposed: SubmissionStatus) -> SubmissionStatus:
    """Return whichever status is further along; status never regresses."""
    return proposed if proposed.rank > current.rank else current


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"


class GarmentSize(StrEnum):
    XS = "xs"
    S = "s"
    M = "m"
    L = "l"
    XL = "xl"
    XXL = "xxl"
    XXXL = "xxxl"


class AccountType(StrEnum):
    CHECKING = "checking"
    SAVINGS = "savings"


class EmployeeRole(StrEnum):
    ROOF_PRO = "ROOF_PRO"
    ROOF_HAWK = "ROOF_HAWK"
    CSR = "CSR"
    APPOINTMENT_SETTER = "APPOINTMENT_SETTER"
    MANAGER = "MANAGER"
    REGIONAL_MANAGER = "REGIONAL_MANAGER"
    ROOFER = "ROOFER"


# "6" .. "15" in half-size steps
SHOE_SIZES: tuple[str, ...] = tuple(
    f"{whole}{half}" for whole in range(6, 16) for half in ("", ".5")
)[:-1]

US_STATES: tuple[str, ...] = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)


class OnboardingSubmission(BaseModel):
    """One applicant's onboarding record."""

    id: Optional[str] = None

    # --- Identity & contact ---
    first_name: str = ""
    last_name: str = ""
    generated_email: Optional[str] = None
    nickname: Optional[str] = None
    cell_phone: str = ""
    personal_email: str = ""
    employee_role: Optional[EmployeeRole] = None

    # --- Mailing address ---
    street_address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    # --- Shipping address ---
    same_as_mailing: bool = True
    shipping_street_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_zip_code: Optional[str] = None

    # --- Gear sizing ---
    gender: Gender = Gender.MALE
    shirt_size: GarmentSize = GarmentSize.M
    coat_size: GarmentSize = GarmentSize.M
    pant_size: GarmentSize = GarmentSize.M
    shoe_size: str = "9"
    hat_size: GarmentSize = GarmentSize.M

    # --- Badge ---
    badge_photo_url: Optional[str] = None

    # --- Assignment (foreign references) ---
    team_id: Optional[str] = None
    manager_id: Optional[str] = None
    recruiter_id: Optional[str] = None

    # --- W-9 ---
    w9_completed: bool = False
    w9_submitted_at: Optional[datetime] = None

    # --- Voice pitch ---
    voice_recording_url: Optional[str] = None
    voice_recording_completed_at: Optional[datetime] = None

    # --- Identity documents ---
    social_security_card_url: Optional[str] = None
    drivers_license_url: Optional[str] = None
    documents_uploaded_at: Optional[datetime] = None

    # --- Direct deposit ---
    direct_deposit_form_url: Optional[str] = None
    bank_routing_number: Optional[str] = None
    bank_account_number: Optional[str] = None
    account_type: Optional[AccountType] = None
    direct_deposit_confirmed: bool = False
    direct_deposit_completed_at: Optional[datetime] = None

    # --- Bookkeeping ---
    status: SubmissionStatus = SubmissionStatus.DRAFT
    current_step: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def documents_uploaded(self) -> bool:
        return bool(self.social_security_card_url and self.drivers_license_url)

    def form_values(self) -> dict[str, Any]:
        """Flatten into the dict shape the wizard edits."""
        return self.model_dump(mode="json")
