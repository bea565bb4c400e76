"""Declarative field rules per wizard step, and the pure step validator."""

from __future__ import annotations

import re
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

from triguard.models.submission import (
    SHOE_SIZES,
    US_STATES,
    AccountType,
    EmployeeRole,
    GarmentSize,
    Gender,
)
from triguard.wizard.steps import FINAL_STEP, get_step

FieldType = Literal["string", "enum", "boolean", "email", "phone", "digits"]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NON_DIGITS = re.compile(r"\D")
_NON_LETTERS = re.compile(r"[^a-z]")

INAPPROPRIATE_WORDS: tuple[str, ...] = (
    "damn", "hell", "shit", "fuck", "bitch", "ass", "asshole", "bastard", "crap", "piss",
    "whore", "slut", "retard", "idiot", "stupid", "dumb", "moron", "loser", "freak",
    "nazi", "hitler", "terrorist", "kill", "murder", "death", "suicide", "bomb",
    "drug", "cocaine", "heroin", "meth", "weed", "marijuana", "porn", "sex", "nude",
)

_SIZES = [s.value for s in GarmentSize]


class FieldRule(BaseModel):
    """Constraint on a single form field."""

    name: str
    field_type: FieldType = "string"
    required: bool = True
    message: str = ""  # shown when the field is missing or malformed
    choices: list[str] = Field(default_factory=list)
    min_length: int = 0
    max_length: Optional[int] = None
    digits: Optional[int] = None  # exact digit count
    min_digits: Optional[int] = None
    must_be_true: bool = False
    screen_content: bool = False


class StepValidation(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)


def contains_inappropriate_content(text: str) -> bool:
    letters = _NON_LETTERS.sub("", text.lower())
    return any(word in letters for word in INAPPROPRIATE_WORDS)


def format_phone_number(value: str) -> str:
    """Render digits as ``(555) 123-4567`` while the user types."""
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return ""
    if len(digits) <= 3:
        return f"({digits}"
    if len(digits) <= 6:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:10]}"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def check_field(rule: FieldRule, value: Any) -> str | None:
    """Return an error message for ``value`` under ``rule``, or None."""
    label = rule.name.replace("_", " ").capitalize()
    default_message = rule.message or f"{label} is required"

    if rule.field_type == "boolean":
        if rule.must_be_true:
            return None if value is True else default_message
        if rule.required and not isinstance(value, bool):
            return default_message
        return None

    if _is_blank(value):
        return default_message if rule.required else None

    text = str(value).strip()

    if rule.field_type == "enum":
        return None if text in rule.choices else rule.message or f"Please select a valid {label.lower()}"

    if rule.field_type == "email":
        return None if _EMAIL_RE.match(text) else rule.message or f"Valid {label.lower()} is required"

    if rule.field_type in ("phone", "digits"):
        digits = _NON_DIGITS.sub("", text)
        if rule.digits is not None and len(digits) != rule.digits:
            return rule.message or f"{label} must be {rule.digits} digits"
        if rule.min_digits is not None and len(digits) < rule.min_digits:
            return rule.message or f"{label} must be at least {rule.min_digits} digits"
        return None

    if len(text) < rule.min_length:
        return default_message
    if rule.max_length is not None and len(text) > rule.max_length:
        return f"{label} must be less than {rule.max_length} characters"
    if rule.screen_content and contains_inappropriate_content(text):
        return f"{label} contains inappropriate content. Please choose a different {label.lower()}."
    return None


# ---------------------------------------------------------------------------
# Cross-field rules
# ---------------------------------------------------------------------------

SHIPPING_FIELDS: tuple[str, ...] = (
    "shipping_street_address",
    "shipping_city",
    "shipping_state",
    "shipping_zip_code",
)


def shipping_address_rule(values: dict[str, Any]) -> dict[str, str]:
    """Shipping fields are required exactly when ``same_as_mailing`` is false."""
    if as_bool(values.get("same_as_mailing"), default=True):
        return {}
    return {
        name: "Shipping address is required when different from mailing address"
        for name in SHIPPING_FIELDS
        if _is_blank(values.get(name))
    }


def generated_email_rule(values: dict[str, Any]) -> dict[str, str]:
    if _is_blank(values.get("generated_email")):
        return {"generated_email": "Company email has not been generated yet"}
    return {}


def submission_ready_rule(values: dict[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if values.get("w9_completed") is not True:
        errors["w9_completed"] = "The W-9 form must be completed before submitting"
    if _is_blank(values.get("badge_photo_url")):
        errors["badge_photo_url"] = "A badge photo is required before submitting"
    return errors


CrossFieldRule = Callable[[dict[str, Any]], dict[str, str]]


class StepSchema(BaseModel):
    step: int
    fields: list[FieldRule] = Field(default_factory=list)
    cross_field: list[CrossFieldRule] = Field(default_factory=list)


STEP_SCHEMAS: dict[int, StepSchema] = {
    1: StepSchema(step=1, fields=[
        FieldRule(name="first_name", message="First name is required"),
        FieldRule(name="last_name", message="Last name is required"),
        FieldRule(name="nickname", required=False, max_length=30, screen_content=True),
        FieldRule(name="cell_phone", field_type="phone", digits=10,
                  message="Please enter a valid 10-digit phone number"),
        FieldRule(name="personal_email", field_type="email",
                  message="Valid personal email is required"),
    ]),
    2: StepSchema(step=2, fields=[
        FieldRule(name="employee_role", field_type="enum",
                  choices=[r.value for r in EmployeeRole],
                  message="Please select your role"),
    ]),
    3: StepSchema(step=3, cross_field=[generated_email_rule]),
    4: StepSchema(step=4, fields=[
        FieldRule(name="street_address", message="Street address is required"),
        FieldRule(name="city", message="City is required"),
        FieldRule(name="state", field_type="enum", choices=list(US_STATES),
                  message="State is required"),
        FieldRule(name="zip_code", min_length=5, message="Valid zip code is required"),
    ], cross_field=[shipping_address_rule]),
    5: StepSchema(step=5, fields=[
        FieldRule(name="gender", field_type="enum", choices=[g.value for g in Gender]),
        FieldRule(name="shirt_size", field_type="enum", choices=_SIZES),
        FieldRule(name="coat_size", field_type="enum", choices=_SIZES),
        FieldRule(name="pant_size", field_type="enum", choices=_SIZES),
        FieldRule(name="shoe_size", field_type="enum", choices=list(SHOE_SIZES)),
        FieldRule(name="hat_size", field_type="enum", choices=_SIZES),
    ]),
    7: StepSchema(step=7, fields=[
        FieldRule(name="team_id", message="Please select a team"),
        FieldRule(name="manager_id", message="Please select a manager"),
        FieldRule(name="recruiter_id", message="Please select a recruiter"),
    ]),
    9: StepSchema(step=9, fields=[
        FieldRule(name="w9_completed", field_type="boolean",
                  message="Please indicate whether the W-9 form is completed"),
    ]),
    11: StepSchema(step=11, fields=[
        FieldRule(name="bank_routing_number", field_type="digits", required=False, digits=9,
                  message="Routing number must be 9 digits"),
        FieldRule(name="bank_account_number", field_type="digits", required=False, min_digits=8,
                  message="Account number must be at least 8 digits"),
        FieldRule(name="account_type", field_type="enum", required=False,
                  choices=[a.value for a in AccountType]),
    ]),
    FINAL_STEP: StepSchema(step=FINAL_STEP, cross_field=[submission_ready_rule]),
}


def validate_step(step_index: int, values: dict[str, Any]) -> StepValidation:
    """Check the fields owned by ``step_index``. Pure: no I/O, no mutation."""
    get_step(step_index)  # raises IndexError outside 1..N
    schema = STEP_SCHEMAS.get(step_index)
    if schema is None:
        return StepValidation(valid=True)

    errors: dict[str, str] = {}
    for rule in schema.fields:
        message = check_field(rule, values.get(rule.name))
        if message:
            errors[rule.name] = message
    for cross in schema.cross_field:
        for name, message in cross(values).items():
            errors.setdefault(name, message)
    return StepValidation(valid=not errors, errors=errors)
