"""Payload builders for milestone notification events."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from triguard.models.reference import Manager
from triguard.models.submission import OnboardingSubmission
from triguard.models.tasks import Task


def onboarding_started_payload(submission: OnboardingSubmission) -> dict[str, Any]:
    return {
        "form_id": submission.id,
        "employee_data": {
            "name": submission.full_name,
            "email": submission.generated_email or submission.personal_email,
            "personal_email": submission.personal_email,
            "cell_phone": submission.cell_phone,
            "started_at": (submission.created_at or datetime.now(timezone.utc)).isoformat(),
        },
    }


def onboarding_completed_payload(
    submission: OnboardingSubmission,
    manager: Manager | None,
    onboarding_team_email: str = "",
) -> dict[str, Any]:
    """Full submission snapshot plus the recipients of the completion emails."""
    submitted_at = submission.submitted_at or datetime.now(timezone.utc)
    return {
        "form_id": submission.id,
        "employee_name": submission.full_name,
        "employee_email": submission.generated_email,
        "manager_email": manager.email if manager else None,
        "manager_name": manager.full_name if manager else None,
        "onboarding_team_email": onboarding_team_email or None,
        "employee_data": {
            "name": submission.full_name,
            "generated_email": submission.generated_email,
            "personal_email": submission.personal_email,
            "address": {
                "street": submission.street_address,
                "city": submission.city,
                "state": submission.state,
                "zip": submission.zip_code,
            },
            "gear_sizes": {
                "gender": submission.gender,
                "shirt": submission.shirt_size,
                "coat": submission.coat_size,
                "pants": submission.pant_size,
                "shoes": submission.shoe_size,
                "hat": submission.hat_size,
            },
            "team_id": submission.team_id,
            "manager_id": submission.manager_id,
            "recruiter_id": submission.recruiter_id,
            "w9_completed": submission.w9_completed,
            "documents_uploaded": submission.documents_uploaded,
            "direct_deposit_setup": submission.direct_deposit_confirmed,
            "submitted_at": submitted_at.isoformat(),
        },
        "submission": submission.model_dump(mode="json"),
    }


def task_assignment_payload(
    task: Task, submission: OnboardingSubmission, manager: Manager | None
) -> dict[str, Any]:
    return {
        "type": "task_assignment",
        "user_data": {
            "first_name": submission.first_name,
            "last_name": submission.last_name,
            "generated_email": submission.generated_email,
            "personal_email": submission.personal_email,
        },
        "task_data": {
            "task_id": task.id,
            "task_title": task.title,
            "task_description": task.description,
            "assigned_by": manager.full_name if manager else "Your Manager",
        },
    }
