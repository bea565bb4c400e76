"""OnboardingWizard: the step sequencer driving a submission to completion.

The wizard holds explicit state (current step, highest validated step,
submission id, form values, status) and delegates all I/O to injected
collaborators. ``advance()`` is the only transition that writes:

    validate -> [allocate email] -> persist -> move step -> [dispatch]

Validation and persistence failures come back inside ``AdvanceResult`` and
leave the in-memory step unchanged. Notification dispatch is scheduled in the
background and never affects the result.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from triguard.core.config import NotificationConfig, WizardConfig
from triguard.core.exceptions import AllocationExhausted, PersistenceError, ValidationError
from triguard.core.protocols import IDraftStore, IReferenceDirectory
from triguard.identity.allocator import EmailAllocator
from triguard.models.events import EventKind
from triguard.models.submission import (
    OnboardingSubmission,
    SubmissionStatus,
    forward_status,
)
from triguard.notifications.dispatcher import SideEffectDispatcher
from triguard.notifications.payloads import (
    onboarding_completed_payload,
    onboarding_started_payload,
)
from triguard.wizard.schema import as_bool, validate_step
from triguard.wizard.steps import FINAL_STEP, NAME_STEP, fields_through, get_step

logger = logging.getLogger(__name__)

ErrorKind = Literal["validation", "persistence", "allocation_exhausted", "completed"]

SAVE_FAILED_MESSAGE = "Error: Failed to save form data. Please try again."

# Keys the UI may not overwrite through update_fields().
_BOOKKEEPING = frozenset({"id", "status", "current_step", "created_at", "updated_at", "submitted_at"})


class AdvanceResult(BaseModel):
    """Outcome of a wizard transition, returned rather than raised."""

    ok: bool
    step: int
    status: SubmissionStatus
    completed: bool = False
    submission_id: Optional[str] = None
    generated_email: Optional[str] = None
    errors: dict[str, str] = Field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    message: str = ""


class WizardState(BaseModel):
    step: int
    title: str
    status: SubmissionStatus
    highest_validated_step: int
    completed: bool
    submission_id: Optional[str] = None
    generated_email: Optional[str] = None
    values: dict[str, Any] = Field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# step -> (timestamp field, predicate over form values); stamped once, on the
# first advance from that step or a later one where the predicate holds.
_STEP_STAMPS: dict[int, tuple[str, Callable[[dict[str, Any]], bool]]] = {
    9: ("w9_submitted_at", lambda v: as_bool(v.get("w9_completed"))),
    10: (
        "documents_uploaded_at",
        lambda v: bool(v.get("social_security_card_url") and v.get("drivers_license_url")),
    ),
    11: ("direct_deposit_completed_at", lambda v: as_bool(v.get("direct_deposit_confirmed"))),
    12: ("voice_recording_completed_at", lambda v: bool(v.get("voice_recording_url"))),
}


def _persistable(name: str, value: Any) -> Any:
    """Blank input for an optional field is stored as None."""
    field = OnboardingSubmission.model_fields.get(name)
    if value == "" and field is not None and field.default is None:
        return None
    return value


def to_submission(values: dict[str, Any]) -> OnboardingSubmission:
    """Build a submission from raw form values; blank optionals become None."""
    fields = OnboardingSubmission.model_fields
    data = {key: _persistable(key, value) for key, value in values.items() if key in fields}
    return OnboardingSubmission.model_validate(data)


class OnboardingWizard:
    """Step sequencer for one applicant session."""

    def __init__(
        self,
        *,
        draft_store: IDraftStore,
        allocator: EmailAllocator,
        dispatcher: SideEffectDispatcher,
        directory: IReferenceDirectory,
        config: WizardConfig | None = None,
        notifications: NotificationConfig | None = None,
        form_values: dict[str, Any] | None = None,
        submission_id: str | None = None,
        current_step: int = 1,
        status: SubmissionStatus = SubmissionStatus.DRAFT,
        highest_validated_step: int = 0,
    ) -> None:
        self._store = draft_store
        self._allocator = allocator
        self._dispatcher = dispatcher
        self._directory = directory
        self._config = config or WizardConfig()
        self._notifications = notifications or NotificationConfig()

        self._values: dict[str, Any] = OnboardingSubmission().form_values()
        self._values.pop("id", None)
        if form_values:
            self._values.update({k: v for k, v in form_values.items() if k != "id"})

        self.submission_id = submission_id
        # Reserved on the first create attempt and reused by retries, so a write
        # that committed after its timeout is not duplicated.
        self._draft_id: str | None = submission_id
        self.current_step = min(max(current_step, 1), FINAL_STEP)
        self.status = status
        self.highest_validated_step = highest_validated_step
        self.completed = False

    # ------------------------------------------------------------------
    # Construction from persisted state
    # ------------------------------------------------------------------

    @classmethod
    async def resume(
        cls,
        submission_id: str,
        *,
        draft_store: IDraftStore,
        allocator: EmailAllocator,
        dispatcher: SideEffectDispatcher,
        directory: IReferenceDirectory,
        config: WizardConfig | None = None,
        notifications: NotificationConfig | None = None,
    ) -> OnboardingWizard:
        """Rebuild a wizard from the draft store; a missing draft starts fresh."""
        deps = dict(
            draft_store=draft_store, allocator=allocator, dispatcher=dispatcher,
            directory=directory, config=config, notifications=notifications,
        )
        submission = await draft_store.load_draft(submission_id)
        if submission is None:
            logger.info("No draft %s found; starting a fresh submission", submission_id)
            return cls(**deps)

        step = min(max(submission.current_step, 1), FINAL_STEP)
        wizard = cls(
            **deps,
            form_values=submission.form_values(),
            submission_id=submission.id,
            current_step=step,
            status=submission.status,
            highest_validated_step=step - 1,
        )
        if submission.status.is_final:
            wizard.completed = True
            wizard.highest_validated_step = FINAL_STEP
        logger.info("Resumed submission %s at step %d (%s)", submission.id, step, submission.status)
        return wizard

    # ------------------------------------------------------------------
    # Read-side helpers
    # ------------------------------------------------------------------

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def generated_email(self) -> str | None:
        return self._values.get("generated_email") or None

    @property
    def max_reachable_step(self) -> int:
        return min(self.highest_validated_step + 1, FINAL_STEP)

    def snapshot(self) -> OnboardingSubmission:
        """Current values as a submission.

        Raises:
            ValidationError: a value set through update_fields() does not fit
                the submission model (e.g. an unknown shirt size).
        """
        try:
            return to_submission(self._frozen_values())
        except PydanticValidationError as exc:
            errors = {
                ".".join(str(part) for part in err["loc"]) or "form": err["msg"]
                for err in exc.errors()
            }
            raise ValidationError(self.current_step, errors) from exc

    def state(self) -> WizardState:
        return WizardState(
            step=self.current_step,
            title=get_step(self.current_step).title,
            status=self.status,
            highest_validated_step=self.highest_validated_step,
            completed=self.completed,
            submission_id=self.submission_id,
            generated_email=self.generated_email,
            values=self.values,
        )

    def _result(self, ok: bool, **kwargs: Any) -> AdvanceResult:
        return AdvanceResult(
            ok=ok,
            step=self.current_step,
            status=self.status,
            completed=self.completed,
            submission_id=self.submission_id,
            generated_email=self.generated_email,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def update_fields(self, values: dict[str, Any]) -> None:
        """Merge UI input into the in-memory form; never persists."""
        for key, value in values.items():
            if key in _BOOKKEEPING:
                continue
            if key == "generated_email" and self.generated_email and value != self.generated_email:
                logger.warning("Ignoring attempt to change generated email for %s", self.submission_id)
                continue
            self._values[key] = value

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def advance(self) -> AdvanceResult:
        if self.completed:
            return self._result(False, error_kind="completed", message="Submission already completed")

        step = self.current_step
        validation = validate_step(step, self._values)
        if not validation.valid:
            return self._result(
                False,
                errors=validation.errors,
                error_kind="validation",
                message="Please complete required fields before continuing.",
            )

        if step == NAME_STEP and not self.generated_email:
            try:
                email = await self._allocator.allocate(
                    str(self._values["first_name"]), str(self._values["last_name"])
                )
            except AllocationExhausted as exc:
                return self._result(False, error_kind="allocation_exhausted", message=str(exc))
            except PersistenceError as exc:
                logger.error("Email allocation failed for step %d: %s", step, exc)
                return self._result(False, error_kind="persistence", message=SAVE_FAILED_MESSAGE)
            self._values["generated_email"] = email

        is_final = step == FINAL_STEP
        next_step = step if is_final else step + 1
        new_status = forward_status(
            self.status, SubmissionStatus.SUBMITTED if is_final else SubmissionStatus.IN_PROGRESS
        )

        created = self.submission_id is None
        try:
            await self._write(step, next_step, new_status, submitting=is_final)
        except PersistenceError as exc:
            logger.error("Persisting step %d failed: %s", step, exc)
            return self._result(False, error_kind="persistence", message=SAVE_FAILED_MESSAGE)

        self.status = new_status
        self.highest_validated_step = max(self.highest_validated_step, step)
        if created:
            self._dispatch_started()
        if is_final:
            self.completed = True
            self._dispatch_completed()
            logger.info("Submission %s submitted", self.submission_id)
        else:
            self.current_step = next_step
        return self._result(True)

    def retreat(self) -> AdvanceResult:
        """Go back one step. No validation, no persistence, floor at step 1."""
        if not self.completed:
            self.current_step = max(self.current_step - 1, 1)
        return self._result(True)

    def jump_to(self, step: int) -> AdvanceResult:
        """Navigate to any step already reached in this session."""
        if self.completed or not 1 <= step <= self.max_reachable_step:
            return self._result(
                False,
                error_kind="validation",
                errors={"step": f"Step {step} is not available yet"},
                message=f"Complete step {self.max_reachable_step} before moving to step {step}.",
            )
        self.current_step = step
        return self._result(True)

    async def save_progress(self) -> AdvanceResult:
        """Persist the current step's input without validating or advancing."""
        if self.completed:
            return self._result(False, error_kind="completed", message="Submission already completed")
        if self.submission_id is None:
            missing = {
                name: f"{name.replace('_', ' ').capitalize()} is required"
                for name in ("first_name", "last_name")
                if not str(self._values.get(name) or "").strip()
            }
            if missing:
                return self._result(
                    False, errors=missing, error_kind="validation",
                    message="Enter your name before saving progress.",
                )
        new_status = forward_status(
            self.status,
            SubmissionStatus.IN_PROGRESS if self.current_step > 1 else SubmissionStatus.DRAFT,
        )
        created = self.submission_id is None
        try:
            await self._write(self.current_step, self.current_step, new_status, submitting=False)
        except PersistenceError as exc:
            logger.error("Saving progress at step %d failed: %s", self.current_step, exc)
            return self._result(False, error_kind="persistence", message=SAVE_FAILED_MESSAGE)
        self.status = new_status
        if created:
            self._dispatch_started()
        return self._result(True, message="Progress saved")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _partial_update(
        self, step: int, next_step: int, status: SubmissionStatus, submitting: bool
    ) -> dict[str, Any]:
        now = _utcnow()
        values = self._values
        update: dict[str, Any] = {
            name: _persistable(name, values.get(name)) for name in fields_through(step)
        }
        update.update(current_step=next_step, status=status.value, updated_at=now.isoformat())
        if self.generated_email:
            update["generated_email"] = self.generated_email

        for stamp_step, (field, reached) in _STEP_STAMPS.items():
            if stamp_step > step:
                continue
            if reached(values) and not values.get(field):
                values[field] = now.isoformat()
            if values.get(field):
                update[field] = values[field]
        if submitting:
            values["submitted_at"] = now.isoformat()
            update["submitted_at"] = values["submitted_at"]
        return update

    async def _write(
        self, step: int, next_step: int, status: SubmissionStatus, submitting: bool
    ) -> None:
        update = self._partial_update(step, next_step, status, submitting)
        timeout = self._config.persistence_timeout_seconds
        try:
            if self.submission_id is None:
                fields = {k: _persistable(k, v) for k, v in self._values.items() if k != "id"}
                fields.update(update)
                fields["created_at"] = update["updated_at"]
                if self._draft_id is None:
                    self._draft_id = str(uuid.uuid4())
                await asyncio.wait_for(self._store.create_draft(self._draft_id, fields), timeout)
                self.submission_id = self._draft_id
                logger.info("Created draft submission %s", self.submission_id)
            else:
                await asyncio.wait_for(self._store.update_draft(self.submission_id, update), timeout)
        except asyncio.TimeoutError as exc:
            raise PersistenceError(f"Draft store timed out after {timeout:.1f}s") from exc

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _frozen_values(self) -> dict[str, Any]:
        data = dict(self._values)
        data.update(id=self.submission_id, status=self.status, current_step=self.current_step)
        return data

    def _dispatch_started(self) -> None:
        data = self._frozen_values()

        async def build() -> dict[str, Any]:
            return onboarding_started_payload(to_submission(data))

        self._dispatcher.dispatch_deferred(EventKind.ONBOARDING_STARTED, build)

    def _dispatch_completed(self) -> None:
        data = self._frozen_values()
        directory = self._directory
        team_email = self._notifications.onboarding_team_email

        async def build() -> dict[str, Any]:
            snapshot = to_submission(data)
            manager = None
            if snapshot.manager_id:
                try:
                    manager = await directory.get_manager(snapshot.manager_id)
                except Exception as exc:
                    logger.warning("Manager lookup for %s failed: %s", snapshot.manager_id, exc)
            return onboarding_completed_payload(snapshot, manager, team_email)

        self._dispatcher.dispatch_deferred(EventKind.ONBOARDING_COMPLETED, build)
