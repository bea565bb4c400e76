"""TriGuard onboarding exception hierarchy."""

from __future__ import annotations


class TriGuardError(Exception):
    """Base exception for all onboarding errors."""


class ValidationError(TriGuardError):
    """One or more fields of a wizard step failed validation."""

    def __init__(self, step: int, errors: dict[str, str]) -> None:
        self.step = step
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Step {step} failed validation: {fields}")


class PersistenceError(TriGuardError):
    """Write to (or read from) the draft store failed."""


class SubmissionNotFoundError(PersistenceError):
    """Update targeted a submission id that does not exist."""

    def __init__(self, submission_id: str) -> None:
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id!r} not found for update")


class AllocationExhausted(TriGuardError):
    """Every suffix for a normalized name pair is already taken."""

    def __init__(self, base_address: str, max_suffix: int) -> None:
        self.base_address = base_address
        self.max_suffix = max_suffix
        super().__init__(
            f"Unable to generate unique email address for {base_address} "
            f"(suffixes 1..{max_suffix} exhausted)"
        )


class DispatchError(TriGuardError):
    """Notification delivery failed."""

    def __init__(self, event_kind: str, message: str) -> None:
        self.event_kind = event_kind
        super().__init__(f"Dispatch of {event_kind} failed: {message}")


class UploadRejectedError(TriGuardError):
    """File rejected before upload (type or size)."""


class StorageError(TriGuardError):
    """Blob storage operation failed."""


class CacheError(TriGuardError):
    """Redis cache operation failed."""


class ReferenceNotFoundError(TriGuardError):
    """Team, manager or recruiter lookup found nothing."""


class TaskGateError(TriGuardError):
    """Task acknowledgment attempted before team and manager are chosen."""
