"""Tests for the onboarding wizard state machine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from tests.fakes import (
    FailingNotifier,
    MemoryDraftStore,
    MemoryEmailLedger,
    MemoryReferenceDirectory,
    RecordingNotifier,
)
from triguard.core.config import NotificationConfig, WizardConfig
from triguard.core.exceptions import PersistenceError, ValidationError
from triguard.identity.allocator import EmailAllocator, candidate_addresses
from triguard.models.reference import Manager
from triguard.models.submission import SubmissionStatus
from triguard.notifications.dispatcher import SideEffectDispatcher
from triguard.wizard.sequencer import OnboardingWizard
from triguard.wizard.steps import FINAL_STEP

DOMAIN = "triguardroofing.com"

MANAGER = Manager(
    id="mgr-1", first_name="Dana", last_name="Whitfield",
    email="dana.whitfield@triguardroofing.com", team_id="team-1",
)

# Input the applicant supplies on each step before pressing Next.
STEP_INPUT: dict[int, dict] = {
    1: {
        "first_name": "Jane", "last_name": "Doe",
        "cell_phone": "(555) 123-4567", "personal_email": "jane@example.com",
    },
    2: {"employee_role": "ROOF_PRO"},
    4: {"street_address": "1 Main St", "city": "Dallas", "state": "TX", "zip_code": "75001"},
    6: {"badge_photo_url": "https://files.example/badge-photos/1.png"},
    7: {"team_id": "team-1", "manager_id": "mgr-1", "recruiter_id": "rec-1"},
    9: {"w9_completed": True},
    10: {
        "social_security_card_url": "https://files.example/docs/ssc.pdf",
        "drivers_license_url": "https://files.example/docs/dl.pdf",
    },
    11: {"direct_deposit_confirmed": True},
    12: {"voice_recording_url": "https://files.example/voice/pitch.webm"},
}


class FlakyDraftStore(MemoryDraftStore):
    """Fails the first ``failures`` writes with a PersistenceError."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    async def create_draft(self, submission_id, fields):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset")
        return await super().create_draft(submission_id, fields)

    async def update_draft(self, submission_id, fields):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset")
        await super().update_draft(submission_id, fields)


class SlowDraftStore(MemoryDraftStore):
    async def create_draft(self, submission_id, fields):
        await asyncio.sleep(1)
        return await super().create_draft(submission_id, fields)


class LingeringDraftStore(MemoryDraftStore):
    """Commits creates after ``delay`` even when the caller stopped waiting."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.create_ids: list[str] = []

    async def _commit_later(self, submission_id, fields):
        await asyncio.sleep(self.delay)
        return await MemoryDraftStore.create_draft(self, submission_id, fields)

    async def create_draft(self, submission_id, fields):
        self.create_ids.append(submission_id)
        return await asyncio.shield(self._commit_later(submission_id, fields))


class BrokenDirectory(MemoryReferenceDirectory):
    async def get_manager(self, manager_id):
        raise RuntimeError("directory unavailable")


@dataclass
class Harness:
    wizard: OnboardingWizard
    store: MemoryDraftStore
    ledger: MemoryEmailLedger
    notifier: object
    dispatcher: SideEffectDispatcher
    directory: MemoryReferenceDirectory

    def deps(self) -> dict:
        return dict(
            draft_store=self.store,
            allocator=EmailAllocator(self.ledger, DOMAIN),
            dispatcher=self.dispatcher,
            directory=self.directory,
        )


def make_harness(
    store: MemoryDraftStore | None = None,
    ledger: MemoryEmailLedger | None = None,
    notifier=None,
    directory: MemoryReferenceDirectory | None = None,
    config: WizardConfig | None = None,
) -> Harness:
    store = store if store is not None else MemoryDraftStore()
    ledger = ledger if ledger is not None else MemoryEmailLedger()
    notifier = notifier if notifier is not None else RecordingNotifier()
    if directory is None:
        directory = MemoryReferenceDirectory(managers=[MANAGER])
    dispatcher = SideEffectDispatcher(notifier)
    config = config or WizardConfig()
    wizard = OnboardingWizard(
        draft_store=store,
        allocator=EmailAllocator(ledger, DOMAIN, config.max_email_suffix),
        dispatcher=dispatcher,
        directory=directory,
        config=config,
        notifications=NotificationConfig(onboarding_team_email="onboarding@triguardroofing.com"),
    )
    return Harness(wizard, store, ledger, notifier, dispatcher, directory)


async def advance_through(wizard: OnboardingWizard, last_step: int) -> list:
    """Fill and advance every step from the current one through ``last_step``."""
    results = []
    while wizard.current_step <= last_step and not wizard.completed:
        wizard.update_fields(STEP_INPUT.get(wizard.current_step, {}))
        result = await wizard.advance()
        assert result.ok, result
        results.append(result)
    return results


@pytest.fixture
def harness() -> Harness:
    return make_harness()


class TestValidationGate:
    @pytest.mark.asyncio
    async def test_invalid_step_does_not_persist(self, harness):
        result = await harness.wizard.advance()
        assert not result.ok
        assert result.error_kind == "validation"
        assert "first_name" in result.errors
        assert result.step == 1
        assert harness.store.writes == []
        assert len(harness.ledger) == 0
        await harness.dispatcher.drain()
        assert harness.notifier.events == []

    @pytest.mark.asyncio
    async def test_invalid_later_step_leaves_record_unchanged(self, harness):
        await advance_through(harness.wizard, 1)
        before = dict(harness.store.records[harness.wizard.submission_id])
        harness.wizard.update_fields({"employee_role": "CEO"})
        result = await harness.wizard.advance()
        assert result.error_kind == "validation"
        assert harness.store.records[harness.wizard.submission_id] == before
        assert len(harness.store.writes) == 1


class TestFirstAdvance:
    @pytest.mark.asyncio
    async def test_creates_draft_with_generated_email(self, harness):
        harness.wizard.update_fields(STEP_INPUT[1])
        result = await harness.wizard.advance()

        assert result.ok
        assert result.step == 2
        assert result.status == SubmissionStatus.IN_PROGRESS
        assert result.generated_email == "jane.doe@triguardroofing.com"
        record = harness.store.records[result.submission_id]
        assert record["generated_email"] == "jane.doe@triguardroofing.com"
        assert record["current_step"] == 2
        assert record["status"] == "in_progress"
        assert record["created_at"] is not None

    @pytest.mark.asyncio
    async def test_dispatches_onboarding_started_once(self, harness):
        await advance_through(harness.wizard, 3)
        await harness.dispatcher.drain()
        assert harness.notifier.kinds() == ["onboarding_started"]
        payload = harness.notifier.events[0].payload
        assert payload["form_id"] == harness.wizard.submission_id
        assert payload["employee_data"]["email"] == "jane.doe@triguardroofing.com"

    @pytest.mark.asyncio
    async def test_email_allocated_only_once(self, harness):
        await advance_through(harness.wizard, 1)
        email = harness.wizard.generated_email
        harness.wizard.retreat()
        result = await harness.wizard.advance()
        assert result.ok
        assert harness.wizard.generated_email == email
        assert len(harness.ledger) == 1

    @pytest.mark.asyncio
    async def test_same_name_second_submission_gets_suffix(self, harness):
        await advance_through(harness.wizard, 1)
        other = OnboardingWizard(**harness.deps())
        other.update_fields({**STEP_INPUT[1], "personal_email": "other@example.com"})
        result = await other.advance()
        assert result.generated_email == "jane.doe1@triguardroofing.com"

    @pytest.mark.asyncio
    async def test_allocation_exhausted_blocks_progress(self):
        taken = list(candidate_addresses("Jane", "Doe", DOMAIN, max_suffix=2))
        h = make_harness(
            ledger=MemoryEmailLedger(existing=taken),
            config=WizardConfig(max_email_suffix=2),
        )
        h.wizard.update_fields(STEP_INPUT[1])
        result = await h.wizard.advance()
        assert not result.ok
        assert result.error_kind == "allocation_exhausted"
        assert result.step == 1
        assert h.store.writes == []


class TestPersistenceFailure:
    @pytest.mark.asyncio
    async def test_failure_keeps_step_and_allows_retry(self):
        h = make_harness(store=FlakyDraftStore(failures=1))
        h.wizard.update_fields(STEP_INPUT[1])

        failed = await h.wizard.advance()
        assert not failed.ok
        assert failed.error_kind == "persistence"
        assert failed.step == 1
        assert failed.status == SubmissionStatus.DRAFT
        assert h.wizard.submission_id is None

        retried = await h.wizard.advance()
        assert retried.ok
        assert retried.step == 2
        assert len(h.ledger) == 1

    @pytest.mark.asyncio
    async def test_update_failure_keeps_step(self):
        h = make_harness(store=FlakyDraftStore(failures=0))
        await advance_through(h.wizard, 1)
        h.store.failures = 1
        h.wizard.update_fields(STEP_INPUT[2])
        result = await h.wizard.advance()
        assert result.error_kind == "persistence"
        assert h.wizard.current_step == 2
        assert h.wizard.highest_validated_step == 1

    @pytest.mark.asyncio
    async def test_retry_after_late_commit_keeps_one_draft(self):
        store = LingeringDraftStore(delay=0.05)
        h = make_harness(store=store, config=WizardConfig(persistence_timeout_seconds=0.01))
        h.wizard.update_fields(STEP_INPUT[1])

        failed = await h.wizard.advance()
        assert failed.error_kind == "persistence"
        await asyncio.sleep(0.1)
        assert len(store.records) == 1

        store.delay = 0
        retried = await h.wizard.advance()

        assert retried.ok
        assert len(store.records) == 1
        assert store.create_ids[0] == store.create_ids[1] == retried.submission_id

    @pytest.mark.asyncio
    async def test_timeout_is_persistence_failure(self):
        h = make_harness(store=SlowDraftStore(), config=WizardConfig(persistence_timeout_seconds=0.01))
        h.wizard.update_fields(STEP_INPUT[1])
        result = await h.wizard.advance()
        assert not result.ok
        assert result.error_kind == "persistence"
        assert h.wizard.current_step == 1


class TestPartialUpdates:
    @pytest.mark.asyncio
    async def test_update_carries_step_fields_and_bookkeeping(self, harness):
        await advance_through(harness.wizard, 2)
        op, submission_id, fields = harness.store.writes[1]
        assert op == "update"
        assert submission_id == harness.wizard.submission_id
        assert set(fields) == {
            "first_name", "last_name", "nickname", "cell_phone", "personal_email",
            "employee_role", "current_step", "status", "updated_at", "generated_email",
        }
        assert fields["current_step"] == 3

    @pytest.mark.asyncio
    async def test_w9_timestamp_stamped_once(self, harness):
        await advance_through(harness.wizard, 9)
        _, _, fields = harness.store.writes[-1]
        stamp = fields["w9_submitted_at"]
        assert stamp is not None

        harness.wizard.jump_to(9)
        await harness.wizard.advance()
        _, _, again = harness.store.writes[-1]
        assert again["w9_submitted_at"] == stamp

    @pytest.mark.asyncio
    async def test_documents_timestamp_requires_both(self, harness):
        await advance_through(harness.wizard, 9)
        harness.wizard.update_fields({"social_security_card_url": "https://files.example/ssc.pdf"})
        await harness.wizard.advance()
        _, _, fields = harness.store.writes[-1]
        assert "documents_uploaded_at" not in fields


    @pytest.mark.asyncio
    async def test_edit_after_jump_back_is_submitted(self, harness):
        await advance_through(harness.wizard, 8)
        harness.wizard.update_fields({"w9_completed": False})
        assert (await harness.wizard.advance()).ok
        await advance_through(harness.wizard, FINAL_STEP - 1)
        assert harness.store.records[harness.wizard.submission_id]["w9_completed"] is False

        assert harness.wizard.jump_to(9).ok
        harness.wizard.update_fields({"w9_completed": True})
        assert harness.wizard.jump_to(FINAL_STEP).ok
        result = await harness.wizard.advance()

        assert result.ok
        record = harness.store.records[harness.wizard.submission_id]
        assert record["status"] == "submitted"
        assert record["w9_completed"] is True
        assert record["w9_submitted_at"] is not None

    @pytest.mark.asyncio
    async def test_edit_on_earlier_step_written_by_next_advance(self, harness):
        await advance_through(harness.wizard, 7)
        new_badge = "https://files.example/badge-photos/2.png"
        harness.wizard.jump_to(6)
        harness.wizard.update_fields({"badge_photo_url": new_badge})
        harness.wizard.jump_to(8)
        await harness.wizard.advance()
        _, _, fields = harness.store.writes[-1]
        assert fields["badge_photo_url"] == new_badge


class TestCompletion:
    @pytest.mark.asyncio
    async def test_status_never_regresses(self, harness):
        statuses = [harness.wizard.status]
        while not harness.wizard.completed:
            harness.wizard.update_fields(STEP_INPUT.get(harness.wizard.current_step, {}))
            result = await harness.wizard.advance()
            assert result.ok, result
            statuses.append(result.status)
            persisted = harness.store.records[harness.wizard.submission_id]["status"]
            statuses.append(SubmissionStatus(persisted))
        ranks = [s.rank for s in statuses]
        assert ranks == sorted(ranks)
        assert statuses[-1] == SubmissionStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_final_step_completes_and_dispatches(self, harness):
        results = await advance_through(harness.wizard, FINAL_STEP)
        final = results[-1]
        assert final.completed
        assert final.step == FINAL_STEP
        record = harness.store.records[harness.wizard.submission_id]
        assert record["status"] == "submitted"
        assert record["submitted_at"] is not None

        await harness.dispatcher.drain()
        assert harness.notifier.kinds() == ["onboarding_started", "onboarding_completed"]
        payload = harness.notifier.events[-1].payload
        assert payload["manager_email"] == "dana.whitfield@triguardroofing.com"
        assert payload["employee_email"] == "jane.doe@triguardroofing.com"
        assert payload["onboarding_team_email"] == "onboarding@triguardroofing.com"

    @pytest.mark.asyncio
    async def test_w9_incomplete_rejected_at_final_step(self, harness):
        await advance_through(harness.wizard, FINAL_STEP - 1)
        harness.wizard.update_fields({"w9_completed": False})
        writes_before = len(harness.store.writes)

        result = await harness.wizard.advance()

        assert not result.ok
        assert result.error_kind == "validation"
        assert "W-9" in result.errors["w9_completed"]
        assert not harness.wizard.completed
        assert harness.store.records[harness.wizard.submission_id]["status"] == "in_progress"
        assert len(harness.store.writes) == writes_before

    @pytest.mark.asyncio
    async def test_failed_completion_dispatch_still_succeeds(self):
        h = make_harness(notifier=FailingNotifier())
        results = await advance_through(h.wizard, FINAL_STEP)
        assert results[-1].ok
        assert results[-1].completed
        outcomes = await h.dispatcher.drain()
        assert all(not o.delivered for o in outcomes)
        assert h.store.records[h.wizard.submission_id]["status"] == "submitted"

    @pytest.mark.asyncio
    async def test_manager_lookup_failure_still_dispatches(self):
        h = make_harness(directory=BrokenDirectory())
        await advance_through(h.wizard, FINAL_STEP)
        await h.dispatcher.drain()
        payload = h.notifier.events[-1].payload
        assert h.notifier.kinds()[-1] == "onboarding_completed"
        assert payload["manager_email"] is None

    @pytest.mark.asyncio
    async def test_advance_after_completion_rejected(self, harness):
        await advance_through(harness.wizard, FINAL_STEP)
        result = await harness.wizard.advance()
        assert not result.ok
        assert result.error_kind == "completed"


class TestNavigation:
    def test_retreat_floor(self, harness):
        result = harness.wizard.retreat()
        assert result.ok
        assert result.step == 1

    @pytest.mark.asyncio
    async def test_retreat_does_not_persist(self, harness):
        await advance_through(harness.wizard, 2)
        writes = len(harness.store.writes)
        harness.wizard.retreat()
        assert harness.wizard.current_step == 2
        assert len(harness.store.writes) == writes

    @pytest.mark.asyncio
    async def test_jump_to_validated_steps_only(self, harness):
        await advance_through(harness.wizard, 3)
        assert harness.wizard.current_step == 4

        assert harness.wizard.jump_to(2).ok
        assert harness.wizard.current_step == 2
        assert harness.wizard.jump_to(4).ok

        rejected = harness.wizard.jump_to(5)
        assert not rejected.ok
        assert harness.wizard.current_step == 4

    def test_jump_out_of_range(self, harness):
        assert not harness.wizard.jump_to(0).ok
        assert not harness.wizard.jump_to(FINAL_STEP + 1).ok


class TestUpdateFields:
    def test_bookkeeping_keys_ignored(self, harness):
        harness.wizard.update_fields({"status": "completed", "current_step": 9, "id": "x"})
        assert harness.wizard.status == SubmissionStatus.DRAFT
        assert harness.wizard.current_step == 1
        assert "id" not in harness.wizard.values

    @pytest.mark.asyncio
    async def test_generated_email_immutable(self, harness):
        await advance_through(harness.wizard, 1)
        harness.wizard.update_fields({"generated_email": "boss@triguardroofing.com"})
        assert harness.wizard.generated_email == "jane.doe@triguardroofing.com"


class TestSaveProgress:
    @pytest.mark.asyncio
    async def test_requires_name_before_first_save(self, harness):
        result = await harness.wizard.save_progress()
        assert not result.ok
        assert result.error_kind == "validation"
        assert harness.store.writes == []

    @pytest.mark.asyncio
    async def test_saves_without_advancing(self, harness):
        harness.wizard.update_fields({"first_name": "Jane", "last_name": "Doe"})
        result = await harness.wizard.save_progress()
        assert result.ok
        assert result.step == 1
        assert result.status == SubmissionStatus.DRAFT
        assert harness.wizard.highest_validated_step == 0
        record = harness.store.records[result.submission_id]
        assert record["current_step"] == 1
        assert record["generated_email"] is None

    @pytest.mark.asyncio
    async def test_save_on_later_step_updates_draft(self, harness):
        await advance_through(harness.wizard, 3)
        harness.wizard.update_fields({"city": "Plano"})
        result = await harness.wizard.save_progress()
        assert result.ok
        assert result.step == 4
        assert harness.store.records[harness.wizard.submission_id]["city"] == "Plano"


class TestResume:
    @pytest.mark.asyncio
    async def test_resume_in_progress(self, harness):
        await advance_through(harness.wizard, 3)
        resumed = await OnboardingWizard.resume(harness.wizard.submission_id, **harness.deps())

        assert resumed.current_step == 4
        assert resumed.submission_id == harness.wizard.submission_id
        assert resumed.values["first_name"] == "Jane"
        assert resumed.generated_email == "jane.doe@triguardroofing.com"
        assert resumed.status == SubmissionStatus.IN_PROGRESS
        assert resumed.jump_to(2).ok
        assert not resumed.jump_to(5).ok

    @pytest.mark.asyncio
    async def test_resumed_wizard_updates_existing_draft(self, harness):
        await advance_through(harness.wizard, 3)
        resumed = await OnboardingWizard.resume(harness.wizard.submission_id, **harness.deps())
        resumed.update_fields(STEP_INPUT[4])
        result = await resumed.advance()
        assert result.ok
        assert len(harness.store.records) == 1
        assert len(harness.ledger) == 1

    @pytest.mark.asyncio
    async def test_resume_unknown_starts_fresh(self, harness):
        resumed = await OnboardingWizard.resume("missing", **harness.deps())
        assert resumed.submission_id is None
        assert resumed.current_step == 1
        assert not resumed.completed

    @pytest.mark.asyncio
    async def test_resume_submitted_is_completed(self, harness):
        await advance_through(harness.wizard, FINAL_STEP)
        resumed = await OnboardingWizard.resume(harness.wizard.submission_id, **harness.deps())
        assert resumed.completed
        result = await resumed.advance()
        assert result.error_kind == "completed"


class TestSnapshot:
    def test_bad_value_raises_domain_validation_error(self, harness):
        harness.wizard.update_fields({"shirt_size": "huge"})
        with pytest.raises(ValidationError) as exc_info:
            harness.wizard.snapshot()
        assert "shirt_size" in exc_info.value.errors
        assert exc_info.value.step == 1

    def test_valid_values_snapshot(self, harness):
        harness.wizard.update_fields(STEP_INPUT[1])
        submission = harness.wizard.snapshot()
        assert submission.first_name == "Jane"
        assert submission.id is None
