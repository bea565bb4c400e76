"""Service container and in-process wizard session registry."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from triguard.core.config import AppSettings
from triguard.core.protocols import (
    IDraftStore,
    IEmailLedger,
    IFileStore,
    IReferenceDirectory,
    ITaskStore,
)
from triguard.identity.allocator import EmailAllocator
from triguard.notifications.dispatcher import SideEffectDispatcher
from triguard.notifications.webhook_notifier import WebhookNotifier
from triguard.persistence import create_persistence
from triguard.tasks.acknowledgment import TaskAcknowledgmentService
from triguard.uploads.documents import DocumentUploader
from triguard.wizard.sequencer import OnboardingWizard

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Live wizard sessions keyed by an opaque session id.

    A session untouched for ``idle_seconds`` is gone on its next lookup.
    Completed and idle sessions are pruned whenever a new one is added.
    """

    def __init__(
        self, idle_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[OnboardingWizard, float]] = {}

    def _expired(self, last_seen: float, now: float) -> bool:
        return now - last_seen > self._idle_seconds

    def prune(self) -> int:
        """Drop completed and idle sessions; returns how many were dropped."""
        now = self._clock()
        stale = [
            session_id
            for session_id, (wizard, last_seen) in self._sessions.items()
            if wizard.completed or self._expired(last_seen, now)
        ]
        for session_id in stale:
            del self._sessions[session_id]
        if stale:
            logger.info("Pruned %d onboarding sessions", len(stale))
        return len(stale)

    def add(self, wizard: OnboardingWizard) -> str:
        self.prune()
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = (wizard, self._clock())
        return session_id

    def get(self, session_id: str) -> OnboardingWizard | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        wizard, last_seen = entry
        now = self._clock()
        if self._expired(last_seen, now):
            del self._sessions[session_id]
            logger.info("Session %s expired after %.0fs idle", session_id, now - last_seen)
            return None
        self._sessions[session_id] = (wizard, now)
        return wizard

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass
class Services:
    settings: AppSettings
    draft_store: IDraftStore
    email_ledger: IEmailLedger
    task_store: ITaskStore
    directory: IReferenceDirectory
    file_store: IFileStore
    dispatcher: SideEffectDispatcher
    cache: object | None = None
    sessions: SessionRegistry = field(default_factory=SessionRegistry)

    @property
    def allocator(self) -> EmailAllocator:
        wizard = self.settings.wizard
        return EmailAllocator(self.email_ledger, wizard.company_domain, wizard.max_email_suffix)

    @property
    def tasks(self) -> TaskAcknowledgmentService:
        return TaskAcknowledgmentService(
            task_store=self.task_store, directory=self.directory, dispatcher=self.dispatcher,
        )

    @property
    def uploader(self) -> DocumentUploader:
        return DocumentUploader(self.file_store, self.settings.uploads)

    def new_wizard(self) -> OnboardingWizard:
        return OnboardingWizard(
            draft_store=self.draft_store,
            allocator=self.allocator,
            dispatcher=self.dispatcher,
            directory=self.directory,
            config=self.settings.wizard,
            notifications=self.settings.notifications,
        )

    async def resume_wizard(self, submission_id: str) -> OnboardingWizard:
        return await OnboardingWizard.resume(
            submission_id,
            draft_store=self.draft_store,
            allocator=self.allocator,
            dispatcher=self.dispatcher,
            directory=self.directory,
            config=self.settings.wizard,
            notifications=self.settings.notifications,
        )


def create_dispatcher(settings: AppSettings) -> SideEffectDispatcher:
    notify = settings.notifications
    notifier = WebhookNotifier(notify.base_url, api_token=notify.api_token, timeout=notify.timeout)
    return SideEffectDispatcher(notifier, timeout=settings.wizard.dispatch_timeout_seconds)


def create_services(settings: AppSettings | None = None) -> Services:
    """Wire production backends (DynamoDB, Redis, S3, webhooks)."""
    if settings is None:
        settings = AppSettings()
    backends = create_persistence(settings)
    logger.info("Services wired for environment %s", settings.environment)
    return Services(
        settings=settings,
        draft_store=backends.draft_store,
        email_ledger=backends.email_ledger,
        task_store=backends.task_store,
        directory=backends.directory,
        file_store=backends.file_store,
        dispatcher=create_dispatcher(settings),
        cache=backends.cache,
        sessions=SessionRegistry(settings.wizard.session_idle_seconds),
    )
