"""DynamoDB backends for drafts, the email ledger, tasks and reference data.

Every table uses a ``PK``/``SK`` string key pair. Uniqueness guarantees
(one ledger row per address, one assignment per task/submission pair) come
from conditional writes, never from read-then-write checks.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from triguard.core.exceptions import PersistenceError, SubmissionNotFoundError
from triguard.models.reference import Manager, Recruiter, Team
from triguard.models.submission import OnboardingSubmission
from triguard.models.tasks import EmailAddressRecord, Task, TaskAssignment

logger = logging.getLogger(__name__)

SUBMISSIONS_TABLE = "triguard-onboarding-submissions"
EMAIL_TABLE = "triguard-email-addresses"
TASKS_TABLE = "triguard-tasks"
ASSIGNMENTS_TABLE = "triguard-task-assignments"
DIRECTORY_TABLE = "triguard-directory"

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED


def _to_attribute(value: Any) -> Any:
    """Coerce a Python value into something boto3 will serialize."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_attribute(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_attribute(v) for v in value]
    return value


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        else:
            out[k] = v
    return out


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in _decode_decimals(item).items() if k not in ("PK", "SK")}


class _DynamoDBTables:
    """Shared boto3 resource handling for the backends below."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(f"{base}{self._table_suffix}")


# ---------------------------------------------------------------------------
# Draft Store
# ---------------------------------------------------------------------------

class DynamoDBDraftStore(_DynamoDBTables):
    """Production IDraftStore: one item per submission, ``SUBMISSION#{id}`` / ``PROFILE``."""

    def _key(self, submission_id: str) -> dict[str, str]:
        return {"PK": f"SUBMISSION#{submission_id}", "SK": "PROFILE"}

    def _put_new(self, submission_id: str, fields: dict[str, Any]) -> None:
        item = {k: _to_attribute(v) for k, v in fields.items() if k != "id"}
        item.update(self._key(submission_id), id=submission_id)
        self._table(SUBMISSIONS_TABLE).put_item(
            Item=item, ConditionExpression="attribute_not_exists(PK)",
        )

    def _update(self, submission_id: str, fields: dict[str, Any]) -> None:
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        clauses: list[str] = []
        for i, (name, value) in enumerate(fields.items()):
            if name in ("id", "PK", "SK"):
                continue
            names[f"#f{i}"] = name
            values[f":v{i}"] = _to_attribute(value)
            clauses.append(f"#f{i} = :v{i}")
        if not clauses:
            return
        self._table(SUBMISSIONS_TABLE).update_item(
            Key=self._key(submission_id),
            UpdateExpression="SET " + ", ".join(clauses),
            ConditionExpression="attribute_exists(PK)",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )

    async def create_draft(self, submission_id: str, fields: dict[str, Any]) -> str:
        """Put a new submission under ``submission_id``.

        A repeated create for the same id (a retry after a timed-out attempt
        that still committed) is applied as an update instead of a second item.
        """
        try:
            await asyncio.to_thread(self._put_new, submission_id, fields)
        except ClientError as exc:
            if not _is_condition_failure(exc):
                raise PersistenceError(
                    f"DynamoDB create failed for submission={submission_id!r}: {exc}"
                ) from exc
            logger.info("Submission %s already exists; applying create as update", submission_id)
            await self.update_draft(submission_id, fields)
        return submission_id

    async def update_draft(self, submission_id: str, fields: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._update, submission_id, fields)
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise SubmissionNotFoundError(submission_id) from exc
            raise PersistenceError(
                f"DynamoDB update failed for submission={submission_id!r}: {exc}"
            ) from exc

    async def load_draft(self, submission_id: str) -> OnboardingSubmission | None:
        try:
            resp = await asyncio.to_thread(
                self._table(SUBMISSIONS_TABLE).get_item, Key=self._key(submission_id)
            )
        except ClientError as exc:
            raise PersistenceError(
                f"DynamoDB read failed for submission={submission_id!r}: {exc}"
            ) from exc
        item = resp.get("Item")
        if item is None:
            return None
        return OnboardingSubmission.model_validate(_strip_keys(item))


# ---------------------------------------------------------------------------
# Email Ledger
# ---------------------------------------------------------------------------

class DynamoDBEmailLedger(_DynamoDBTables):
    """Production IEmailLedger keyed by ``EMAIL#{address}``."""

    def _key(self, email: str) -> dict[str, str]:
        return {"PK": f"EMAIL#{email.lower()}", "SK": "LEDGER"}

    async def get(self, email: str) -> EmailAddressRecord | None:
        try:
            resp = await asyncio.to_thread(
                self._table(EMAIL_TABLE).get_item, Key=self._key(email)
            )
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB ledger read failed for {email!r}: {exc}") from exc
        item = resp.get("Item")
        return EmailAddressRecord.model_validate(_strip_keys(item)) if item else None

    async def exists(self, email: str) -> bool:
        return await self.get(email) is not None

    async def insert_if_absent(self, record: EmailAddressRecord) -> bool:
        item = {k: _to_attribute(v) for k, v in record.model_dump().items()}
        item.update(self._key(record.email))
        try:
            await asyncio.to_thread(
                self._table(EMAIL_TABLE).put_item,
                Item=item,
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            raise PersistenceError(
                f"DynamoDB ledger write failed for {record.email!r}: {exc}"
            ) from exc
        return True


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class DynamoDBTaskStore(_DynamoDBTables):
    """Production ITaskStore.

    Tasks live under ``MANAGER#{manager}#TEAM#{team}`` / ``TASK#{id}``;
    assignments under ``SUBMISSION#{submission}`` / ``TASK#{task}``.
    """

    @staticmethod
    def _task_pk(manager_id: str, team_id: str) -> str:
        return f"MANAGER#{manager_id}#TEAM#{team_id}"

    @staticmethod
    def _assignment_key(task_id: str, submission_id: str) -> dict[str, str]:
        return {"PK": f"SUBMISSION#{submission_id}", "SK": f"TASK#{task_id}"}

    async def list_active_tasks(self, manager_id: str, team_id: str) -> list[Task]:
        try:
            resp = await asyncio.to_thread(
                self._table(TASKS_TABLE).query,
                KeyConditionExpression=Key("PK").eq(self._task_pk(manager_id, team_id)),
                FilterExpression=Attr("is_active").eq(True),
            )
        except ClientError as exc:
            raise PersistenceError(
                f"DynamoDB task query failed for manager={manager_id!r}, team={team_id!r}: {exc}"
            ) from exc
        tasks = [Task.model_validate(_strip_keys(i)) for i in resp.get("Items", [])]
        return sorted(tasks, key=lambda t: (t.created_at or datetime.min.replace(tzinfo=timezone.utc)))

    async def create_task(self, task: Task) -> Task:
        item = {k: _to_attribute(v) for k, v in task.model_dump().items()}
        item.update(PK=self._task_pk(task.manager_id, task.team_id), SK=f"TASK#{task.id}")
        try:
            await asyncio.to_thread(self._table(TASKS_TABLE).put_item, Item=item)
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB task write failed for {task.id!r}: {exc}") from exc
        return task

    async def get_assignment(self, task_id: str, submission_id: str) -> TaskAssignment | None:
        try:
            resp = await asyncio.to_thread(
                self._table(ASSIGNMENTS_TABLE).get_item,
                Key=self._assignment_key(task_id, submission_id),
            )
        except ClientError as exc:
            raise PersistenceError(
                f"DynamoDB assignment read failed for task={task_id!r}: {exc}"
            ) from exc
        item = resp.get("Item")
        return TaskAssignment.model_validate(_strip_keys(item)) if item else None

    async def insert_assignment_if_absent(self, assignment: TaskAssignment) -> bool:
        item = {k: _to_attribute(v) for k, v in assignment.model_dump().items() if v is not None}
        item.update(self._assignment_key(assignment.task_id, assignment.submission_id))
        try:
            await asyncio.to_thread(
                self._table(ASSIGNMENTS_TABLE).put_item,
                Item=item,
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            raise PersistenceError(
                f"DynamoDB assignment write failed for task={assignment.task_id!r}: {exc}"
            ) from exc
        return True

    async def set_acknowledged(
        self, task_id: str, submission_id: str, acknowledged_at: datetime
    ) -> bool:
        """Stamp an unacknowledged assignment; False when absent or already stamped."""
        try:
            await asyncio.to_thread(
                self._table(ASSIGNMENTS_TABLE).update_item,
                Key=self._assignment_key(task_id, submission_id),
                UpdateExpression="SET acknowledged_at = :at",
                ConditionExpression="attribute_exists(PK) AND attribute_not_exists(acknowledged_at)",
                ExpressionAttributeValues={":at": acknowledged_at.isoformat()},
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                return False
            raise PersistenceError(
                f"DynamoDB acknowledgment failed for task={task_id!r}: {exc}"
            ) from exc
        return True

    async def list_assignments(self, submission_id: str) -> list[TaskAssignment]:
        try:
            resp = await asyncio.to_thread(
                self._table(ASSIGNMENTS_TABLE).query,
                KeyConditionExpression=Key("PK").eq(f"SUBMISSION#{submission_id}"),
            )
        except ClientError as exc:
            raise PersistenceError(
                f"DynamoDB assignment query failed for submission={submission_id!r}: {exc}"
            ) from exc
        return [TaskAssignment.model_validate(_strip_keys(i)) for i in resp.get("Items", [])]


# ---------------------------------------------------------------------------
# Reference directory
# ---------------------------------------------------------------------------

class DynamoDBReferenceDirectory(_DynamoDBTables):
    """Production IReferenceDirectory with optional Redis cache-aside.

    Items are partitioned by kind (``TEAM``, ``MANAGER``, ``RECRUITER``) with
    the entity id as sort key, so listing a kind is a single query.
    """

    CACHE_TTL = 300  # 5 minutes

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None, cache: Any = None,
                 cache_ttl: int | None = None) -> None:
        super().__init__(table_suffix=table_suffix, region=region, endpoint_url=endpoint_url)
        self._cache = cache
        self._cache_ttl = cache_ttl or self.CACHE_TTL

    def _get_item(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        resp = self._table(DIRECTORY_TABLE).get_item(Key={"PK": kind, "SK": entity_id})
        item = resp.get("Item")
        return _strip_keys(item) if item else None

    def _query_kind(self, kind: str) -> list[dict[str, Any]]:
        resp = self._table(DIRECTORY_TABLE).query(KeyConditionExpression=Key("PK").eq(kind))
        return [_strip_keys(item) for item in resp.get("Items", [])]

    async def _cached_get(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        cache_key = f"directory:{kind.lower()}:{entity_id}"

        # Check cache first
        if self._cache is not None:
            cached = await asyncio.to_thread(self._cache.get, cache_key)
            if cached is not None:
                return json.loads(cached)

        try:
            item = await asyncio.to_thread(self._get_item, kind, entity_id)
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB directory read failed for {kind} {entity_id!r}: {exc}") from exc

        if item is not None and self._cache is not None:
            await asyncio.to_thread(self._cache.setex, cache_key, self._cache_ttl, json.dumps(item))
        return item

    async def _list(self, kind: str) -> list[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._query_kind, kind)
        except ClientError as exc:
            raise PersistenceError(f"DynamoDB directory query failed for {kind}: {exc}") from exc

    async def get_team(self, team_id: str) -> Team | None:
        item = await self._cached_get("TEAM", team_id)
        return Team.model_validate(item) if item else None

    async def get_manager(self, manager_id: str) -> Manager | None:
        item = await self._cached_get("MANAGER", manager_id)
        return Manager.model_validate(item) if item else None

    async def get_recruiter(self, recruiter_id: str) -> Recruiter | None:
        item = await self._cached_get("RECRUITER", recruiter_id)
        return Recruiter.model_validate(item) if item else None

    async def list_teams(self) -> list[Team]:
        teams = [Team.model_validate(i) for i in await self._list("TEAM")]
        return sorted((t for t in teams if t.is_active), key=lambda t: t.name)

    async def list_managers(self, team_id: str | None = None) -> list[Manager]:
        managers = [Manager.model_validate(i) for i in await self._list("MANAGER")]
        return sorted(
            (m for m in managers if m.is_active and (team_id is None or m.team_id == team_id)),
            key=lambda m: (m.last_name, m.first_name),
        )

    async def list_recruiters(self) -> list[Recruiter]:
        recruiters = [Recruiter.model_validate(i) for i in await self._list("RECRUITER")]
        return sorted((r for r in recruiters if r.is_active), key=lambda r: (r.last_name, r.first_name))

    async def update_activity(self, manager_id: str, at: datetime | None = None) -> None:
        stamp = (at or datetime.now(timezone.utc)).isoformat()
        try:
            await asyncio.to_thread(
                self._table(DIRECTORY_TABLE).update_item,
                Key={"PK": "MANAGER", "SK": manager_id},
                UpdateExpression="SET last_activity_at = :at",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={":at": stamp},
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                logger.warning("Activity update skipped; manager %s not found", manager_id)
                return
            raise PersistenceError(f"DynamoDB activity update failed for {manager_id!r}: {exc}") from exc
        if self._cache is not None:
            await asyncio.to_thread(self._cache.delete, f"directory:manager:{manager_id}")
