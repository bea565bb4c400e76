"""Task listing, acknowledgment and manager assignment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from triguard.api.dependencies import get_services, get_wizard
from triguard.api.services import Services
from triguard.core.exceptions import TaskGateError
from triguard.models.tasks import Task, TaskAssignment
from triguard.wizard.sequencer import OnboardingWizard

router = APIRouter(tags=["tasks"])


class AcknowledgeRequest(BaseModel):
    task_ids: list[str] = Field(default_factory=list)


class SessionTasks(BaseModel):
    tasks: list[Task]
    acknowledged: list[str]


class AssignRequest(BaseModel):
    manager_id: str
    team_id: str
    title: str
    description: str = ""
    submission_ids: list[str] = Field(default_factory=list)


class AssignResponse(BaseModel):
    task: Task
    assignments: list[TaskAssignment]


@router.get("")
async def list_tasks(
    manager_id: str = Query(...),
    team_id: str = Query(...),
    services: Services = Depends(get_services),
) -> list[Task]:
    return await services.tasks.list_assigned_tasks(manager_id, team_id)


@router.post("", status_code=201)
async def assign_task(body: AssignRequest, services: Services = Depends(get_services)) -> AssignResponse:
    submissions = []
    for submission_id in body.submission_ids:
        submission = await services.draft_store.load_draft(submission_id)
        if submission is not None:
            submissions.append(submission)
    task, assignments = await services.tasks.assign_task(
        manager_id=body.manager_id,
        team_id=body.team_id,
        title=body.title,
        description=body.description,
        submissions=submissions,
    )
    return AssignResponse(task=task, assignments=assignments)


@router.get("/sessions/{session_id}")
async def session_tasks(
    wizard: OnboardingWizard = Depends(get_wizard),
    services: Services = Depends(get_services),
) -> SessionTasks:
    submission = wizard.snapshot()
    if not submission.manager_id or not submission.team_id:
        raise TaskGateError("Select a team and manager before viewing tasks")
    service = services.tasks
    tasks = await service.list_assigned_tasks(submission.manager_id, submission.team_id)
    acknowledged: set[str] = set()
    if submission.id:
        acknowledged = await service.acknowledged_task_ids(submission.id)
    return SessionTasks(tasks=tasks, acknowledged=sorted(acknowledged))


@router.post("/sessions/{session_id}/acknowledge")
async def acknowledge(
    body: AcknowledgeRequest,
    wizard: OnboardingWizard = Depends(get_wizard),
    services: Services = Depends(get_services),
) -> list[TaskAssignment]:
    return await services.tasks.acknowledge(wizard.snapshot(), body.task_ids)
