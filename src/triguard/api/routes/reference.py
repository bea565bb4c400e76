"""Read-only team, manager and recruiter lookups for the assignment step."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from triguard.api.dependencies import get_services
from triguard.api.services import Services
from triguard.core.exceptions import ReferenceNotFoundError
from triguard.models.reference import Manager, Recruiter, Team

router = APIRouter(tags=["reference"])


@router.get("/teams")
async def list_teams(services: Services = Depends(get_services)) -> list[Team]:
    return await services.directory.list_teams()


@router.get("/managers")
async def list_managers(
    team_id: Optional[str] = Query(None),
    services: Services = Depends(get_services),
) -> list[Manager]:
    return await services.directory.list_managers(team_id)


@router.get("/managers/{manager_id}")
async def get_manager(manager_id: str, services: Services = Depends(get_services)) -> Manager:
    manager = await services.directory.get_manager(manager_id)
    if manager is None:
        raise ReferenceNotFoundError(f"Manager {manager_id!r} not found")
    return manager


@router.get("/recruiters")
async def list_recruiters(services: Services = Depends(get_services)) -> list[Recruiter]:
    return await services.directory.list_recruiters()
