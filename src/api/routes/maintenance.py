"""
Maintenance endpoints for scheduled jobs.

Both sweeps are parameterless and safe to run repeatedly. A scheduler
(cron, pg_cron, a GitHub Action) calls them; scripts/run_sweeps.py does
the same work directly against Snowflake.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel

from ...core.staging.library_sweep import clear_expired_new_flags
from ..dependencies import LifecycleManagerDep, MaintenanceUser, RepositoriesDep
from .staging import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class ExpiredSessionsResponse(CamelModel):
    processed: int
    exercises_imported: int
    failed: int


class ClearNewFlagsResponse(BaseModel):
    cleared: int
    exercises: list[str]


@router.post(
    "/expired-sessions",
    response_model=ExpiredSessionsResponse,
    status_code=status.HTTP_200_OK,
    summary="Auto-import expired sessions",
    description="Imports every still-unsaved exercise from sessions past their expiry.",
)
async def process_expired_sessions(
    api_key: MaintenanceUser,
    manager: LifecycleManagerDep,
) -> ExpiredSessionsResponse:
    report = manager.process_expired_sessions()
    return ExpiredSessionsResponse(
        processed=report.processed,
        exercises_imported=report.exercises_imported,
        failed=report.failed,
    )


@router.post(
    "/clear-new-flags",
    response_model=ClearNewFlagsResponse,
    status_code=status.HTTP_200_OK,
    summary="Clear expired 'New' badges",
    description="Clears the New flag on library exercises imported more than a week ago.",
)
async def clear_new_flags(
    api_key: MaintenanceUser,
    repositories: RepositoriesDep,
) -> ClearNewFlagsResponse:
    names = clear_expired_new_flags(repositories.library)
    return ClearNewFlagsResponse(cleared=len(names), exercises=names)
