"""
Liveness and readiness probes.

/health answers as long as the process is up. /health/ready also checks
that configuration is complete and the session store answers a query,
and returns 503 otherwise so the instance is taken out of rotation.
"""

import logging
from typing import Callable, Literal, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import RepositoriesDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

CheckStatus = Literal["ok", "error"]


class LivenessResponse(BaseModel):
    status: Literal["ok"] = "ok"
    version: str
    mock_mode: bool


class DependencyCheck(BaseModel):
    name: str
    status: CheckStatus
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: Literal["ready", "not_ready"]
    version: str
    checks: list[DependencyCheck]


def _run_check(name: str, probe: Callable[[], Optional[str]]) -> DependencyCheck:
    """Run one probe. A returned string is an error; exceptions count as errors too."""
    try:
        problem = probe()
    except Exception as e:
        logger.error("Readiness probe failed", extra={"check": name, "error": str(e)})
        return DependencyCheck(name=name, status="error", error=str(e))
    if problem:
        return DependencyCheck(name=name, status="error", error=problem)
    return DependencyCheck(name=name, status="ok")


@router.get(
    "",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Always 200 while the process is running. Touches no external service.",
)
async def liveness(settings: SettingsDep) -> LivenessResponse:
    return LivenessResponse(version=__version__, mock_mode=settings.snowflake_mock_mode)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="200 when configuration is complete and the session store is reachable, 503 otherwise.",
    responses={503: {"model": ReadinessResponse, "description": "Not ready for traffic"}},
)
async def readiness(
    response: Response,
    settings: SettingsDep,
    repositories: RepositoriesDep,
) -> ReadinessResponse:
    def configuration() -> Optional[str]:
        missing = settings.validate_required_fields()
        return f"Missing required fields: {', '.join(missing)}" if missing else None

    def session_store() -> Optional[str]:
        repositories.sessions.ping()
        return None

    checks = [
        _run_check("configuration", configuration),
        _run_check("database", session_store),
    ]

    ready = all(check.status == "ok" for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed": [check.name for check in checks if check.status == "error"]},
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )
