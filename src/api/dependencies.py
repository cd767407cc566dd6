"""
FastAPI dependency injection.

Dependencies provide repositories, the extractor, and the staging
services to route handlers. Routes never build their own collaborators,
so tests can swap any of them through app.dependency_overrides.

Each request gets one Snowflake connection shared by all repositories.
In mock mode a single in-memory repository set is shared across requests
so data survives between calls.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.staging.extraction import ExerciseExtractor
from ..core.staging.importer import ImportEngine, WorkoutImporter
from ..core.staging.lifecycle import SessionLifecycleManager
from ..core.staging.quota import QuotaGuard
from ..infrastructure.anthropic.client import AnthropicConfig, AnthropicExerciseExtractor
from ..infrastructure.snowflake.client import create_snowflake_connection, snowflake_config_from_settings
from ..infrastructure.snowflake.repositories import Repositories, create_repositories

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared in-memory repositories for mock mode
_mock_repositories: Optional[Repositories] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def verify_maintenance_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: Annotated[str, Depends(verify_api_key)],
) -> str:
    """Restrict sweeps to maintenance keys when any are configured."""
    allowed = settings.maintenance_api_keys_list
    if allowed and api_key not in allowed:
        logger.warning("Maintenance call with non-maintenance key", extra={"key_prefix": api_key[:8]})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This API key cannot run maintenance tasks",
        )
    return api_key


def get_owner_id(x_user_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    """The caller's owner id, or None for anonymous sessions."""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


# ---------------------------------------------------------------------------
# Infrastructure Dependencies
# ---------------------------------------------------------------------------

def get_repositories(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[Repositories, None, None]:
    """
    Provide repositories for one request.

    A generator, so FastAPI closes the Snowflake connection after the
    response is sent.
    """
    global _mock_repositories

    if settings.snowflake_mock_mode:
        if _mock_repositories is None:
            _mock_repositories = create_repositories(mock_mode=True)
            logger.info("Created shared in-memory repositories")
        yield _mock_repositories
        return

    with create_snowflake_connection(config=snowflake_config_from_settings(settings)) as conn:
        logger.debug("Created repositories with Snowflake connection")
        yield create_repositories(conn)


def get_extractor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[ExerciseExtractor]:
    """
    Provide the Claude-backed extractor, or None when no API key is set.

    Returning None instead of failing keeps read-only endpoints usable
    without an Anthropic key; creating a session then fails with 502.
    """
    if not settings.anthropic_api_key:
        logger.warning("Anthropic API key not configured; extraction disabled")
        return None

    config = AnthropicConfig(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        max_tokens=settings.anthropic_max_tokens,
        temperature=settings.anthropic_temperature,
    )
    return AnthropicExerciseExtractor(config)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_import_engine(
    settings: Annotated[Settings, Depends(get_settings)],
    repositories: Annotated[Repositories, Depends(get_repositories)],
) -> ImportEngine:
    return ImportEngine(repositories.library, new_flag_ttl=settings.new_flag_ttl)


def get_quota_guard(
    settings: Annotated[Settings, Depends(get_settings)],
    repositories: Annotated[Repositories, Depends(get_repositories)],
) -> QuotaGuard:
    return QuotaGuard(repositories.sessions, max_open=settings.max_open_sessions)


def get_lifecycle_manager(
    settings: Annotated[Settings, Depends(get_settings)],
    repositories: Annotated[Repositories, Depends(get_repositories)],
    extractor: Annotated[Optional[ExerciseExtractor], Depends(get_extractor)],
    quota: Annotated[QuotaGuard, Depends(get_quota_guard)],
    engine: Annotated[ImportEngine, Depends(get_import_engine)],
) -> SessionLifecycleManager:
    """
    Provide the lifecycle manager wired to this request's repositories.

    The manager is stateless, so a new one per request costs nothing.
    """
    return SessionLifecycleManager(
        sessions=repositories.sessions,
        extractor=extractor,
        quota=quota,
        importer=engine,
        workout_importer=WorkoutImporter(engine, repositories.workouts),
        session_ttl=settings.session_ttl,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
MaintenanceUser = Annotated[str, Depends(verify_maintenance_key)]
OwnerId = Annotated[Optional[str], Depends(get_owner_id)]
RepositoriesDep = Annotated[Repositories, Depends(get_repositories)]
LifecycleManagerDep = Annotated[SessionLifecycleManager, Depends(get_lifecycle_manager)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
