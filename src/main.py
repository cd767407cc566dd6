"""
Exercise Staging API application.

create_app builds the FastAPI app; tests import the module-level app and
swap collaborators through app.dependency_overrides.

Run locally with:
    uvicorn src.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, maintenance, staging
from .config.settings import get_settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Review AI-extracted exercises before they reach the exercise library.

Send an API key in `X-API-Key` on every request, and the caller's user id
in `X-User-Id`. Sessions created without a user id are anonymous and are
not subject to the open-session limit.

1. `POST /api/v1/staging/sessions` extracts exercises from a YouTube video
   and opens a session that stays open for 24 hours.
2. `GET /api/v1/staging/sessions/{session_id}` shows the staged exercises;
   `PUT .../edits` saves review progress.
3. `POST .../commit` imports selected exercises into the library, and
   `POST .../add-to-workout` also appends them to a workout.

Whatever is still unsaved when a session expires is imported
automatically and flagged as New in the library.
"""

ROUTERS = (
    (health.router, "/health", "Health"),
    (staging.router, "/api/v1/staging", "Staging"),
    (maintenance.router, "/api/v1/maintenance", "Maintenance"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        "Exercise Staging API starting",
        extra={
            "version": __version__,
            "snowflake_mock_mode": settings.snowflake_mock_mode,
            "session_ttl_hours": settings.session_ttl_hours,
            "max_open_sessions": settings.max_open_sessions,
            "new_flag_ttl_days": settings.new_flag_ttl_days,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # not fatal: mock-mode development runs without credentials
        logger.error("Missing required configuration", extra={"missing_fields": missing_fields})

    yield

    logger.info("Exercise Staging API stopped")


async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure with its traceback and answer with a generic 500."""
    logger.error(
        "Unhandled exception",
        extra={"method": request.method, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router, prefix, tag in ROUTERS:
        app.include_router(router, prefix=prefix, tags=[tag])
    app.add_exception_handler(Exception, unhandled_exception)

    @app.get("/", include_in_schema=False)
    async def index():
        return {"service": settings.api_title, "version": __version__, "docs": app.docs_url}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.main:app", reload=True, log_level=get_settings().log_level.lower())
