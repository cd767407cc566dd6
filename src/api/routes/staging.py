"""
Staging session API endpoints.

A coach pastes a video URL, the extractor proposes exercises, and the
coach reviews them here before anything reaches the library:

1. POST /sessions                      - extract and open a session
2. GET  /sessions/{id}                 - staged exercises + time remaining
3. PUT  /sessions/{id}/edits           - save progress without importing
4. POST /sessions/{id}/commit          - import selected exercises
5. POST /sessions/{id}/add-to-workout  - import and append to a workout

Request/response envelopes use camelCase; exercise fields keep their
snake_case names so the same shape round-trips through the library.
"""

import logging
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ...core.staging.errors import (
    ExtractionError,
    InvalidExerciseIndexError,
    InvalidVideoUrlError,
    QuotaExceededError,
    SessionClosedError,
    SessionNotFoundError,
    StagingError,
    WorkoutNotFoundError,
)
from ...core.staging.lifecycle import CommitOutcome
from ...core.staging.models import (
    EditOverlay,
    StagedExercise,
    VideoAnalysisSession,
    time_remaining,
    utc_now,
)
from ...core.staging.projector import project
from ...infrastructure.anthropic.client import RateLimitExceeded
from ..dependencies import AuthenticatedUser, LifecycleManagerDep, OwnerId

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


DifficultyValue = Literal["beginner", "intermediate", "advanced"]


class ExerciseEdit(BaseModel):
    """Fields a coach changed on one exercise. Omitted or null means unchanged."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    instructions: Optional[list[str]] = None
    coaching_cues: Optional[list[str]] = None
    screenshot_timestamps: Optional[list[str]] = None
    difficulty: Optional[DifficultyValue] = None
    equipment: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("name cannot be blank")
        return value

    def to_overlay(self) -> EditOverlay:
        return EditOverlay.from_dict(self.model_dump(exclude_none=True))


class StagedExerciseItem(BaseModel):
    """One exercise as the review screen shows it."""
    original_index: int
    name: str
    start_time: str
    end_time: str
    instructions: list[str]
    coaching_cues: list[str]
    screenshot_timestamps: list[str]
    difficulty: str
    equipment: list[str]
    is_edited: bool
    is_saved: bool
    saved_exercise_id: Optional[str] = None


class TimeRemainingItem(CamelModel):
    hours: int
    minutes: int
    is_expired: bool
    is_warning: bool


class AnalysisSummary(CamelModel):
    video_title: Optional[str]
    sport: Optional[str]
    total_duration: Optional[str]
    exercise_count: int


class CreateSessionRequest(CamelModel):
    video_url: str = Field(description="YouTube watch or youtu.be URL")
    sport: Optional[str] = Field(None, max_length=100, description="Sport context for the extractor")


class CreateSessionResponse(CamelModel):
    session_id: UUID
    expires_at: datetime
    analysis: AnalysisSummary
    exercises: list[StagedExerciseItem]


class SessionDetailResponse(CamelModel):
    session_id: UUID
    status: str
    video_url: str
    analysis: AnalysisSummary
    created_at: datetime
    expires_at: Optional[datetime]
    completed_at: Optional[datetime]
    auto_imported: bool
    time_remaining: TimeRemainingItem
    total_imported: int
    total_exercises: int
    exercises: list[StagedExerciseItem]


class SessionSummary(CamelModel):
    session_id: UUID
    status: str
    video_url: str
    video_title: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    time_remaining: TimeRemainingItem
    total_imported: int
    total_exercises: int


class SessionListResponse(CamelModel):
    sessions: list[SessionSummary]
    current_count: int
    max_allowed: int
    can_create: bool


class SaveEditsRequest(CamelModel):
    edited_exercises: dict[int, Optional[ExerciseEdit]] = Field(
        description="Edits keyed by exercise index. Null clears the stored edits for that index."
    )


class CommitRequest(CamelModel):
    exercise_indices: list[int] = Field(min_length=1, description="Indices to import")
    edited_exercises: Optional[dict[int, Optional[ExerciseEdit]]] = None
    mark_complete: bool = Field(False, description="Client believes this commit finishes the session")


class AddToWorkoutRequest(CommitRequest):
    workout_id: str = Field(min_length=1)


class CommitItemResult(CamelModel):
    index: int
    library_id: Optional[str]
    action: str
    error: Optional[str] = None


class SavedExerciseItem(BaseModel):
    id: str
    name: str


class CommitResponse(CamelModel):
    inserted_count: int
    updated_count: int
    failed_count: int
    session_status: str
    total_imported: int
    total_exercises: int
    exercises: list[SavedExerciseItem]
    results: list[CommitItemResult]


class AddToWorkoutResponse(CommitResponse):
    workout_id: str
    program_id: Optional[str]
    added: int
    workout_exercise_ids: list[str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_http_exception(error: StagingError) -> HTTPException:
    """Map a staging error onto the HTTP status the client should act on."""
    if isinstance(error, QuotaExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": str(error),
                "currentCount": error.current,
                "maxAllowed": error.limit,
            },
        )
    if isinstance(error, RateLimitExceeded):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, ExtractionError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    if isinstance(error, (InvalidVideoUrlError, InvalidExerciseIndexError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, (SessionNotFoundError, WorkoutNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, SessionClosedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def _overlays(edits: Optional[dict[int, Optional[ExerciseEdit]]]) -> dict[int, Optional[EditOverlay]]:
    return {
        index: edit.to_overlay() if edit is not None else None
        for index, edit in (edits or {}).items()
    }


def _staged_item(exercise: StagedExercise) -> StagedExerciseItem:
    return StagedExerciseItem(
        original_index=exercise.original_index,
        name=exercise.name,
        start_time=exercise.start_time,
        end_time=exercise.end_time,
        instructions=list(exercise.instructions),
        coaching_cues=list(exercise.coaching_cues),
        screenshot_timestamps=list(exercise.screenshot_timestamps),
        difficulty=exercise.difficulty.value,
        equipment=list(exercise.equipment),
        is_edited=exercise.is_edited,
        is_saved=exercise.is_saved,
        saved_exercise_id=exercise.saved_exercise_id,
    )


def _staged_items(session: VideoAnalysisSession) -> list[StagedExerciseItem]:
    staged = project(session.exercises, session.edited_exercises, session.committed_exercise_ids)
    return [_staged_item(exercise) for exercise in staged]


def _analysis_summary(session: VideoAnalysisSession) -> AnalysisSummary:
    return AnalysisSummary(
        video_title=session.video_title,
        sport=session.sport,
        total_duration=session.total_duration,
        exercise_count=len(session.exercises),
    )


def _time_remaining(session: VideoAnalysisSession, now: datetime) -> TimeRemainingItem:
    if not session.is_open:
        # closed sessions have nothing left to count down
        return TimeRemainingItem(hours=0, minutes=0, is_expired=True, is_warning=False)
    remaining = time_remaining(session.expires_at, now)
    return TimeRemainingItem(
        hours=remaining.hours,
        minutes=remaining.minutes,
        is_expired=remaining.is_expired,
        is_warning=remaining.is_warning,
    )


def _commit_fields(outcome: CommitOutcome) -> dict:
    session, result = outcome.session, outcome.result
    return {
        "inserted_count": result.inserted_count,
        "updated_count": result.updated_count,
        "failed_count": result.failed_count,
        "session_status": session.status.value,
        "total_imported": len(session.committed_exercise_ids),
        "total_exercises": len(session.exercises),
        "exercises": [SavedExerciseItem(id=card.id, name=card.name) for card in result.cards],
        "results": [
            CommitItemResult(
                index=item.index,
                library_id=item.library_id,
                action=item.action.value,
                error=item.error,
            )
            for item in result.items
        ],
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/sessions",
    response_model=CreateSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Extract exercises from a video",
    description="Runs AI extraction on a YouTube video and opens a 24-hour staging session for review.",
)
async def create_session(
    request: CreateSessionRequest,
    api_key: AuthenticatedUser,
    owner_id: OwnerId,
    manager: LifecycleManagerDep,
) -> CreateSessionResponse:
    """
    Open a staging session for a video.

    Owners are limited to a few open sessions at a time; the quota check
    happens before extraction so a rejected request is cheap.
    """
    logger.info(
        "Creating staging session",
        extra={"video_url": request.video_url, "owner_id": owner_id}
    )

    try:
        session = await manager.create_session(
            video_url=request.video_url,
            sport=request.sport,
            owner_id=owner_id,
        )
    except StagingError as e:
        logger.warning(
            "Staging session not created",
            extra={"video_url": request.video_url, "error": str(e)}
        )
        raise _to_http_exception(e) from e

    return CreateSessionResponse(
        session_id=session.id,
        expires_at=session.expires_at,
        analysis=_analysis_summary(session),
        exercises=_staged_items(session),
    )


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List open sessions",
    description="The caller's pending and in-progress sessions, with their quota status.",
)
async def list_sessions(
    api_key: AuthenticatedUser,
    owner_id: OwnerId,
    manager: LifecycleManagerDep,
) -> SessionListResponse:
    now = utc_now()
    sessions, quota = manager.list_open(owner_id, now)

    return SessionListResponse(
        sessions=[
            SessionSummary(
                session_id=session.id,
                status=session.status.value,
                video_url=session.video_url,
                video_title=session.video_title,
                created_at=session.created_at,
                expires_at=session.expires_at,
                time_remaining=_time_remaining(session, now),
                total_imported=len(session.committed_exercise_ids),
                total_exercises=len(session.exercises),
            )
            for session in sessions
        ],
        current_count=quota.current,
        max_allowed=quota.limit,
        can_create=quota.can_create,
    )


@router.get(
    "/sessions/{session_id}",
    response_model=SessionDetailResponse,
    summary="Get session details",
    description="Staged exercises with edits applied. An expired session is finalized before it's returned.",
)
async def get_session(
    session_id: UUID,
    api_key: AuthenticatedUser,
    manager: LifecycleManagerDep,
) -> SessionDetailResponse:
    now = utc_now()
    try:
        session = manager.load(session_id, now)
    except StagingError as e:
        raise _to_http_exception(e) from e

    return SessionDetailResponse(
        session_id=session.id,
        status=session.status.value,
        video_url=session.video_url,
        analysis=_analysis_summary(session),
        created_at=session.created_at,
        expires_at=session.expires_at,
        completed_at=session.completed_at,
        auto_imported=session.auto_imported,
        time_remaining=_time_remaining(session, now),
        total_imported=len(session.committed_exercise_ids),
        total_exercises=len(session.exercises),
        exercises=_staged_items(session),
    )


@router.put(
    "/sessions/{session_id}/edits",
    response_model=list[StagedExerciseItem],
    summary="Save review progress",
    description="Stores edits without importing anything. Edits replace whatever was stored for that index.",
)
async def save_edits(
    session_id: UUID,
    request: SaveEditsRequest,
    api_key: AuthenticatedUser,
    manager: LifecycleManagerDep,
) -> list[StagedExerciseItem]:
    try:
        session = manager.save_edits(session_id, _overlays(request.edited_exercises))
    except StagingError as e:
        raise _to_http_exception(e) from e

    return _staged_items(session)


@router.post(
    "/sessions/{session_id}/commit",
    response_model=CommitResponse,
    summary="Import exercises to the library",
    description="Imports the selected exercises. Per-exercise failures are reported, not raised.",
)
async def commit_exercises(
    session_id: UUID,
    request: CommitRequest,
    api_key: AuthenticatedUser,
    manager: LifecycleManagerDep,
) -> CommitResponse:
    logger.info(
        "Committing exercises",
        extra={"session_id": str(session_id), "indices": request.exercise_indices}
    )

    try:
        outcome = manager.commit(
            session_id,
            request.exercise_indices,
            edited=_overlays(request.edited_exercises),
            mark_complete=request.mark_complete,
        )
    except StagingError as e:
        raise _to_http_exception(e) from e

    return CommitResponse(**_commit_fields(outcome))


@router.post(
    "/sessions/{session_id}/add-to-workout",
    response_model=AddToWorkoutResponse,
    summary="Import exercises and add them to a workout",
    description="Same as commit, then appends each saved exercise to the end of the workout.",
)
async def add_to_workout(
    session_id: UUID,
    request: AddToWorkoutRequest,
    api_key: AuthenticatedUser,
    manager: LifecycleManagerDep,
) -> AddToWorkoutResponse:
    logger.info(
        "Adding exercises to workout",
        extra={
            "session_id": str(session_id),
            "workout_id": request.workout_id,
            "indices": request.exercise_indices,
        }
    )

    try:
        outcome = manager.commit_to_workout(
            session_id,
            request.exercise_indices,
            request.workout_id,
            edited=_overlays(request.edited_exercises),
            mark_complete=request.mark_complete,
        )
    except StagingError as e:
        raise _to_http_exception(e) from e

    workout_result = outcome.workout
    return AddToWorkoutResponse(
        **_commit_fields(outcome),
        workout_id=workout_result.workout.id,
        program_id=workout_result.workout.program_id,
        added=workout_result.added_count,
        workout_exercise_ids=workout_result.workout_exercise_ids,
    )
