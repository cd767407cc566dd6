"""
Exceptions raised by the staging pipeline.

Each one carries enough detail (counts, limits, timestamps) for the API
layer to tell the caller whether to retry, wait, or clean up.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID


class StagingError(Exception):
    """Base class for staging pipeline errors."""
    pass


class InvalidVideoUrlError(StagingError):
    """Raised when a video URL is missing or not a supported source."""
    pass


class ExtractionError(StagingError):
    """Raised when the AI extractor fails or returns something unusable."""
    pass


class QuotaExceededError(StagingError):
    """Raised when an owner already holds the maximum number of open sessions."""

    def __init__(self, current: int, limit: int) -> None:
        self.current = current
        self.limit = limit
        super().__init__(
            f"Maximum {limit} open staging sessions allowed ({current} open). "
            "Please complete or wait for existing sessions to expire."
        )


class SessionNotFoundError(StagingError):
    """Raised when a requested session doesn't exist."""

    def __init__(self, session_id: UUID) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionClosedError(StagingError):
    """Raised when edits or commits target a session that no longer accepts them."""

    def __init__(self, session_id: UUID, status: str) -> None:
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is {status} and no longer accepts changes")


class SessionExpiredError(SessionClosedError):
    """Raised when a session passed its expiry before the request arrived."""

    def __init__(self, session_id: UUID, status: str, expires_at: Optional[datetime]) -> None:
        super().__init__(session_id, status)
        self.expires_at = expires_at
        self.args = (
            f"Session {session_id} expired at "
            f"{expires_at.isoformat() if expires_at else 'an unknown time'}; "
            "remaining exercises were imported automatically",
        )


class InvalidExerciseIndexError(StagingError):
    """Raised when a request addresses exercise indices the session doesn't have."""

    def __init__(self, indices: list[int], exercise_count: int) -> None:
        self.indices = indices
        self.exercise_count = exercise_count
        super().__init__(
            f"Invalid exercise index {indices}; session has {exercise_count} exercises"
        )


class WorkoutNotFoundError(StagingError):
    """Raised when the add-to-workout target doesn't exist."""

    def __init__(self, workout_id: str) -> None:
        self.workout_id = workout_id
        super().__init__(f"Workout {workout_id} not found")
