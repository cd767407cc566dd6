"""
Storage protocols the staging core depends on.

The core never imports a database driver. Infrastructure provides
Snowflake-backed implementations and in-memory twins for tests and
local development; both satisfy these protocols structurally.
"""

from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from .models import ExerciseCard, VideoAnalysisSession, Workout, WorkoutExercise


class SessionStore(Protocol):
    """Persistence for staging sessions."""

    def get(self, session_id: UUID) -> VideoAnalysisSession:
        """Load a session. Raises SessionNotFoundError when missing."""
        ...

    def save(self, session: VideoAnalysisSession) -> None:
        """Insert or replace a session."""
        ...

    def count_open_sessions(self, owner_id: str, now: datetime) -> int:
        """Count the owner's pending/in-progress sessions that haven't expired."""
        ...

    def list_open_for_owner(self, owner_id: str, now: datetime) -> list[VideoAnalysisSession]:
        ...

    def list_expired(self, now: datetime) -> list[VideoAnalysisSession]:
        """Sessions whose expiry passed while pending, in progress, or still expired."""
        ...


class ExerciseLibrary(Protocol):
    """Persistence for canonical exercise cards."""

    def find_by_name(self, name: str) -> Optional[ExerciseCard]:
        """Case-insensitive exact match; the oldest card wins if several match."""
        ...

    def get(self, card_id: str) -> Optional[ExerciseCard]:
        ...

    def insert(self, card: ExerciseCard) -> ExerciseCard:
        ...

    def update(self, card: ExerciseCard) -> ExerciseCard:
        ...

    def clear_expired_new_flags(self, now: datetime) -> list[ExerciseCard]:
        """Clear is_new on cards whose new_expires_at is before now; return them."""
        ...


class WorkoutStore(Protocol):
    """The slice of workout persistence used by add-to-workout."""

    def get_workout(self, workout_id: str) -> Optional[Workout]:
        ...

    def next_exercise_order(self, workout_id: str) -> int:
        """One past the current highest exercise_order, starting at 1."""
        ...

    def has_exercise(self, workout_id: str, exercise_card_id: str) -> bool:
        ...

    def add_exercise(self, workout_exercise: WorkoutExercise) -> WorkoutExercise:
        ...
