"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
Each Snowflake repository has an in-memory Mock* twin with the same
methods, used in mock mode and in tests.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..client import SnowflakeConnection
from .exercise_cards import MockExerciseLibraryRepository, SnowflakeExerciseLibraryRepository
from .sessions import MockSessionRepository, SnowflakeSessionRepository
from .workouts import MockWorkoutRepository, SnowflakeWorkoutRepository


@dataclass
class Repositories:
    sessions: Union[SnowflakeSessionRepository, MockSessionRepository]
    library: Union[SnowflakeExerciseLibraryRepository, MockExerciseLibraryRepository]
    workouts: Union[SnowflakeWorkoutRepository, MockWorkoutRepository]


def create_repositories(
    connection: Optional[SnowflakeConnection] = None,
    mock_mode: bool = False,
) -> Repositories:
    """
    Build the repository set for one connection, or in-memory ones in mock mode.
    """
    if mock_mode:
        return Repositories(
            sessions=MockSessionRepository(),
            library=MockExerciseLibraryRepository(),
            workouts=MockWorkoutRepository(),
        )
    if connection is None:
        raise ValueError("connection is required when not in mock mode")
    return Repositories(
        sessions=SnowflakeSessionRepository(connection),
        library=SnowflakeExerciseLibraryRepository(connection),
        workouts=SnowflakeWorkoutRepository(connection),
    )


__all__ = [
    "Repositories",
    "create_repositories",
    "MockExerciseLibraryRepository",
    "MockSessionRepository",
    "MockWorkoutRepository",
    "SnowflakeExerciseLibraryRepository",
    "SnowflakeSessionRepository",
    "SnowflakeWorkoutRepository",
]
