"""
Snowflake repository for the workout tables touched by add-to-workout.

Only what the import needs is modelled: finding a workout and appending
exercises to it. Programs and sets live elsewhere.
"""

import copy
import json
import logging
from typing import Optional

from src.core.staging.models import Workout, WorkoutExercise

from ..client import SnowflakeConnection


logger = logging.getLogger(__name__)


class SnowflakeWorkoutRepository:

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def get_workout(self, workout_id: str) -> Optional[Workout]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                "SELECT id, name, program_id FROM workouts WHERE id = %s",
                (workout_id,),
            )
            row = cursor.fetchone()
        finally:
            cursor.close()
        if not row:
            return None
        return Workout(id=str(row[0]), name=row[1], program_id=str(row[2]) if row[2] else None)

    def next_exercise_order(self, workout_id: str) -> int:
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                "SELECT COALESCE(MAX(exercise_order), 0) + 1 "
                "FROM workout_exercises WHERE workout_id = %s",
                (workout_id,),
            )
            row = cursor.fetchone()
        finally:
            cursor.close()
        return int(row[0]) if row else 1

    def has_exercise(self, workout_id: str, exercise_card_id: str) -> bool:
        cursor = self._conn.cursor()
        try:
            cursor.execute(
                "SELECT 1 FROM workout_exercises "
                "WHERE workout_id = %s AND exercise_card_id = %s LIMIT 1",
                (workout_id, exercise_card_id),
            )
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    def add_exercise(self, workout_exercise: WorkoutExercise) -> WorkoutExercise:
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                INSERT INTO workout_exercises (
                    id, workout_id, exercise_card_id, exercise_order,
                    prescribed_sets, notes
                )
                SELECT %s, %s, %s, %s, PARSE_JSON(%s), %s
            """, (
                workout_exercise.id,
                workout_exercise.workout_id,
                workout_exercise.exercise_card_id,
                workout_exercise.exercise_order,
                json.dumps(workout_exercise.prescribed_sets),
                workout_exercise.notes,
            ))
            self._conn.commit()
        finally:
            cursor.close()

        logger.debug(
            "Added exercise to workout",
            extra={
                "workout_id": workout_exercise.workout_id,
                "exercise_card_id": workout_exercise.exercise_card_id,
                "exercise_order": workout_exercise.exercise_order,
            }
        )
        return workout_exercise


class MockWorkoutRepository:
    """In-memory workouts for local development and tests."""

    def __init__(self, workouts: Optional[list[Workout]] = None) -> None:
        self._workouts: dict[str, Workout] = {w.id: w for w in workouts or []}
        self._exercises: list[WorkoutExercise] = []

    def add_workout(self, workout: Workout) -> None:
        self._workouts[workout.id] = workout

    def get_workout(self, workout_id: str) -> Optional[Workout]:
        return self._workouts.get(workout_id)

    def next_exercise_order(self, workout_id: str) -> int:
        orders = [e.exercise_order for e in self._exercises if e.workout_id == workout_id]
        return max(orders, default=0) + 1

    def has_exercise(self, workout_id: str, exercise_card_id: str) -> bool:
        return any(
            e.workout_id == workout_id and e.exercise_card_id == exercise_card_id
            for e in self._exercises
        )

    def add_exercise(self, workout_exercise: WorkoutExercise) -> WorkoutExercise:
        self._exercises.append(copy.deepcopy(workout_exercise))
        return workout_exercise

    def exercises_for(self, workout_id: str) -> list[WorkoutExercise]:
        return sorted(
            (e for e in self._exercises if e.workout_id == workout_id),
            key=lambda e: e.exercise_order,
        )
