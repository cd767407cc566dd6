"""
Import engine: staged exercises -> exercise library.

For each requested index the engine projects the staged exercise,
looks the name up in the library, and either updates the existing card
or inserts a new one flagged as "New". The library id is recorded in the
session's committed map so the review screen can show it as saved.

Lookup and write are two separate steps with no lock between them. Two
commits racing on the same new name can both insert; the library then
holds a duplicate, and later lookups pick the oldest card. This is a
known gap, not something the engine tries to hide.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .classifier import classify
from .errors import InvalidExerciseIndexError, WorkoutNotFoundError
from .models import (
    CommitResult,
    ExerciseCard,
    ImportAction,
    ImportItemResult,
    StagedExercise,
    VideoAnalysisSession,
    WorkoutCommitResult,
    WorkoutExercise,
    utc_now,
)
from .projector import stage_exercise
from .stores import ExerciseLibrary, WorkoutStore


logger = logging.getLogger(__name__)

DEFAULT_NEW_FLAG_TTL = timedelta(days=7)


def normalize_indices(session: VideoAnalysisSession, indices: Iterable[int]) -> list[int]:
    """De-duplicate and sort indices, rejecting any the session doesn't have."""
    requested = list(indices)
    invalid = session.invalid_indices(requested)
    if invalid:
        raise InvalidExerciseIndexError(invalid, len(session.exercises))
    return sorted(set(requested))


def _apply_exercise_fields(card: ExerciseCard, session: VideoAnalysisSession, staged: StagedExercise) -> None:
    classification = classify(staged.name)
    card.name = staged.name
    card.video_url = session.video_url
    card.video_start_time = staged.start_time
    card.video_end_time = staged.end_time
    card.instructions = list(staged.instructions)
    card.coaching_cues = list(staged.coaching_cues)
    card.screenshot_timestamps = list(staged.screenshot_timestamps)
    card.difficulty = staged.difficulty
    card.equipment = list(staged.equipment)
    card.exercise_type = classification.exercise_type
    card.tracks_weight = classification.tracks_weight
    card.tracks_reps = classification.tracks_reps
    card.tracks_duration = classification.tracks_duration
    card.tracks_distance = classification.tracks_distance


class ImportEngine:
    """
    Commits staged exercises to the library, one index at a time.

    A failure on one index is logged and reported in the result; the
    remaining indices are still processed.
    """

    def __init__(self, library: ExerciseLibrary, new_flag_ttl: timedelta = DEFAULT_NEW_FLAG_TTL) -> None:
        self._library = library
        self._new_flag_ttl = new_flag_ttl

    def commit(
        self,
        session: VideoAnalysisSession,
        indices: Iterable[int],
        now: Optional[datetime] = None,
    ) -> CommitResult:
        now = now or utc_now()
        ordered = normalize_indices(session, indices)
        result = CommitResult()

        for index in ordered:
            raw = session.exercises[index]
            try:
                exercise = stage_exercise(
                    index,
                    raw,
                    session.edited_exercises.get(index),
                    session.committed_exercise_ids.get(index),
                )
                card, action = self._upsert(session, exercise, now)
            except Exception as e:
                logger.error(
                    "Failed to import exercise",
                    extra={
                        "session_id": str(session.id),
                        "index": index,
                        "exercise": raw.name,
                        "error": str(e),
                    },
                )
                result.items.append(ImportItemResult(
                    index=index,
                    action=ImportAction.FAILED,
                    name=raw.name,
                    error=str(e),
                ))
                continue

            session.committed_exercise_ids[index] = card.id
            result.items.append(ImportItemResult(
                index=index,
                action=action,
                library_id=card.id,
                name=card.name,
            ))
            result.cards.append(card)

        logger.info(
            "Committed exercises to library",
            extra={
                "session_id": str(session.id),
                "inserted": result.inserted_count,
                "updated": result.updated_count,
                "failed": result.failed_count,
            },
        )
        return result

    def _upsert(
        self,
        session: VideoAnalysisSession,
        exercise: StagedExercise,
        now: datetime,
    ) -> tuple[ExerciseCard, ImportAction]:
        new_expires_at = now + self._new_flag_ttl
        existing = self._library.find_by_name(exercise.name)

        if existing is not None:
            # owner stays with whoever created the card
            _apply_exercise_fields(existing, session, exercise)
            existing.is_new = True
            existing.new_expires_at = new_expires_at
            existing.source_session_id = session.id
            existing.updated_at = now
            return self._library.update(existing), ImportAction.UPDATED

        card = ExerciseCard(
            name=exercise.name,
            is_new=True,
            new_expires_at=new_expires_at,
            source_session_id=session.id,
            owner_id=session.owner_id,
            is_global=True,
            created_at=now,
            updated_at=now,
        )
        _apply_exercise_fields(card, session, exercise)
        return self._library.insert(card), ImportAction.INSERTED


# ---------------------------------------------------------------------------
# Add-to-workout variant
# ---------------------------------------------------------------------------

DEFAULT_PRESCRIBED_SETS = (
    {"set_number": 1, "target_reps": 10, "target_weight": None, "target_rpe": None},
)


def default_prescribed_sets() -> list[dict]:
    return [dict(s) for s in DEFAULT_PRESCRIBED_SETS]


def import_note(video_title: Optional[str]) -> str:
    return f"Imported from video: {video_title or 'Unknown'}"


class WorkoutImporter:
    """
    Commits to the library, then appends the saved cards to a workout.

    Cards already linked to the workout are not linked twice. New links go
    after the workout's current last exercise.
    """

    def __init__(self, engine: ImportEngine, workouts: WorkoutStore) -> None:
        self._engine = engine
        self._workouts = workouts

    def commit(
        self,
        session: VideoAnalysisSession,
        indices: Iterable[int],
        workout_id: str,
        now: Optional[datetime] = None,
    ) -> WorkoutCommitResult:
        workout = self._workouts.get_workout(workout_id)
        if workout is None:
            raise WorkoutNotFoundError(workout_id)

        library_result = self._engine.commit(session, indices, now)
        result = WorkoutCommitResult(workout=workout, library=library_result)

        for item in library_result.succeeded:
            if self._workouts.has_exercise(workout.id, item.library_id):
                logger.debug(
                    "Exercise already in workout, skipping",
                    extra={"workout_id": workout.id, "exercise_card_id": item.library_id},
                )
                continue
            try:
                link = self._workouts.add_exercise(WorkoutExercise(
                    workout_id=workout.id,
                    exercise_card_id=item.library_id,
                    exercise_order=self._workouts.next_exercise_order(workout.id),
                    prescribed_sets=default_prescribed_sets(),
                    notes=import_note(session.video_title),
                ))
            except Exception as e:
                logger.error(
                    "Failed to add exercise to workout",
                    extra={
                        "workout_id": workout.id,
                        "exercise_card_id": item.library_id,
                        "error": str(e),
                    },
                )
                result.link_errors[item.index] = str(e)
                continue
            result.workout_exercise_ids.append(link.id)

        logger.info(
            "Added exercises to workout",
            extra={
                "session_id": str(session.id),
                "workout_id": workout.id,
                "added": result.added_count,
                "link_errors": len(result.link_errors),
            },
        )
        return result
