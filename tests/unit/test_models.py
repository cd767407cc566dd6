"""
Unit tests for the staging domain models.

These tests verify the core data rules without touching external
services (no API calls, no database).
"""

from datetime import timedelta

import pytest

from src.core.staging.models import (
    CommitResult,
    Difficulty,
    EditOverlay,
    ImportAction,
    ImportItemResult,
    RawExercise,
    SessionStatus,
    VideoAnalysisSession,
    time_remaining,
)


# ---------------------------------------------------------------------------
# RawExercise and EditOverlay Tests
# ---------------------------------------------------------------------------

class TestRawExercise:
    """Tests for the RawExercise value object."""

    def test_rejects_blank_name(self):
        """Every extracted exercise needs a name to dedup on."""
        with pytest.raises(ValueError, match="cannot be empty"):
            RawExercise(name="   ")

    def test_dict_round_trip_keeps_array_order(self, make_exercise):
        exercise = make_exercise(equipment=("rack", "barbell"))

        restored = RawExercise.from_dict(exercise.to_dict())

        assert restored == exercise
        assert restored.equipment == ("rack", "barbell")

    def test_from_dict_lowercases_difficulty(self):
        exercise = RawExercise.from_dict({"name": "Plank", "difficulty": "Beginner"})
        assert exercise.difficulty == Difficulty.BEGINNER

    def test_from_dict_defaults_missing_fields(self):
        exercise = RawExercise.from_dict({"name": "Plank", "equipment": None})

        assert exercise.start_time == "00:00"
        assert exercise.equipment == ()
        assert exercise.difficulty == Difficulty.INTERMEDIATE

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError, match="missing a name"):
            RawExercise.from_dict({"start_time": "00:10"})

    def test_from_dict_rejects_string_for_array(self):
        """A bare string would otherwise be split into characters."""
        with pytest.raises(ValueError, match="list of strings"):
            RawExercise.from_dict({"name": "Plank", "equipment": "mat"})


class TestEditOverlay:
    """Tests for the sparse edit overlay."""

    def test_empty_overlay(self):
        assert EditOverlay().is_empty
        assert EditOverlay().to_dict() == {}

    def test_to_dict_only_contains_set_fields(self):
        overlay = EditOverlay(name="Goblet Squat", equipment=("kettlebell",))
        assert overlay.to_dict() == {"name": "Goblet Squat", "equipment": ["kettlebell"]}

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Unknown exercise fields"):
            EditOverlay.from_dict({"name": "Squat", "tempo": "3-1-1"})

    def test_from_dict_treats_null_as_unset(self):
        overlay = EditOverlay.from_dict({"name": None, "difficulty": "advanced"})
        assert overlay.changed_fields == {"difficulty": Difficulty.ADVANCED}

    def test_rejects_blank_name(self):
        with pytest.raises(ValueError, match="cannot be blank"):
            EditOverlay(name="   ")

    def test_from_dict_rejects_blank_name(self):
        with pytest.raises(ValueError, match="cannot be blank"):
            EditOverlay.from_dict({"name": "\t"})

    def test_name_is_trimmed(self):
        assert EditOverlay(name="  Front Squat ").name == "Front Squat"


# ---------------------------------------------------------------------------
# Session Tests
# ---------------------------------------------------------------------------

class TestVideoAnalysisSession:
    """Tests for the VideoAnalysisSession aggregate."""

    def test_start_sets_expiry_from_ttl(self, make_exercise, now):
        session = VideoAnalysisSession.start(
            "https://youtu.be/abc123", [make_exercise()], timedelta(hours=24), now=now,
        )

        assert session.status == SessionStatus.PENDING
        assert session.created_at == now
        assert session.expires_at == now + timedelta(hours=24)
        assert session.is_open

    def test_rejects_overlay_for_missing_index(self, make_exercise):
        with pytest.raises(ValueError, match="Edited exercise index 3"):
            VideoAnalysisSession(
                video_url="https://youtu.be/abc123",
                exercises=(make_exercise(),),
                edited_exercises={3: EditOverlay(name="Ghost")},
            )

    def test_rejects_committed_id_for_missing_index(self, make_exercise):
        with pytest.raises(ValueError, match="Committed exercise index -1"):
            VideoAnalysisSession(
                video_url="https://youtu.be/abc123",
                exercises=(make_exercise(),),
                committed_exercise_ids={-1: "card-1"},
            )

    def test_uncommitted_indices(self, make_exercise):
        session = VideoAnalysisSession(
            video_url="https://youtu.be/abc123",
            exercises=tuple(make_exercise(f"Drill {i}") for i in range(4)),
            committed_exercise_ids={1: "a", 3: "b"},
        )
        assert session.uncommitted_indices() == [0, 2]

    def test_needs_expiry_only_when_open_and_past_expiry(self, make_exercise, now):
        session = VideoAnalysisSession.start(
            "https://youtu.be/abc123", [make_exercise()], timedelta(hours=1), now=now,
        )

        assert not session.needs_expiry(now + timedelta(minutes=59))
        assert session.needs_expiry(now + timedelta(hours=1, seconds=1))

        session.status = SessionStatus.COMPLETED
        assert not session.needs_expiry(now + timedelta(days=2))

    def test_expired_status_always_needs_expiry(self, make_exercise, now):
        """Sessions left expired by failed imports get retried."""
        session = VideoAnalysisSession.start(
            "https://youtu.be/abc123", [make_exercise()], timedelta(hours=1), now=now,
        )
        session.status = SessionStatus.EXPIRED
        assert session.needs_expiry(now)


class TestTimeRemaining:

    def test_hours_and_minutes(self, now):
        remaining = time_remaining(now + timedelta(hours=5, minutes=42, seconds=30), now)

        assert (remaining.hours, remaining.minutes) == (5, 42)
        assert not remaining.is_expired
        assert not remaining.is_warning

    def test_warning_in_final_hour(self, now):
        remaining = time_remaining(now + timedelta(minutes=59), now)
        assert remaining.is_warning
        assert not remaining.is_expired

    def test_missing_expiry_counts_as_expired(self, now):
        remaining = time_remaining(None, now)
        assert remaining.is_expired
        assert (remaining.hours, remaining.minutes) == (0, 0)

    def test_past_expiry(self, now):
        assert time_remaining(now - timedelta(seconds=1), now).is_expired


class TestCommitResult:

    def test_counts_by_action(self):
        result = CommitResult(items=[
            ImportItemResult(index=0, action=ImportAction.INSERTED, library_id="a"),
            ImportItemResult(index=1, action=ImportAction.UPDATED, library_id="b"),
            ImportItemResult(index=2, action=ImportAction.FAILED, error="boom"),
            ImportItemResult(index=3, action=ImportAction.INSERTED, library_id="c"),
        ])

        assert result.inserted_count == 2
        assert result.updated_count == 1
        assert result.failed_count == 1
        assert [item.index for item in result.succeeded] == [0, 1, 3]
