"""
Unit tests for the exercise-name classifier.

The classifier is a plain keyword lookup, so these tests pin down its
table order and its known substring quirks.
"""

import pytest

from src.core.staging.classifier import classify, infer_exercise_type
from src.core.staging.models import ExerciseType


class TestInferExerciseType:

    @pytest.mark.parametrize("name, expected", [
        ("Front Squat", ExerciseType.STRENGTH),
        ("Romanian Deadlift", ExerciseType.STRENGTH),
        ("Hill Sprint", ExerciseType.CARDIO),
        ("Hip Mobility Flow", ExerciseType.MOBILITY),
        ("Box Jump", ExerciseType.PLYOMETRIC),
        ("Rotational Slam", ExerciseType.POWER),
        ("Bicep Curl", ExerciseType.STRENGTH),
    ])
    def test_keyword_tables(self, name, expected):
        assert infer_exercise_type(name) == expected

    def test_first_matching_rule_wins(self):
        """'Jump Squat' hits the strength rule before the plyometric one."""
        assert infer_exercise_type("Jump Squat") == ExerciseType.STRENGTH

    def test_case_insensitive(self):
        assert infer_exercise_type("BOX JUMP") == ExerciseType.PLYOMETRIC


class TestClassify:

    def test_barbell_lift(self):
        result = classify("Front Squat")

        assert result.exercise_type == ExerciseType.STRENGTH
        assert result.tracks_weight
        assert result.tracks_reps
        assert not result.tracks_duration
        assert not result.tracks_distance

    def test_medicine_ball_throw_matches_row(self):
        """'throw' contains 'row', so it's tracked like a rowing piece."""
        result = classify("Medicine Ball Throw")

        assert result.exercise_type == ExerciseType.POWER
        assert result.tracks_weight
        assert not result.tracks_reps
        assert result.tracks_duration
        assert result.tracks_distance

    def test_carry_tracks_duration_not_reps(self):
        result = classify("Farmers Carry")

        assert result.tracks_duration
        assert not result.tracks_reps
        assert not result.tracks_distance

    def test_bodyweight_keywords_need_exact_substring(self):
        assert not classify("Push Up").tracks_weight
        assert classify("Pushup").tracks_weight

    def test_plank_is_a_timed_bodyweight_hold(self):
        result = classify("Side Plank")

        assert not result.tracks_weight
        assert not result.tracks_reps
        assert result.tracks_duration
