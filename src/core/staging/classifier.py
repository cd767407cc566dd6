"""
Keyword classifier for exercise names.

Maps a name to an exercise type and the metrics a logger should track
for it. This is a best-effort heuristic: plain case-insensitive substring
matches against ordered keyword tables, first matching rule wins. It will
misclassify some compound names ("Medicine Ball Throw" contains "row"),
and that behavior is kept as-is so the tables stay easy to audit.
"""

from .models import Classification, ExerciseType


# Evaluated top to bottom; the first rule with a matching keyword wins.
EXERCISE_TYPE_RULES: tuple[tuple[tuple[str, ...], ExerciseType], ...] = (
    (("squat", "deadlift", "press"), ExerciseType.STRENGTH),
    (("run", "sprint", "jog"), ExerciseType.CARDIO),
    (("stretch", "mobility", "yoga"), ExerciseType.MOBILITY),
    (("plyo", "jump", "box"), ExerciseType.PLYOMETRIC),
    (("throw", "medicine ball", "slam"), ExerciseType.POWER),
)
DEFAULT_EXERCISE_TYPE = ExerciseType.STRENGTH

BODYWEIGHT_KEYWORDS = ("push up", "pull up", "bodyweight", "plank", "burpee")
REPLESS_KEYWORDS = ("plank", "hold", "carry", "run", "row")
DURATION_KEYWORDS = ("plank", "hold", "carry", "run", "row", "bike")
DISTANCE_KEYWORDS = ("run", "sprint", "row", "bike", "swim")


def _contains_any(name: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in name for keyword in keywords)


def infer_exercise_type(name: str) -> ExerciseType:
    lowered = name.lower()
    for keywords, exercise_type in EXERCISE_TYPE_RULES:
        if _contains_any(lowered, keywords):
            return exercise_type
    return DEFAULT_EXERCISE_TYPE


def classify(name: str) -> Classification:
    """Derive exercise type and tracking flags from an exercise name."""
    lowered = name.lower()
    return Classification(
        exercise_type=infer_exercise_type(lowered),
        tracks_weight=not _contains_any(lowered, BODYWEIGHT_KEYWORDS),
        tracks_reps=not _contains_any(lowered, REPLESS_KEYWORDS),
        tracks_duration=_contains_any(lowered, DURATION_KEYWORDS),
        tracks_distance=_contains_any(lowered, DISTANCE_KEYWORDS),
    )
