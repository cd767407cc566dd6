"""
Video-analysis staging: extraction review, edit overlays, and library import.

Contains the domain models, the session lifecycle, the import engine and
the pure helpers (diff, projector, classifier) they build on. The
review-screen reducer (view_state) is exported for client use.
"""

from .models import (
    CommitResult,
    Difficulty,
    EditOverlay,
    ExerciseCard,
    ExerciseType,
    ImportAction,
    RawExercise,
    SessionStatus,
    StagedExercise,
    VideoAnalysisSession,
    Workout,
    WorkoutExercise,
)
from .classifier import classify
from .diff import compute_overlay
from .projector import apply_overlay, project
from .importer import ImportEngine, WorkoutImporter
from .lifecycle import SessionLifecycleManager, SweepReport
from .quota import QuotaGuard, QuotaStatus
from .view_state import StagingViewState, build_commit_request, reduce

__all__ = [
    "CommitResult",
    "Difficulty",
    "EditOverlay",
    "ExerciseCard",
    "ExerciseType",
    "ImportAction",
    "RawExercise",
    "SessionStatus",
    "StagedExercise",
    "VideoAnalysisSession",
    "Workout",
    "WorkoutExercise",
    "classify",
    "compute_overlay",
    "apply_overlay",
    "project",
    "ImportEngine",
    "WorkoutImporter",
    "SessionLifecycleManager",
    "SweepReport",
    "QuotaGuard",
    "QuotaStatus",
    "StagingViewState",
    "build_commit_request",
    "reduce",
]
