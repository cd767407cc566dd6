"""
Staging projector: raw extraction + overlays + commit state -> staged view.

Output order always matches the raw list. Nothing here re-sorts, so an
index means the same exercise from the review screen all the way to the
import engine.
"""

from dataclasses import replace
from typing import Mapping, Optional, Sequence

from .models import EditOverlay, RawExercise, StagedExercise


def apply_overlay(raw: RawExercise, overlay: Optional[EditOverlay]) -> RawExercise:
    """Shallow-merge an overlay onto a raw exercise. Overlay arrays replace, never splice."""
    if overlay is None or overlay.is_empty:
        return raw
    return replace(raw, **overlay.changed_fields)


def stage_exercise(
    index: int,
    raw: RawExercise,
    overlay: Optional[EditOverlay] = None,
    saved_exercise_id: Optional[str] = None,
) -> StagedExercise:
    merged = apply_overlay(raw, overlay)
    return StagedExercise(
        original_index=index,
        name=merged.name,
        start_time=merged.start_time,
        end_time=merged.end_time,
        instructions=merged.instructions,
        coaching_cues=merged.coaching_cues,
        screenshot_timestamps=merged.screenshot_timestamps,
        difficulty=merged.difficulty,
        equipment=merged.equipment,
        is_edited=overlay is not None and not overlay.is_empty,
        is_saved=saved_exercise_id is not None,
        saved_exercise_id=saved_exercise_id,
    )


def project(
    raw: Sequence[RawExercise],
    overlays: Mapping[int, EditOverlay],
    committed: Mapping[int, str],
) -> list[StagedExercise]:
    """Build the staged view for every raw exercise, in original order."""
    return [
        stage_exercise(index, exercise, overlays.get(index), committed.get(index))
        for index, exercise in enumerate(raw)
    ]
