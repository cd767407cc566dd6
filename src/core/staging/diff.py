"""
Edit overlays: computing them and combining them.

The client keeps a full edited copy of each exercise; what gets stored
is only the difference from the raw extraction. Overlays are always
computed against the raw exercise, never against a previous overlay, so
edits made after a partial save still show up in later commits.
"""

from typing import Optional, Union

from .models import ARRAY_FIELDS, EXERCISE_FIELDS, EditOverlay, RawExercise, StagedExercise


def _differs(field_name: str, original, edited) -> bool:
    if field_name in ARRAY_FIELDS:
        # order-sensitive, and list vs tuple must not count as a change
        return tuple(original) != tuple(edited)
    if field_name == "name":
        return original.strip() != edited.strip()
    return original != edited


def compute_overlay(
    original: RawExercise,
    edited: Union[StagedExercise, RawExercise],
) -> Optional[EditOverlay]:
    """
    Minimal overlay that turns original into edited.

    Returns None when every field is unchanged. Callers treat None as
    "nothing to persist", not as an error.
    """
    changes = {}
    for field_name in EXERCISE_FIELDS:
        edited_value = getattr(edited, field_name)
        if _differs(field_name, getattr(original, field_name), edited_value):
            if field_name in ARRAY_FIELDS:
                edited_value = tuple(edited_value)
            changes[field_name] = edited_value

    if not changes:
        return None
    return EditOverlay(**changes)


def normalize_overlay(overlay: Optional[EditOverlay], original: RawExercise) -> Optional[EditOverlay]:
    """
    Drop overlay fields that merely restate the raw value.

    Overlays that arrive from a client may carry untouched fields; this
    keeps stored overlays minimal and makes is_edited honest.
    """
    if overlay is None or overlay.is_empty:
        return None
    changes = {
        name: value
        for name, value in overlay.changed_fields.items()
        if _differs(name, getattr(original, name), value)
    }
    return EditOverlay(**changes) if changes else None
