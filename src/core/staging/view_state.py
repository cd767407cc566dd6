"""
Review-screen state as a pure reducer.

A client reviewing a session keeps the staged exercises, its selection,
and which card is expanded. Modelling that as (state, action) -> state
keeps the selection rules testable without a UI: loading selects every
unsaved exercise, saving removes the saved ones from the selection, and
a commit request is "complete" when the selection covers everything
still unsaved.

The service itself never holds this state; it is exported from
src.core.staging for review clients that drive the staging endpoints.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Union
from uuid import UUID

from .diff import compute_overlay
from .models import EditOverlay, RawExercise, StagedExercise, VideoAnalysisSession
from .projector import project


@dataclass(frozen=True)
class StagingViewState:
    session_id: Optional[UUID] = None
    originals: tuple[RawExercise, ...] = ()
    exercises: tuple[StagedExercise, ...] = ()
    selected: frozenset[int] = frozenset()
    expanded_index: Optional[int] = None
    is_saving: bool = False
    error: Optional[str] = None

    @property
    def unsaved_indices(self) -> frozenset[int]:
        return frozenset(ex.original_index for ex in self.exercises if not ex.is_saved)

    @property
    def all_unsaved_selected(self) -> bool:
        unsaved = self.unsaved_indices
        return bool(unsaved) and self.selected == unsaved


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Load:
    session: VideoAnalysisSession


@dataclass(frozen=True)
class ToggleSelect:
    index: int


@dataclass(frozen=True)
class ToggleExpand:
    index: int


@dataclass(frozen=True)
class EditExercise:
    index: int
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class DeselectAll:
    pass


@dataclass(frozen=True)
class MarkSaved:
    """Indices the server reported as committed, with their library ids."""
    saved: Mapping[int, str]


@dataclass(frozen=True)
class SetSaving:
    is_saving: bool


@dataclass(frozen=True)
class SetError:
    message: Optional[str]


Action = Union[
    Load, ToggleSelect, ToggleExpand, EditExercise, SelectAll,
    DeselectAll, MarkSaved, SetSaving, SetError,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _load(session: VideoAnalysisSession) -> StagingViewState:
    exercises = tuple(project(session.exercises, session.edited_exercises, session.committed_exercise_ids))
    return StagingViewState(
        session_id=session.id,
        originals=session.exercises,
        exercises=exercises,
        selected=frozenset(ex.original_index for ex in exercises if not ex.is_saved),
    )


def _edit(state: StagingViewState, index: int, changes: Mapping[str, Any]) -> StagingViewState:
    if not 0 <= index < len(state.exercises):
        return state
    # from_dict validates field names and normalizes arrays and difficulty
    updates = EditOverlay.from_dict(dict(changes)).changed_fields
    edited = replace(state.exercises[index], **updates)
    edited = replace(edited, is_edited=compute_overlay(state.originals[index], edited) is not None)
    exercises = state.exercises[:index] + (edited,) + state.exercises[index + 1:]
    return replace(state, exercises=exercises)


def _mark_saved(state: StagingViewState, saved: Mapping[int, str]) -> StagingViewState:
    exercises = tuple(
        replace(ex, is_saved=True, saved_exercise_id=saved[ex.original_index])
        if ex.original_index in saved else ex
        for ex in state.exercises
    )
    return replace(
        state,
        exercises=exercises,
        selected=state.selected - frozenset(saved),
        is_saving=False,
        error=None,
    )


def reduce(state: StagingViewState, action: Action) -> StagingViewState:
    if isinstance(action, Load):
        return _load(action.session)

    if isinstance(action, ToggleSelect):
        if action.index not in state.unsaved_indices:
            return state
        if action.index in state.selected:
            return replace(state, selected=state.selected - {action.index})
        return replace(state, selected=state.selected | {action.index})

    if isinstance(action, ToggleExpand):
        expanded = None if state.expanded_index == action.index else action.index
        return replace(state, expanded_index=expanded)

    if isinstance(action, EditExercise):
        return _edit(state, action.index, action.changes)

    if isinstance(action, SelectAll):
        return replace(state, selected=state.unsaved_indices)

    if isinstance(action, DeselectAll):
        return replace(state, selected=frozenset())

    if isinstance(action, MarkSaved):
        return _mark_saved(state, action.saved)

    if isinstance(action, SetSaving):
        return replace(state, is_saving=action.is_saving, error=None if action.is_saving else state.error)

    if isinstance(action, SetError):
        return replace(state, error=action.message, is_saving=False)

    raise TypeError(f"Unknown staging action: {type(action).__name__}")


# ---------------------------------------------------------------------------
# Commit request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommitRequest:
    exercise_indices: list[int]
    edited_exercises: dict[int, EditOverlay] = field(default_factory=dict)
    mark_complete: bool = False


def build_commit_request(state: StagingViewState) -> CommitRequest:
    """Selected indices in ascending order, with overlays for the edited ones."""
    indices = sorted(state.selected)
    overlays = {}
    for index in indices:
        overlay = compute_overlay(state.originals[index], state.exercises[index])
        if overlay is not None:
            overlays[index] = overlay
    return CommitRequest(
        exercise_indices=indices,
        edited_exercises=overlays,
        mark_complete=state.all_unsaved_selected,
    )
