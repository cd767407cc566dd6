"""
Domain models for the video-analysis staging pipeline.

These models describe what an AI extraction looks like, how a coach's
edits are layered on top of it, and what ends up in the exercise library.
They have no dependencies on FastAPI, Snowflake, or the AI SDK.

Staged exercises are addressed by their position in the session's raw
exercise list. There are no synthetic ids for them: the index is the key
for both the edit overlays and the committed-id map.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SessionStatus(Enum):
    """
    Lifecycle states of a staging session.

    pending -> in_progress -> completed is the happy path. A session that
    outlives its expiry passes through expired on its way to completed,
    and stays expired only while some forced imports keep failing.
    """
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


OPEN_STATUSES = (SessionStatus.PENDING, SessionStatus.IN_PROGRESS)


class ExerciseType(Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    MOBILITY = "mobility"
    PLYOMETRIC = "plyometric"
    POWER = "power"


class ImportAction(Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    FAILED = "failed"


# Field names shared by RawExercise, EditOverlay and StagedExercise.
EXERCISE_FIELDS = (
    "name",
    "start_time",
    "end_time",
    "instructions",
    "coaching_cues",
    "screenshot_timestamps",
    "difficulty",
    "equipment",
)

ARRAY_FIELDS = frozenset({
    "instructions",
    "coaching_cues",
    "screenshot_timestamps",
    "equipment",
})


def _field_to_json(name: str, value: Any) -> Any:
    if name in ARRAY_FIELDS:
        return list(value)
    if name == "difficulty":
        return value.value
    return value


def _field_from_json(name: str, value: Any) -> Any:
    if name in ARRAY_FIELDS:
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ValueError(f"{name} must be a list of strings")
        return tuple(str(item) for item in value)
    if name == "difficulty":
        return value if isinstance(value, Difficulty) else Difficulty(str(value).lower())
    return str(value)


@dataclass(frozen=True)
class RawExercise:
    """
    One exercise exactly as the extractor produced it.

    Frozen because the raw extraction is never edited in place; edits
    live in an EditOverlay next to it.
    """
    name: str
    start_time: str = "00:00"
    end_time: str = "00:00"
    instructions: tuple[str, ...] = ()
    coaching_cues: tuple[str, ...] = ()
    screenshot_timestamps: tuple[str, ...] = ()
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    equipment: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Exercise name cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        return {name: _field_to_json(name, getattr(self, name)) for name in EXERCISE_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawExercise":
        values = {
            name: _field_from_json(name, data[name])
            for name in EXERCISE_FIELDS
            if data.get(name) is not None
        }
        if "name" not in values:
            raise ValueError("Exercise is missing a name")
        return cls(**values)


@dataclass(frozen=True)
class EditOverlay:
    """
    Sparse set of user edits for one exercise.

    A field left as None means "use the raw value". Array fields, when
    present, replace the raw array wholesale.
    """
    name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    instructions: Optional[tuple[str, ...]] = None
    coaching_cues: Optional[tuple[str, ...]] = None
    screenshot_timestamps: Optional[tuple[str, ...]] = None
    difficulty: Optional[Difficulty] = None
    equipment: Optional[tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.name is not None:
            name = self.name.strip()
            if not name:
                raise ValueError("Edited exercise name cannot be blank")
            # names are compared against the library untrimmed
            object.__setattr__(self, "name", name)

    @property
    def changed_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in EXERCISE_FIELDS
            if getattr(self, name) is not None
        }

    @property
    def is_empty(self) -> bool:
        return not self.changed_fields

    def to_dict(self) -> dict[str, Any]:
        return {
            name: _field_to_json(name, value)
            for name, value in self.changed_fields.items()
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditOverlay":
        unknown = set(data) - set(EXERCISE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown exercise fields in edit: {', '.join(sorted(unknown))}")
        return cls(**{
            name: _field_from_json(name, value)
            for name, value in data.items()
            if value is not None
        })


@dataclass(frozen=True)
class StagedExercise:
    """
    Raw exercise + overlay + commit state for one index.

    Never persisted as such; it's computed by the projector whenever the
    review screen or the import engine needs it.
    """
    original_index: int
    name: str
    start_time: str
    end_time: str
    instructions: tuple[str, ...]
    coaching_cues: tuple[str, ...]
    screenshot_timestamps: tuple[str, ...]
    difficulty: Difficulty
    equipment: tuple[str, ...]
    is_edited: bool = False
    is_saved: bool = False
    saved_exercise_id: Optional[str] = None

    def to_raw(self) -> RawExercise:
        return RawExercise(**{name: getattr(self, name) for name in EXERCISE_FIELDS})


@dataclass(frozen=True)
class TimeRemaining:
    hours: int
    minutes: int
    is_expired: bool
    is_warning: bool


def time_remaining(expires_at: Optional[datetime], now: Optional[datetime] = None) -> TimeRemaining:
    """
    Hours and minutes until a session expires.

    A session without an expiry is treated as already expired. The
    warning flag turns on in the final hour.
    """
    now = now or utc_now()
    if expires_at is None or expires_at <= now:
        return TimeRemaining(hours=0, minutes=0, is_expired=True, is_warning=True)

    remaining = expires_at - now
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    return TimeRemaining(
        hours=hours,
        minutes=minutes,
        is_expired=False,
        is_warning=hours < 1,
    )


@dataclass
class VideoAnalysisSession:
    """
    A time-boxed staging area for one video's extracted exercises.

    This is the aggregate root: it owns the raw exercises and their edit
    overlays until each index is committed to the library. Once an index
    is committed, the library card belongs to the library.
    """
    video_url: str
    exercises: tuple[RawExercise, ...] = ()
    id: UUID = field(default_factory=uuid4)
    owner_id: Optional[str] = None
    video_title: Optional[str] = None
    sport: Optional[str] = None
    total_duration: Optional[str] = None
    edited_exercises: dict[int, EditOverlay] = field(default_factory=dict)
    committed_exercise_ids: dict[int, str] = field(default_factory=dict)
    status: SessionStatus = SessionStatus.PENDING
    auto_imported: bool = False
    created_at: datetime = field(default_factory=utc_now)
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.exercises = tuple(self.exercises)
        for label, mapping in (
            ("Edited", self.edited_exercises),
            ("Committed", self.committed_exercise_ids),
        ):
            for index in mapping:
                if not 0 <= index < len(self.exercises):
                    raise ValueError(f"{label} exercise index {index} has no raw exercise")

    @classmethod
    def start(
        cls,
        video_url: str,
        exercises: list[RawExercise],
        ttl: timedelta,
        now: Optional[datetime] = None,
        **kwargs: Any,
    ) -> "VideoAnalysisSession":
        """Create a pending session that expires ttl after now."""
        now = now or utc_now()
        return cls(
            video_url=video_url,
            exercises=tuple(exercises),
            created_at=now,
            updated_at=now,
            expires_at=now + ttl,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def is_past_expiry(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) > self.expires_at

    def needs_expiry(self, now: Optional[datetime] = None) -> bool:
        """True when the expiry path still has work to do for this session."""
        if self.status == SessionStatus.EXPIRED:
            return True
        return self.is_open and self.is_past_expiry(now)

    def uncommitted_indices(self) -> list[int]:
        return [
            index for index in range(len(self.exercises))
            if index not in self.committed_exercise_ids
        ]

    def invalid_indices(self, indices: list[int]) -> list[int]:
        return sorted({i for i in indices if not 0 <= i < len(self.exercises)})

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utc_now()


@dataclass(frozen=True)
class Classification:
    """Type and tracked-metric flags inferred from an exercise name."""
    exercise_type: ExerciseType
    tracks_weight: bool
    tracks_reps: bool
    tracks_duration: bool
    tracks_distance: bool


@dataclass
class ExerciseCard:
    """
    A canonical library record.

    The name is the dedup key (compared case-insensitively). Cards are
    created on first encounter of a name and updated in place afterwards.
    """
    name: str
    id: str = field(default_factory=lambda: str(uuid4()))
    video_url: Optional[str] = None
    video_start_time: Optional[str] = None
    video_end_time: Optional[str] = None
    instructions: list[str] = field(default_factory=list)
    coaching_cues: list[str] = field(default_factory=list)
    screenshot_timestamps: list[str] = field(default_factory=list)
    difficulty: Optional[Difficulty] = None
    equipment: list[str] = field(default_factory=list)
    exercise_type: ExerciseType = ExerciseType.STRENGTH
    tracks_weight: bool = True
    tracks_reps: bool = True
    tracks_duration: bool = False
    tracks_distance: bool = False
    is_new: bool = False
    new_expires_at: Optional[datetime] = None
    source_session_id: Optional[UUID] = None
    owner_id: Optional[str] = None
    is_global: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ImportItemResult:
    """Outcome of committing one staged exercise."""
    index: int
    action: ImportAction
    library_id: Optional[str] = None
    name: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.action != ImportAction.FAILED


@dataclass
class CommitResult:
    """
    Per-item results of one commit call.

    Counts are always reported, even when some items failed, so callers
    can tell what actually happened.
    """
    items: list[ImportItemResult] = field(default_factory=list)
    cards: list[ExerciseCard] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return sum(1 for item in self.items if item.action == ImportAction.INSERTED)

    @property
    def updated_count(self) -> int:
        return sum(1 for item in self.items if item.action == ImportAction.UPDATED)

    @property
    def failed_count(self) -> int:
        return sum(1 for item in self.items if item.action == ImportAction.FAILED)

    @property
    def succeeded(self) -> list[ImportItemResult]:
        return [item for item in self.items if item.ok]


@dataclass
class Workout:
    id: str
    name: str
    program_id: Optional[str] = None


@dataclass
class WorkoutExercise:
    workout_id: str
    exercise_card_id: str
    exercise_order: int
    id: str = field(default_factory=lambda: str(uuid4()))
    prescribed_sets: list[dict[str, Any]] = field(default_factory=list)
    notes: str = ""


@dataclass
class WorkoutCommitResult:
    """Library commit plus the workout links it produced."""
    workout: Workout
    library: CommitResult
    workout_exercise_ids: list[str] = field(default_factory=list)
    link_errors: dict[int, str] = field(default_factory=dict)

    @property
    def added_count(self) -> int:
        return len(self.workout_exercise_ids)


@dataclass
class ExtractionResult:
    """Structured output of the video extractor."""
    video_title: str
    total_duration: str
    exercises: list[RawExercise]
    sport: Optional[str] = None

