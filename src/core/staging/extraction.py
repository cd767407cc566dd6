"""
Exercise extraction: prompt, URL validation, and response parsing.

The prompt lives here rather than in config because it defines the
shape of the data the rest of the pipeline consumes. Changing it changes
what the product does, so it's reviewed like code.

The extractor itself is a protocol. The core only needs something that
takes a video URL and returns the model's raw text.
"""

import json
import logging
import re
from typing import Any, Optional, Protocol

from .errors import ExtractionError, InvalidVideoUrlError
from .models import Difficulty, ExtractionResult, RawExercise


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ExerciseExtractor(Protocol):
    """Anything that can turn a training video into extraction JSON text."""

    async def extract_exercises(self, video_url: str, sport: Optional[str]) -> str:
        ...


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

EXTRACTION_PROMPT_TEMPLATE = """Analyze this exercise or athletic drill video. Provide a structured analysis.

{sport_context}

TASKS:
1. If the video contains MULTIPLE exercises, segment them with timestamps
2. For EACH exercise provide:
   - Exercise name
   - Start time (MM:SS)
   - End time (MM:SS)
   - Step-by-step instructions (3-5 steps, clear and concise)
   - Key coaching cues (2-3 tips)
   - Screenshot timestamps - identify 2-4 moments that best show proper form
   - Difficulty: beginner, intermediate, or advanced
   - Equipment needed

OUTPUT as valid JSON:
{{
  "video_title": "string",
  "sport": "string",
  "total_duration": "MM:SS",
  "exercises": [
    {{
      "name": "string",
      "start_time": "MM:SS",
      "end_time": "MM:SS",
      "instructions": ["step 1", "step 2"],
      "coaching_cues": ["cue 1", "cue 2"],
      "screenshot_timestamps": ["MM:SS", "MM:SS"],
      "difficulty": "string",
      "equipment": ["item1"]
    }}
  ]
}}

Respond ONLY with the JSON, no other text."""


def build_extraction_prompt(sport: Optional[str] = None) -> str:
    sport_context = f"This is a {sport} training video." if sport else ""
    return EXTRACTION_PROMPT_TEMPLATE.format(sport_context=sport_context)


# ---------------------------------------------------------------------------
# Validation and parsing
# ---------------------------------------------------------------------------

YOUTUBE_URL_PATTERN = re.compile(
    r"^https?://(www\.)?(youtube\.com/watch\?v=|youtu\.be/)[\w-]+"
)

_CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")


def validate_video_url(video_url: Optional[str]) -> str:
    """Return the trimmed URL, or raise InvalidVideoUrlError."""
    if not video_url or not video_url.strip():
        raise InvalidVideoUrlError("Missing required field: videoUrl")
    video_url = video_url.strip()
    if not YOUTUBE_URL_PATTERN.match(video_url):
        raise InvalidVideoUrlError("Invalid YouTube URL format")
    return video_url


def _string_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _parse_difficulty(value: Any, exercise_name: str) -> Difficulty:
    try:
        return Difficulty(str(value).strip().lower())
    except ValueError:
        logger.warning(
            "Unknown difficulty from extractor, using intermediate",
            extra={"exercise": exercise_name, "difficulty": value},
        )
        return Difficulty.INTERMEDIATE


def _parse_exercise(data: dict[str, Any]) -> RawExercise:
    name = str(data.get("name") or "").strip()
    if not name:
        raise ExtractionError("Extracted exercise is missing a name")
    return RawExercise(
        name=name,
        start_time=str(data.get("start_time") or "00:00"),
        end_time=str(data.get("end_time") or "00:00"),
        instructions=_string_list(data.get("instructions")),
        coaching_cues=_string_list(data.get("coaching_cues")),
        screenshot_timestamps=_string_list(data.get("screenshot_timestamps")),
        difficulty=_parse_difficulty(data.get("difficulty"), name),
        equipment=_string_list(data.get("equipment")),
    )


def parse_extraction(text: str) -> ExtractionResult:
    """
    Parse the extractor's response into an ExtractionResult.

    Models sometimes wrap JSON in markdown fences even when told not to,
    so fences are stripped before parsing.
    """
    cleaned = _CODE_FENCE_PATTERN.sub("", text or "").strip()
    if not cleaned:
        raise ExtractionError("No content returned from extractor")

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extractor returned invalid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise ExtractionError("Extractor response must be a JSON object")

    raw_exercises = payload.get("exercises")
    if not isinstance(raw_exercises, list) or not raw_exercises:
        raise ExtractionError("No exercises found in video")

    exercises = []
    for item in raw_exercises:
        if not isinstance(item, dict):
            raise ExtractionError("Each extracted exercise must be a JSON object")
        exercises.append(_parse_exercise(item))

    result = ExtractionResult(
        video_title=str(payload.get("video_title") or "Untitled video"),
        total_duration=str(payload.get("total_duration") or "00:00"),
        exercises=exercises,
        sport=payload.get("sport") or None,
    )
    logger.info(
        "Parsed extraction",
        extra={"video_title": result.video_title, "exercise_count": len(exercises)},
    )
    return result
