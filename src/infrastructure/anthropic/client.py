"""
Claude-backed exercise extractor.

AnthropicExerciseExtractor satisfies core.staging.extraction.ExerciseExtractor.
It owns the Messages API call and the mapping of SDK failures onto
ExtractionError subclasses; prompt wording and parsing of the reply stay
in the core.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import anthropic
from anthropic import APIError, RateLimitError

from src.core.staging.errors import ExtractionError
from src.core.staging.extraction import build_extraction_prompt


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.2

EXTRACTION_SYSTEM_PROMPT = (
    "You are a strength and conditioning coach cataloguing training videos. "
    "You return only valid JSON matching the requested schema."
)


class AnthropicClientError(ExtractionError):
    """The Messages API call failed or returned nothing usable."""


class RateLimitExceeded(AnthropicClientError):
    """Anthropic answered 429; the caller should retry later."""


@dataclass
class AnthropicConfig:
    api_key: str
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("api_key must not be empty")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if self.temperature < 0 or self.temperature > 1:
            raise ValueError(f"temperature must be within [0, 1], got {self.temperature}")


class AnthropicExerciseExtractor:
    """ExerciseExtractor backed by Claude."""

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key)

    async def extract_exercises(self, video_url: str, sport: Optional[str] = None) -> str:
        """
        Ask the model for the structured exercise breakdown of a video.

        Returns the raw reply text; parsing and validation happen in the
        core so every extractor is held to the same rules.
        """
        prompt = f"{build_extraction_prompt(sport)}\n\nVideo: {video_url}"

        try:
            message = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=EXTRACTION_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except RateLimitError as e:
            logger.warning("Claude rate limited extraction", extra={"video_url": video_url})
            raise RateLimitExceeded("Extraction is rate limited, try again shortly") from e
        except APIError as e:
            logger.error(
                "Claude extraction request failed",
                extra={
                    "video_url": video_url,
                    "status": getattr(e, "status_code", None),
                    "error": str(e),
                },
            )
            raise AnthropicClientError(f"Claude request failed: {e.message}") from e

        text = _joined_text(message)
        if not text:
            raise AnthropicClientError("Claude returned no text for the extraction")
        logger.info(
            "Extraction reply received",
            extra={"video_url": video_url, "model": self._config.model, "chars": len(text)},
        )
        return text


def _joined_text(message) -> str:
    # tool_use and other non-text blocks carry no `text`
    return "\n".join(
        block.text for block in (message.content or []) if hasattr(block, "text")
    )


def create_anthropic_extractor(
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> AnthropicExerciseExtractor:
    """Build an extractor, falling back to ANTHROPIC_API_KEY when no key is passed."""
    api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise ValueError("No Anthropic key given and ANTHROPIC_API_KEY is unset")

    return AnthropicExerciseExtractor(
        AnthropicConfig(api_key=api_key, model=model, max_tokens=max_tokens, temperature=temperature)
    )
