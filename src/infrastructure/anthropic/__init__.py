"""
Anthropic Claude API client wrapper.

Implements the ExerciseExtractor protocol from core.staging.extraction.
"""

from .client import (
    AnthropicClientError,
    AnthropicConfig,
    AnthropicExerciseExtractor,
    RateLimitExceeded,
    create_anthropic_extractor,
)

__all__ = [
    "AnthropicClientError",
    "AnthropicConfig",
    "AnthropicExerciseExtractor",
    "RateLimitExceeded",
    "create_anthropic_extractor",
]
