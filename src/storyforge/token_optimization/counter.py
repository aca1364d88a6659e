"""
Token Estimator Module

Provides the single token estimation rule used for every budget, ceiling and
cost figure in the engine: roughly four characters per token.
"""

import logging
import math
from typing import Any

from ..errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CHARS_PER_TOKEN = 4


class TokenEstimator:
    """
    Character-based token estimator.

    Deterministic and side-effect free so the same text always costs the same.
    """

    def __init__(self, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> None:
        if chars_per_token < 1:
            raise ValidationError(
                "chars_per_token must be at least 1",
                details={"chars_per_token": chars_per_token},
            )
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        """
        Estimate tokens in text.

        Args:
            text: Text content

        Returns:
            ceil(len(text) / chars_per_token), 0 for empty text

        Raises:
            ValidationError: If text is not a string
        """
        if not isinstance(text, str):
            raise ValidationError(
                "Text to estimate must be a string",
                details={"type": type(text).__name__},
            )
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def max_chars(self, tokens: int) -> int:
        """Largest number of characters that still estimates to at most `tokens`."""
        return max(0, tokens) * self.chars_per_token

    def get_token_breakdown(self, text: str) -> dict[str, Any]:
        """
        Get token count with metadata.

        Args:
            text: Text content

        Returns:
            Dictionary with token count and metadata
        """
        token_count = self.estimate(text)

        return {
            "token_count": token_count,
            "character_count": len(text),
            "chars_per_token": len(text) / token_count if token_count > 0 else 0,
            "method": "estimated",
        }


# Singleton instance
_estimator_instance: TokenEstimator | None = None


def get_token_estimator() -> TokenEstimator:
    """
    Get singleton TokenEstimator instance.

    Returns:
        Shared TokenEstimator instance
    """
    global _estimator_instance
    if _estimator_instance is None:
        _estimator_instance = TokenEstimator()
    return _estimator_instance


def estimate_tokens(text: str) -> int:
    """
    Convenience function to estimate tokens.

    Args:
        text: Text content

    Returns:
        Estimated token count
    """
    return get_token_estimator().estimate(text)


def get_token_breakdown(text: str) -> dict[str, Any]:
    """Convenience function for a token breakdown of text."""
    return get_token_estimator().get_token_breakdown(text)
