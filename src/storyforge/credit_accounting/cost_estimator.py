"""
Cost Estimator Module

Pre-call token and USD estimates for story operations.

Estimates are advisory: they gate affordability checks before a generation
call, while charges always use the usage the provider actually reports.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ..errors import ValidationError
from .config import BillingConfig
from .models import TokenUsage

logger = logging.getLogger(__name__)


class OperationCategory(str, Enum):
    """Operations with a fixed token estimate."""

    FOUNDATION = "foundation"
    CHARACTER = "character"
    CHAPTER = "chapter"
    IMPROVEMENT = "improvement"


class ComplexityTier(str, Enum):
    """Request complexity used to pick a token estimate."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class StoryMode(str, Enum):
    """Story creation modes and the generation steps each runs up front."""

    STORY = "story"
    NOVEL = "novel"
    CHOICE_BOOK = "choice_book"
    AI_BUILDER = "ai_builder"


STORY_MODE_OPERATIONS: dict[StoryMode, tuple[OperationCategory, ...]] = {
    StoryMode.STORY: (OperationCategory.FOUNDATION, OperationCategory.CHAPTER),
    StoryMode.NOVEL: (
        OperationCategory.FOUNDATION,
        OperationCategory.CHAPTER,
        OperationCategory.CHAPTER,
        OperationCategory.CHAPTER,
    ),
    StoryMode.CHOICE_BOOK: (OperationCategory.FOUNDATION, OperationCategory.CHAPTER, OperationCategory.CHAPTER),
    StoryMode.AI_BUILDER: (OperationCategory.CHAPTER,),
}


@dataclass(frozen=True)
class TokenEstimate:
    """Expected token usage for one operation."""

    input_tokens: int
    output_tokens: int

    def to_usage(self) -> TokenUsage:
        return TokenUsage(input_tokens=self.input_tokens, output_tokens=self.output_tokens)


@dataclass
class ModelPricing:
    """Per-token pricing for the generation model."""

    model_name: str
    input_price_per_token: float  # USD
    output_price_per_token: float  # USD

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> tuple[float, float]:
        """
        Calculate input and output cost for token usage.

        Args:
            input_tokens: Number of input tokens
            output_tokens: Number of output tokens

        Returns:
            (input cost, output cost) in USD, computed exactly before conversion to float
        """
        input_cost = Decimal(str(self.input_price_per_token)) * input_tokens
        output_cost = Decimal(str(self.output_price_per_token)) * output_tokens
        return float(input_cost), float(output_cost)


class CostEstimator:
    """
    Fixed-table cost estimator for story operations.

    Unknown complexity tiers fall back to medium; unknown operations are rejected.
    """

    TOKEN_ESTIMATES: dict[OperationCategory, dict[ComplexityTier, TokenEstimate]] = {
        OperationCategory.FOUNDATION: {
            ComplexityTier.SIMPLE: TokenEstimate(input_tokens=200, output_tokens=800),
            ComplexityTier.MEDIUM: TokenEstimate(input_tokens=400, output_tokens=1500),
            ComplexityTier.COMPLEX: TokenEstimate(input_tokens=600, output_tokens=2500),
        },
        OperationCategory.CHARACTER: {
            ComplexityTier.SIMPLE: TokenEstimate(input_tokens=150, output_tokens=400),
            ComplexityTier.MEDIUM: TokenEstimate(input_tokens=250, output_tokens=700),
            ComplexityTier.COMPLEX: TokenEstimate(input_tokens=400, output_tokens=1200),
        },
        OperationCategory.CHAPTER: {
            ComplexityTier.SIMPLE: TokenEstimate(input_tokens=300, output_tokens=1000),
            ComplexityTier.MEDIUM: TokenEstimate(input_tokens=500, output_tokens=2000),
            ComplexityTier.COMPLEX: TokenEstimate(input_tokens=800, output_tokens=3500),
        },
        OperationCategory.IMPROVEMENT: {
            ComplexityTier.SIMPLE: TokenEstimate(input_tokens=200, output_tokens=300),
            ComplexityTier.MEDIUM: TokenEstimate(input_tokens=400, output_tokens=600),
            ComplexityTier.COMPLEX: TokenEstimate(input_tokens=600, output_tokens=1000),
        },
    }

    def __init__(self, config: BillingConfig | None = None) -> None:
        if config is None:
            from ..config import get_config

            config = get_config().billing
        self.config = config
        self.pricing = ModelPricing(
            model_name=self.config.model,
            input_price_per_token=self.config.input_token_cost,
            output_price_per_token=self.config.output_token_cost,
        )

    def get_token_estimate(
        self,
        operation_type: OperationCategory | str,
        complexity: ComplexityTier | str = ComplexityTier.MEDIUM,
        input_tokens: int | None = None,
    ) -> TokenEstimate:
        """
        Look up the token estimate for an operation.

        Args:
            operation_type: Operation being estimated
            complexity: Complexity tier (unknown values use medium)
            input_tokens: Known prompt size, overriding the table's input figure

        Raises:
            ValidationError: If the operation type is unknown or input_tokens is negative
        """
        if input_tokens is not None and (isinstance(input_tokens, bool) or input_tokens < 0):
            raise ValidationError(
                "input_tokens must be a non-negative integer",
                details={"input_tokens": repr(input_tokens)},
            )

        try:
            operation = OperationCategory(operation_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown operation type: {operation_type}",
                details={
                    "operation_type": str(operation_type),
                    "valid_operations": [op.value for op in OperationCategory],
                },
            ) from e

        estimate = self.TOKEN_ESTIMATES[operation][self.resolve_complexity(complexity)]
        if input_tokens is None:
            return estimate
        return TokenEstimate(input_tokens=input_tokens, output_tokens=estimate.output_tokens)

    def resolve_complexity(self, complexity: ComplexityTier | str) -> ComplexityTier:
        """Complexity tier for a value; unknown values fall back to medium."""
        try:
            return ComplexityTier(complexity)
        except ValueError:
            logger.warning(
                f"Unknown complexity '{complexity}', using medium",
                extra={"complexity": str(complexity)},
            )
            return ComplexityTier.MEDIUM

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> tuple[float, float, float]:
        """(input, output, total) USD for a token usage; no markup is applied."""
        input_cost, output_cost = self.pricing.calculate_cost(input_tokens, output_tokens)
        total = float(Decimal(str(input_cost)) + Decimal(str(output_cost)))
        return input_cost, output_cost, total
