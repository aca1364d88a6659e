"""
Context Optimization Configuration

Tunables for compression stages, context assembly and quality fallback.
"""

import os

from pydantic import BaseModel, ConfigDict, Field


class CompressionConfig(BaseModel):
    """Compression and context optimization configuration"""

    # Moderate stage
    paragraph_threshold: int = Field(
        default=200,
        ge=1,
        description="Paragraphs longer than this (chars) are summarized at moderate level",
    )
    min_extraction_chars: int = Field(
        default=50,
        ge=0,
        description="Summaries shorter than this fall back to the original paragraph",
    )
    summary_sentence_cap: int = Field(
        default=2,
        ge=1,
        description="Max non-anchor sentences kept per summarized paragraph",
    )

    # Aggressive stage
    bullet_cap: int = Field(default=5, ge=1, description="Max bullet points at aggressive level")
    keyword_cap: int = Field(default=20, ge=1, description="Max keywords at aggressive level")

    # Context budget
    base_token_budget: int = Field(default=4000, ge=1, description="Default ceiling for story context")
    complexity_multiplier: float = Field(
        default=1.2,
        ge=1.0,
        description="Ceiling multiplier for complex stories",
    )

    # Quality
    quality_threshold: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Minimum quality score (0-100) before falling back to light compression",
    )
    max_fallback_retries: int = Field(default=1, ge=0, le=1, description="Fallback attempts (at most one)")

    # Context assembly
    previous_content_threshold: int = Field(
        default=2000,
        ge=0,
        description="Prior content longer than this many chars is summarized instead of included verbatim",
    )
    character_cap: int = Field(default=8, ge=0, description="Max characters listed in the context string")
    plot_point_cap: int = Field(default=5, ge=0, description="Max plot points listed in the context string")

    # Pricing for cost-saved reporting
    input_token_cost: float = Field(default=0.000003, gt=0.0, description="USD per input token")

    model_config = ConfigDict(frozen=False)


def load_config() -> CompressionConfig:
    """
    Load compression configuration from environment variables.

    Environment Variables:
        COMPRESSION_PARAGRAPH_THRESHOLD: Paragraph summarization threshold (default: 200)
        COMPRESSION_MIN_EXTRACTION_CHARS: Minimum summary length (default: 50)
        COMPRESSION_BULLET_CAP: Max bullets (default: 5)
        COMPRESSION_KEYWORD_CAP: Max keywords (default: 20)
        COMPRESSION_BASE_TOKEN_BUDGET: Default ceiling (default: 4000)
        COMPRESSION_COMPLEXITY_MULTIPLIER: Complex story multiplier (default: 1.2)
        COMPRESSION_QUALITY_THRESHOLD: Quality threshold 0-100 (default: 70)
        COMPRESSION_PREVIOUS_CONTENT_THRESHOLD: Verbatim prior content limit (default: 2000)
        COMPRESSION_INPUT_TOKEN_COST: USD per input token (default: 0.000003)
    """
    return CompressionConfig(
        paragraph_threshold=int(os.getenv("COMPRESSION_PARAGRAPH_THRESHOLD", "200")),
        min_extraction_chars=int(os.getenv("COMPRESSION_MIN_EXTRACTION_CHARS", "50")),
        bullet_cap=int(os.getenv("COMPRESSION_BULLET_CAP", "5")),
        keyword_cap=int(os.getenv("COMPRESSION_KEYWORD_CAP", "20")),
        base_token_budget=int(os.getenv("COMPRESSION_BASE_TOKEN_BUDGET", "4000")),
        complexity_multiplier=float(os.getenv("COMPRESSION_COMPLEXITY_MULTIPLIER", "1.2")),
        quality_threshold=float(os.getenv("COMPRESSION_QUALITY_THRESHOLD", "70")),
        previous_content_threshold=int(os.getenv("COMPRESSION_PREVIOUS_CONTENT_THRESHOLD", "2000")),
        input_token_cost=float(os.getenv("COMPRESSION_INPUT_TOKEN_COST", "0.000003")),
    )
