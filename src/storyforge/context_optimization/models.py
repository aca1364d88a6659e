"""
Context Optimization Models

Data models for story contexts, compression requests and optimization results.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..credit_accounting.config import SubscriptionTier


class CompressionLevel(str, Enum):
    """How much of the original text compression may discard."""

    LIGHT = "light"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"

    def downgrade(self) -> "CompressionLevel":
        """One step gentler; light is the floor."""
        if self is CompressionLevel.AGGRESSIVE:
            return CompressionLevel.MODERATE
        return CompressionLevel.LIGHT


class PreserveCategory(str, Enum):
    """Named classes of content compression should retain preferentially."""

    CHARACTER_NAMES = "character_names"
    DIALOGUE = "dialogue"
    PLOT_POINTS = "plot_points"
    STORY_TONE = "story_tone"
    SETTING = "setting"
    CURRENT_SCENE = "current_scene"
    PREVIOUS_CONTEXT = "previous_context"


class CharacterRole(str, Enum):
    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    MINOR = "minor"


class PlotImportance(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class Genre(str, Enum):
    """Genres with a known complexity score."""

    FANTASY = "Fantasy"
    SCIENCE_FICTION = "Science Fiction"
    MYSTERY = "Mystery"
    THRILLER = "Thriller"
    ROMANCE = "Romance"
    LITERARY_FICTION = "Literary Fiction"
    HISTORICAL_FICTION = "Historical Fiction"
    YOUNG_ADULT = "Young Adult"
    HORROR = "Horror"

    @classmethod
    def lookup(cls, name: str) -> "Genre | None":
        """Case-insensitive lookup; None for genres outside the table."""
        normalized = name.strip().lower()
        for genre in cls:
            if genre.value.lower() == normalized:
                return genre
        return None


class OperationKind(str, Enum):
    """Generation operations accepted by batch optimization."""

    FOUNDATION = "foundation"
    CHAPTER = "chapter"
    IMPROVEMENT = "improvement"


class OperationType(str, Enum):
    """Operation names used for tier compression presets."""

    STORY_FOUNDATION = "story_foundation"
    CHAPTER_GENERATION = "chapter_generation"
    STORY_IMPROVEMENT = "story_improvement"


class StoryType(str, Enum):
    SHORT = "short"
    NOVELLA = "novella"
    NOVEL = "novel"
    SERIES = "series"


class Character(BaseModel):
    """A character tracked across the story."""

    name: str = Field(..., min_length=1, description="Unique within a story context")
    role: CharacterRole = Field(default=CharacterRole.SUPPORTING)
    description: str = Field(default="")
    traits: list[str] = Field(default_factory=list)
    importance: int = Field(default=5, ge=1, le=10, description="Preservation priority (1-10)")
    last_mentioned: int | None = Field(default=None, ge=0, description="Last chapter referencing the character")


class PlotPoint(BaseModel):
    """A plot point and the plot points it depends on."""

    id: str = Field(..., min_length=1)
    description: str = Field(..., description="What happens")
    chapter: int = Field(..., ge=0, description="Originating chapter")
    importance: PlotImportance = Field(default=PlotImportance.MINOR)
    resolved: bool = Field(default=False)
    dependencies: list[str] = Field(default_factory=list, description="Ids of plot points introduced first")


class StoryContext(BaseModel):
    """Accumulated narrative state sent to the model for one generation call."""

    title: str
    genre: str
    premise: str
    story_tone: str = Field(default="")
    current_chapter: int | None = Field(default=None, ge=0)
    total_chapters: int | None = Field(default=None, ge=0)
    previous_content: list[str] = Field(
        default_factory=list,
        description="Prior chapter texts in chapter order; never reordered",
    )
    characters: list[Character] = Field(default_factory=list)
    plot_points: list[PlotPoint] = Field(default_factory=list)
    current_scene: str | None = Field(default=None)

    @model_validator(mode="after")
    def validate_story_elements(self) -> "StoryContext":
        """Character names are unique and dependencies never point forward in time."""
        seen: set[str] = set()
        for character in self.characters:
            if character.name in seen:
                raise ValueError(f"Duplicate character name: {character.name}")
            seen.add(character.name)

        chapters = {plot.id: plot.chapter for plot in self.plot_points}
        for plot in self.plot_points:
            for dependency in plot.dependencies:
                # Ids outside this context were trimmed by windowing
                if dependency in chapters and chapters[dependency] > plot.chapter:
                    raise ValueError(
                        f"Plot point {plot.id} (chapter {plot.chapter}) depends on "
                        f"{dependency} from later chapter {chapters[dependency]}"
                    )
        return self


class CompressionOptions(BaseModel):
    """Options for a single compression call."""

    compression_level: CompressionLevel = Field(default=CompressionLevel.MODERATE)
    max_tokens: int | None = Field(default=None, ge=0, description="Hard token ceiling")
    preserve_elements: list[PreserveCategory] | None = Field(default=None)
    subscription_tier: SubscriptionTier = Field(default=SubscriptionTier.BASIC)
    context_window: int | None = Field(default=None, ge=1, description="Token window for chapter context")
    anchors: dict[PreserveCategory, list[str]] = Field(
        default_factory=dict,
        description="Terms whose presence in the output confirms a category was kept",
    )

    model_config = ConfigDict(frozen=False)


class OptimizationOptions(CompressionOptions):
    """Compression options plus story-level priorities and the quality gate."""

    prioritize_characters: bool = Field(default=False)
    prioritize_plot: bool = Field(default=False)
    maintain_tone: bool = Field(default=False)
    include_recap_length: int | None = Field(
        default=None,
        ge=0,
        description="Most prior chapters a chapter window may carry (None = as many as the window fits)",
    )
    adaptive_window_size: bool = Field(
        default=True,
        description="Size chapter windows from story complexity and position; False uses the base token budget",
    )
    quality_threshold: float | None = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Minimum quality score to accept (None = configured default, 70)",
    )
    max_fallback_retries: int | None = Field(
        default=None,
        ge=0,
        le=1,
        description="Light-level retries when below threshold (None = configured default, 1)",
    )


class CompressionResult(BaseModel):
    """Result of one compression call."""

    original_text: str
    compressed_text: str
    original_token_count: int = Field(..., ge=0)
    compressed_token_count: int = Field(..., ge=0)
    tokens_reduced: int = Field(..., ge=0)
    cost_savings_usd: float = Field(..., ge=0.0, description="tokens_reduced x input token rate")
    compression_ratio: float = Field(..., ge=0.0, description="compressed/original (1.0 when original is empty)")
    preserved_elements: list[PreserveCategory] = Field(default_factory=list)
    compression_method: str = Field(..., description="Strategy path that produced the text")

    model_config = ConfigDict(frozen=False)


class PreservationBreakdown(BaseModel):
    """How much narrative state survived compression."""

    characters: int = Field(default=0, ge=0, description="Characters whose names appear in the output")
    plot_points: int = Field(default=0, ge=0, description="Plot points still referenced in the output")
    story_tone: bool = Field(default=False)
    previous_context: bool = Field(default=False)


class OptimizationResult(CompressionResult):
    """Compression result scored for narrative quality."""

    quality_score: float = Field(..., ge=0.0, le=100.0, description="Quality score (0-100)")
    preserved: PreservationBreakdown = Field(default_factory=PreservationBreakdown)
    optimization_method: str = Field(..., description="intelligent_<compression method>")
    compression_level: CompressionLevel
    fallback_applied: bool = Field(default=False, description="Result came from the light-level retry")

    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="When optimized")

    @property
    def tokens_kept(self) -> int:
        return self.compressed_token_count


class AnalysisMetrics(BaseModel):
    """Complexity metrics derived from a story context."""

    character_count: int = Field(..., ge=0)
    plot_point_count: int = Field(..., ge=0)
    critical_plot_points: int = Field(..., ge=0)
    story_length: int = Field(..., ge=0, description="Length of prior content joined by a space")
    genre_complexity: int = Field(..., ge=1, le=10)
    character_diversity: float = Field(..., ge=0.0, description="Distinct roles / character count")
    plot_complexity: float = Field(..., ge=0.0, description="Dependency edges / plot point count")

    model_config = ConfigDict(frozen=True)


class CompressionStatsSnapshot(BaseModel):
    """Point-in-time copy of engine statistics."""

    total_compressions: int = 0
    total_tokens_saved: int = 0
    total_cost_savings_usd: float = 0.0
    average_compression_ratio: float = 0.0
    methods_used: dict[str, int] = Field(default_factory=dict)


class BatchItem(BaseModel):
    """A story context paired with the operation it is being optimized for."""

    context: StoryContext
    operation: OperationKind = Field(default=OperationKind.CHAPTER)


class CompressionSavings(BaseModel):
    """Projected savings for a token count at a given ratio."""

    tokens_saved: int
    cost_savings_usd: float
    percentage_saved: float
