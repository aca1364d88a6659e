"""
Story Context Analyzer

Derives complexity metrics from a story context and assembles the ordered
context string that compression operates on.

Section order is fixed so truncation drops the scene and older summaries
before title, genre and premise.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .config import CompressionConfig
from .models import AnalysisMetrics, Genre, PlotImportance, StoryContext

logger = logging.getLogger(__name__)

GENRE_COMPLEXITY: dict[Genre, int] = {
    Genre.FANTASY: 8,
    Genre.SCIENCE_FICTION: 8,
    Genre.MYSTERY: 7,
    Genre.THRILLER: 6,
    Genre.ROMANCE: 4,
    Genre.LITERARY_FICTION: 7,
    Genre.HISTORICAL_FICTION: 7,
    Genre.YOUNG_ADULT: 5,
    Genre.HORROR: 6,
}

DEFAULT_GENRE_COMPLEXITY = 5

_SENTENCE_BREAK = re.compile(r"[.!?]+")


def get_genre_complexity(genre: str) -> int:
    """Complexity score for a genre; unknown genres score the default."""
    match = Genre.lookup(genre)
    if match is None:
        return DEFAULT_GENRE_COMPLEXITY
    return GENRE_COMPLEXITY[match]


def coerce_story_context(context: StoryContext | dict[str, Any]) -> StoryContext:
    """Accept a StoryContext or a plain dict; malformed input raises ValidationError."""
    if isinstance(context, StoryContext):
        return context
    try:
        return StoryContext.model_validate(context)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, "story context") from e


class StoryContextAnalyzer:
    """Inspects story contexts. Never mutates the context it is given."""

    def __init__(self, config: CompressionConfig | None = None) -> None:
        if config is None:
            from ..config import get_config

            config = get_config().compression
        self.config = config

    def analyze(self, context: StoryContext | dict[str, Any]) -> AnalysisMetrics:
        """
        Compute complexity metrics for a story context.

        Args:
            context: Story context to inspect

        Returns:
            AnalysisMetrics with counts, genre complexity, diversity and dependency density
        """
        context = coerce_story_context(context)

        characters = context.characters
        plot_points = context.plot_points
        roles = {character.role for character in characters}
        edges = sum(len(plot.dependencies) for plot in plot_points)

        return AnalysisMetrics(
            character_count=len(characters),
            plot_point_count=len(plot_points),
            critical_plot_points=sum(1 for plot in plot_points if plot.importance == PlotImportance.CRITICAL),
            story_length=len(" ".join(context.previous_content)),
            genre_complexity=get_genre_complexity(context.genre),
            character_diversity=len(roles) / len(characters) if characters else 0.0,
            plot_complexity=edges / len(plot_points) if plot_points else 0.0,
        )

    def is_complex(self, metrics: AnalysisMetrics) -> bool:
        """Complex stories tolerate less compression."""
        return metrics.character_count > 5 or metrics.critical_plot_points > 3

    def build_context_string(
        self,
        context: StoryContext | dict[str, Any],
        metrics: AnalysisMetrics | None = None,
    ) -> str:
        """
        Build the prompt context with sections in priority order.

        Title/genre/premise/tone first, then the most important characters, the
        earliest critical or major plot points, prior content (verbatim or
        summarized) and finally the current scene.
        """
        context = coerce_story_context(context)
        sections = [
            f"Title: {context.title}",
            f"Genre: {context.genre}",
            f"Premise: {context.premise}",
            f"Tone: {context.story_tone}",
        ]

        if context.characters:
            # sorted() is stable, so equal importance keeps declaration order
            top_characters = sorted(context.characters, key=lambda c: -c.importance)[: self.config.character_cap]
            if top_characters:
                lines = [f"{c.name} ({c.role.value}): {c.description}" for c in top_characters]
                sections.append("Characters:\n" + "\n".join(lines))

        key_plots = [
            plot
            for plot in context.plot_points
            if plot.importance in (PlotImportance.CRITICAL, PlotImportance.MAJOR)
        ]
        key_plots = sorted(key_plots, key=lambda p: p.chapter)[: self.config.plot_point_cap]
        if key_plots:
            lines = [f"Chapter {plot.chapter}: {plot.description}" for plot in key_plots]
            sections.append("Key Plot Points:\n" + "\n".join(lines))

        if context.previous_content:
            previous_text = "\n\n".join(context.previous_content)
            if len(previous_text) > self.config.previous_content_threshold:
                sections.append("Previous Content Summary:\n" + self.summarize_previous_content(context.previous_content))
            else:
                sections.append("Previous Content:\n" + previous_text)

        if context.current_scene:
            sections.append(f"Current Scene: {context.current_scene}")

        if metrics is not None:
            logger.debug(
                "Built context string",
                extra={
                    "sections": len(sections),
                    "character_count": metrics.character_count,
                    "critical_plot_points": metrics.critical_plot_points,
                },
            )
        return "\n\n".join(sections)

    def summarize_previous_content(self, previous_content: list[str]) -> str:
        """
        First two sentences of each of the last three chapters, numbered by chapter.

        Chapters with no text are skipped but keep their number.
        """
        recent = previous_content[-3:]
        offset = len(previous_content) - len(recent)

        lines = []
        for index, chapter in enumerate(recent):
            sentences = [s.strip() for s in _SENTENCE_BREAK.split(chapter) if s.strip()]
            if not sentences:
                continue
            lines.append(f"Chapter {offset + index + 1}: {'. '.join(sentences[:2])}.")
        return "\n".join(lines)
