"""
Story Context Optimizer

Orchestrates the analyzer and compression engine to prepare the context for
one generation call:

1. Analyze the story for complexity
2. Derive effective options (gentler level for complex stories, preserve
   categories from the story's contents, token ceiling from the base budget)
3. Build the ordered context string and compress it
4. Score the result for narrative quality
5. Retry once at light level when quality falls below the threshold
"""

import logging
import math
import re
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..credit_accounting.config import SubscriptionTier
from ..errors import ValidationError
from .analyzer import StoryContextAnalyzer, coerce_story_context
from .compression import CompressionEngine, coerce_compression_options, get_optimal_compression_settings
from .config import CompressionConfig
from .models import (
    AnalysisMetrics,
    BatchItem,
    CompressionLevel,
    CompressionResult,
    OperationKind,
    OperationType,
    OptimizationOptions,
    OptimizationResult,
    PlotImportance,
    PlotPoint,
    PreservationBreakdown,
    PreserveCategory,
    StoryContext,
    StoryType,
)

logger = logging.getLogger(__name__)

BASE_WINDOW_TOKENS = 3000

OPERATION_PRESETS: dict[OperationKind, OperationType] = {
    OperationKind.FOUNDATION: OperationType.STORY_FOUNDATION,
    OperationKind.CHAPTER: OperationType.CHAPTER_GENERATION,
    OperationKind.IMPROVEMENT: OperationType.STORY_IMPROVEMENT,
}

STORY_TYPE_RECOMMENDATIONS: dict[StoryType, dict[str, Any]] = {
    StoryType.SHORT: {
        "compression_level": CompressionLevel.LIGHT,
        "prioritize_characters": True,
        "include_recap_length": 0,
        "quality_threshold": 80.0,
    },
    StoryType.NOVELLA: {
        "compression_level": CompressionLevel.MODERATE,
        "prioritize_characters": True,
        "prioritize_plot": True,
        "include_recap_length": 1,
        "quality_threshold": 75.0,
    },
    StoryType.NOVEL: {
        "compression_level": CompressionLevel.MODERATE,
        "prioritize_plot": True,
        "maintain_tone": True,
        "include_recap_length": 2,
        "quality_threshold": 70.0,
        "adaptive_window_size": True,
    },
    StoryType.SERIES: {
        "compression_level": CompressionLevel.AGGRESSIVE,
        "prioritize_plot": True,
        "maintain_tone": True,
        "include_recap_length": 3,
        "quality_threshold": 65.0,
        "adaptive_window_size": True,
    },
}

_ANCHOR_WORD = re.compile(r"\w{4,}")


def _plot_anchor(plot: PlotPoint) -> str | None:
    """Longest significant word of a plot description, used to find it after compression."""
    words = _ANCHOR_WORD.findall(plot.description)
    if not words:
        return None
    return max(words, key=len)


class ContextOptimizer:
    """Quality-gated story context optimizer"""

    def __init__(
        self,
        config: CompressionConfig | None = None,
        engine: CompressionEngine | None = None,
        analyzer: StoryContextAnalyzer | None = None,
    ):
        """
        Initialize optimizer.

        Args:
            config: Compression configuration (global config if not provided)
            engine: Compression engine; a private engine is created when omitted
            analyzer: Story context analyzer
        """
        if config is None:
            from ..config import get_config

            config = get_config().compression
        self.config = config
        self.engine = engine or CompressionEngine(config=self.config)
        self.analyzer = analyzer or StoryContextAnalyzer(config=self.config)

        self.stats: dict[str, int | float] = {
            "total_optimizations": 0,
            "fallbacks_applied": 0,
            "avg_quality_score": 0.0,
        }

    def optimize_story_context(
        self,
        context: StoryContext | dict[str, Any],
        options: OptimizationOptions | dict[str, Any] | None = None,
    ) -> OptimizationResult:
        """
        Optimize a story context for the next generation call.

        Args:
            context: Story context
            options: Optimization options (defaults if not provided)

        Returns:
            OptimizationResult for the accepted attempt. Results below the
            quality threshold are returned as-is once the fallback is spent.
        """
        context = coerce_story_context(context)
        opts = coerce_compression_options(options, OptimizationOptions)

        threshold = opts.quality_threshold if opts.quality_threshold is not None else self.config.quality_threshold
        max_retries = (
            opts.max_fallback_retries if opts.max_fallback_retries is not None else self.config.max_fallback_retries
        )

        metrics = self.analyzer.analyze(context)
        context_string = self.analyzer.build_context_string(context, metrics)
        effective = self._derive_options(context, context_string, opts, metrics)

        level_used = self.engine.get_effective_level(effective)
        result = self.engine.compress(context_string, effective)
        quality_score = self.calculate_quality_score(result, metrics)

        attempts = 0
        while quality_score < threshold and level_used is not CompressionLevel.LIGHT and attempts < max_retries:
            attempts += 1
            logger.info(
                f"Quality {quality_score:.1f} below threshold {threshold:.1f}, retrying with light compression",
                extra={"quality_score": quality_score, "threshold": threshold, "level": level_used.value},
            )
            effective = effective.model_copy(update={"compression_level": CompressionLevel.LIGHT})
            level_used = CompressionLevel.LIGHT
            result = self.engine.compress(context_string, effective)
            quality_score = self.calculate_quality_score(result, metrics)

        optimization = self._build_result(context, result, quality_score, level_used, attempts > 0)
        self._update_stats(optimization)
        return optimization

    def optimize_chapter_context(
        self,
        context: StoryContext | dict[str, Any],
        chapter_number: int,
        options: OptimizationOptions | dict[str, Any] | None = None,
    ) -> OptimizationResult:
        """
        Optimize a windowed context for continuing at chapter_number.

        The ceiling is the caller's max_tokens, else the caller's context
        window, else the computed window size (the base token budget when
        adaptive_window_size is off).
        """
        context = coerce_story_context(context)
        opts = coerce_compression_options(options, OptimizationOptions)
        self._validate_chapter_number(chapter_number)

        window_size = self._window_size(context, chapter_number, opts)
        windowed = self.create_chapter_window(context, chapter_number, opts)
        ceiling = opts.max_tokens if opts.max_tokens is not None else window_size

        return self.optimize_story_context(
            windowed,
            opts.model_copy(update={"max_tokens": ceiling, "context_window": window_size}),
        )

    def create_chapter_window(
        self,
        context: StoryContext | dict[str, Any],
        chapter_number: int,
        options: OptimizationOptions | dict[str, Any] | None = None,
    ) -> StoryContext:
        """
        Derive the context relevant to chapter_number.

        Keeps characters mentioned in the last three chapters (or the first five
        when none were), unresolved plot points introduced so far, and the
        trailing prior chapters that fit the window, at most
        include_recap_length of them when set.
        """
        context = coerce_story_context(context)
        opts = coerce_compression_options(options, OptimizationOptions)
        self._validate_chapter_number(chapter_number)

        window_size = self._window_size(context, chapter_number, opts)
        recent_count = math.ceil(window_size / 1000)
        if opts.include_recap_length is not None:
            recent_count = min(recent_count, opts.include_recap_length)
        start = max(0, len(context.previous_content) - recent_count)
        recent_chapters = context.previous_content[start:]

        recent_characters = [
            character
            for character in context.characters
            if character.last_mentioned is not None and character.last_mentioned >= chapter_number - 3
        ]
        active_plot_points = [
            plot for plot in context.plot_points if not plot.resolved and plot.chapter <= chapter_number
        ]

        return context.model_copy(
            update={
                "current_chapter": chapter_number,
                "characters": recent_characters or context.characters[:5],
                "plot_points": active_plot_points,
                "previous_content": list(recent_chapters),
            }
        )

    def calculate_optimal_window_size(self, context: StoryContext, chapter_number: int) -> int:
        """3000 x (1 + 0.1/character + 0.05/plot point) x (1 + min(0.05 x chapter, 0.5)), floored."""
        # Integer percentages keep the floor exact
        complexity_pct = 100 + 10 * len(context.characters) + 5 * len(context.plot_points)
        position_pct = 100 + min(5 * chapter_number, 50)
        return BASE_WINDOW_TOKENS * complexity_pct * position_pct // 10000

    def batch_optimize(
        self,
        items: Sequence[BatchItem | dict[str, Any] | None],
        subscription_tier: SubscriptionTier | str,
    ) -> list[OptimizationResult]:
        """
        Optimize several (context, operation) pairs with tier presets.

        Foundation work prioritizes plot, chapter work prioritizes characters.
        None entries are skipped and produce no result.
        """
        results = []
        for item in items:
            if item is None:
                continue
            if not isinstance(item, BatchItem):
                try:
                    item = BatchItem.model_validate(item)
                except PydanticValidationError as e:
                    raise ValidationError.from_pydantic(e, "batch item") from e

            preset = get_optimal_compression_settings(subscription_tier, OPERATION_PRESETS[item.operation])
            options = OptimizationOptions(
                **preset.model_dump(),
                prioritize_characters=item.operation == OperationKind.CHAPTER,
                prioritize_plot=item.operation == OperationKind.FOUNDATION,
                maintain_tone=True,
            )
            results.append(self.optimize_story_context(item.context, options))

        return results

    def calculate_quality_score(self, result: CompressionResult, metrics: AnalysisMetrics) -> float:
        """
        Score how much narratively important information survived (0-100).

        Over-compression is penalized, confirmed character/plot/tone
        preservation is rewarded, and complex stories are penalized further
        for heavy compression.
        """
        score = 100.0
        ratio = result.compression_ratio

        if ratio < 0.3:
            score -= 30
        elif ratio < 0.5:
            score -= 15

        preserved = set(result.preserved_elements)
        for category in (PreserveCategory.CHARACTER_NAMES, PreserveCategory.PLOT_POINTS, PreserveCategory.STORY_TONE):
            if category in preserved:
                score += 5

        if metrics.character_count > 5 and ratio < 0.6:
            score -= 10
        if metrics.critical_plot_points > 3 and ratio < 0.7:
            score -= 10

        return max(0.0, min(100.0, score))

    def get_stats(self) -> dict[str, Any]:
        """Optimizer statistics plus the engine's compression statistics."""
        return {
            **self.stats,
            "compression": self.engine.get_stats().model_dump(),
        }

    def _derive_options(
        self,
        context: StoryContext,
        context_string: str,
        options: OptimizationOptions,
        metrics: AnalysisMetrics,
    ) -> OptimizationOptions:
        complex_story = self.analyzer.is_complex(metrics)

        level = CompressionLevel(options.compression_level)
        if complex_story:
            level = level.downgrade()

        preserve = list(options.preserve_elements or [])
        derived: list[PreserveCategory] = []
        if options.prioritize_characters or metrics.character_count > 0:
            derived += [PreserveCategory.CHARACTER_NAMES, PreserveCategory.DIALOGUE]
        if options.prioritize_plot or metrics.critical_plot_points > 0:
            derived.append(PreserveCategory.PLOT_POINTS)
        if options.maintain_tone:
            derived.append(PreserveCategory.STORY_TONE)
        for category in derived:
            if category not in preserve:
                preserve.append(category)

        if options.max_tokens is not None:
            ceiling = options.max_tokens
        elif complex_story:
            ceiling = math.floor(self.config.base_token_budget * self.config.complexity_multiplier)
        else:
            ceiling = self.config.base_token_budget

        return options.model_copy(
            update={
                "compression_level": level,
                "preserve_elements": preserve,
                "max_tokens": ceiling,
                "anchors": self._build_anchors(context, context_string, options),
            }
        )

    def _build_anchors(
        self,
        context: StoryContext,
        context_string: str,
        options: OptimizationOptions,
    ) -> dict[PreserveCategory, list[str]]:
        anchors = {category: list(terms) for category, terms in options.anchors.items()}

        def add(category: PreserveCategory, terms: list[str]) -> None:
            existing = anchors.setdefault(category, [])
            existing.extend(term for term in terms if term and term not in existing)

        add(PreserveCategory.CHARACTER_NAMES, [character.name for character in context.characters])
        if context.story_tone:
            add(PreserveCategory.STORY_TONE, [context.story_tone])
        key_plots = [
            plot
            for plot in context.plot_points
            if plot.importance in (PlotImportance.CRITICAL, PlotImportance.MAJOR)
        ]
        plot_anchors = [_plot_anchor(plot) for plot in key_plots]
        add(PreserveCategory.PLOT_POINTS, [anchor for anchor in plot_anchors if anchor])
        if '"' in context_string:
            add(PreserveCategory.DIALOGUE, ['"'])

        return {category: terms for category, terms in anchors.items() if terms}

    def _build_result(
        self,
        context: StoryContext,
        result: CompressionResult,
        quality_score: float,
        level_used: CompressionLevel,
        fallback_applied: bool,
    ) -> OptimizationResult:
        lowered = result.compressed_text.lower()

        characters_kept = sum(1 for c in context.characters if c.name.lower() in lowered)
        plot_points_kept = 0
        for plot in context.plot_points:
            anchor = _plot_anchor(plot)
            if anchor is not None and anchor.lower() in lowered:
                plot_points_kept += 1

        return OptimizationResult(
            **result.model_dump(),
            quality_score=quality_score,
            preserved=PreservationBreakdown(
                characters=characters_kept,
                plot_points=plot_points_kept,
                story_tone=bool(context.story_tone) and context.story_tone.lower() in lowered,
                previous_context=bool(context.previous_content) and "previous content" in lowered,
            ),
            optimization_method=f"intelligent_{result.compression_method}",
            compression_level=level_used,
            fallback_applied=fallback_applied,
            metadata={"title": context.title, "current_chapter": context.current_chapter},
        )

    def _update_stats(self, result: OptimizationResult) -> None:
        """Update optimizer statistics with an incremental quality average."""
        total = int(self.stats["total_optimizations"]) + 1
        self.stats["total_optimizations"] = total
        if result.fallback_applied:
            self.stats["fallbacks_applied"] = int(self.stats["fallbacks_applied"]) + 1

        current_avg = float(self.stats["avg_quality_score"])
        self.stats["avg_quality_score"] = (current_avg * (total - 1) + result.quality_score) / total

    def _window_size(self, context: StoryContext, chapter_number: int, opts: OptimizationOptions) -> int:
        if opts.context_window:
            return opts.context_window
        if not opts.adaptive_window_size:
            return self.config.base_token_budget
        return self.calculate_optimal_window_size(context, chapter_number)

    def _validate_chapter_number(self, chapter_number: int) -> None:
        if isinstance(chapter_number, bool) or not isinstance(chapter_number, int) or chapter_number < 0:
            raise ValidationError(
                "chapter_number must be a non-negative integer",
                details={"chapter_number": chapter_number},
            )


def get_optimization_recommendations(
    story_type: StoryType | str,
    subscription_tier: SubscriptionTier | str,
) -> OptimizationOptions:
    """
    Recommended optimization options for a story type on a tier.

    Starts from the tier's foundation preset; shorter works get gentler
    compression and higher quality thresholds.
    """
    try:
        story = StoryType(story_type)
    except ValueError as e:
        raise ValidationError(str(e), details={"story_type": str(story_type)}) from e

    base = get_optimal_compression_settings(subscription_tier, OperationType.STORY_FOUNDATION)
    return OptimizationOptions(**{**base.model_dump(), **STORY_TYPE_RECOMMENDATIONS[story]})
