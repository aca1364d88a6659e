"""
Story Context Compression Engine

Three compression strategies applied to a text blob under an optional token ceiling:
- light: whitespace normalization, filler phrase removal, near-duplicate sentence removal
- moderate: light + narrative templates + summarization of long paragraphs
- aggressive: moderate + bullet/keyword collapse + hard truncation to the ceiling

No stage may lengthen its input, so for a fixed input and tier
aggressive <= moderate <= light in tokens.
"""

import logging
import math
import re
import threading
from collections import Counter
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..credit_accounting.config import SubscriptionTier
from ..errors import ValidationError
from ..token_optimization.counter import TokenEstimator, get_token_estimator
from .config import CompressionConfig
from .models import (
    CompressionLevel,
    CompressionOptions,
    CompressionResult,
    CompressionSavings,
    CompressionStatsSnapshot,
    OperationType,
    PreserveCategory,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
BULLET = "• "

# Method tags
METHOD_NONE = "none"
METHOD_LIGHT = "light_redundancy_removal"
METHOD_MODERATE = "moderate_summarization"
METHOD_BULLETS = "aggressive_bullet_points"
METHOD_KEYWORDS = "aggressive_keywords"

_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_PARAGRAPH_BREAK = re.compile(r"\n{2,}")
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")
_WORD = re.compile(r"\w+")
_KEYWORD = re.compile(r"\b\w{4,}\b")

FILLER_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(?:very|really|quite|rather|somewhat)\s+", re.IGNORECASE), ""),
    (re.compile(r"\b(?:it was|there was|there were)\s+", re.IGNORECASE), ""),
    (re.compile(r"\b(?:in order to|in an effort to)\b", re.IGNORECASE), "to"),
    (re.compile(r"\b(?:due to the fact that|because of the fact that)\b", re.IGNORECASE), "because"),
]

NARRATIVE_TEMPLATES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"The character (\w+) walked into the (\w+) and saw", re.IGNORECASE), r"\1 entered \2, seeing"),
    (re.compile(r"(\w+) said with a (\w+) voice", re.IGNORECASE), r"\1 said \2ly"),
    (re.compile(r"The atmosphere was (\w+) and the mood was (\w+)", re.IGNORECASE), r"Atmosphere: \1, mood: \2"),
]

# Sentence matchers used when summarizing long paragraphs
CATEGORY_PATTERNS: dict[PreserveCategory, re.Pattern[str]] = {
    PreserveCategory.CHARACTER_NAMES: re.compile(r"\b(?:he|she|they|\w*(?:said|walked|looked|felt))\b", re.IGNORECASE),
    PreserveCategory.PLOT_POINTS: re.compile(r"\b(?:suddenly|then|because|after|when)\b", re.IGNORECASE),
    PreserveCategory.DIALOGUE: re.compile(r'"'),
    PreserveCategory.SETTING: re.compile(r"\b(?:in the|at the|inside|outside)\b", re.IGNORECASE),
}

DEDUP_STOPWORDS = frozenset({"that", "this", "with", "were", "been", "have", "will", "from", "they", "their"})


def _split_sentences(line: str) -> list[str]:
    """Split one line into sentences, keeping terminal punctuation."""
    return [match.group().strip() for match in _SENTENCE.finditer(line) if match.group().strip()]


def _content_key(sentence: str) -> str:
    """First three significant tokens, sorted. Empty when the sentence has none."""
    tokens = [
        token for token in _WORD.findall(sentence.lower()) if len(token) > 3 and token not in DEDUP_STOPWORDS
    ]
    return "_".join(sorted(tokens[:3]))


def _keep_shorter(before: str, after: str) -> str:
    """A stage output longer than its input is discarded."""
    return after if len(after) <= len(before) else before


class CompressionStats:
    """
    Running compression statistics owned by one engine.

    Thread-safe; the average ratio is updated incrementally.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.stats: dict[str, Any] = {}
        self.reset()

    def record(self, result: CompressionResult) -> None:
        with self._lock:
            total = self.stats["total_compressions"] + 1
            self.stats["total_compressions"] = total
            self.stats["total_tokens_saved"] += result.tokens_reduced
            self.stats["total_cost_savings_usd"] += result.cost_savings_usd

            current_avg = self.stats["average_compression_ratio"]
            self.stats["average_compression_ratio"] = (current_avg * (total - 1) + result.compression_ratio) / total

            methods_used = self.stats["methods_used"]
            methods_used[result.compression_method] = methods_used.get(result.compression_method, 0) + 1

    def snapshot(self) -> CompressionStatsSnapshot:
        with self._lock:
            return CompressionStatsSnapshot(
                total_compressions=self.stats["total_compressions"],
                total_tokens_saved=self.stats["total_tokens_saved"],
                total_cost_savings_usd=self.stats["total_cost_savings_usd"],
                average_compression_ratio=self.stats["average_compression_ratio"],
                methods_used=dict(self.stats["methods_used"]),
            )

    def reset(self) -> None:
        with self._lock:
            self.stats = {
                "total_compressions": 0,
                "total_tokens_saved": 0,
                "total_cost_savings_usd": 0.0,
                "average_compression_ratio": 0.0,
                "methods_used": {},
            }


def coerce_compression_options(
    options: CompressionOptions | dict[str, Any] | None,
    model: type[CompressionOptions] = CompressionOptions,
) -> CompressionOptions:
    """Accept a model, a plain dict or None; malformed dicts raise ValidationError."""
    if options is None:
        return model()
    if isinstance(options, model):
        return options
    try:
        if isinstance(options, CompressionOptions):
            return model.model_validate(options.model_dump())
        return model.model_validate(options)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, "compression options") from e


class CompressionEngine:
    """
    Applies light/moderate/aggressive compression to story context text.

    Statistics are held by an injectable CompressionStats so independent
    engines never share counters.
    """

    def __init__(
        self,
        config: CompressionConfig | None = None,
        stats: CompressionStats | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        if config is None:
            from ..config import get_config

            config = get_config().compression
        self.config = config
        self.stats = stats or CompressionStats()
        self.estimator = estimator or get_token_estimator()

    def compress(
        self,
        text: str,
        options: CompressionOptions | dict[str, Any] | None = None,
    ) -> CompressionResult:
        """
        Compress text according to options.

        Args:
            text: Text to compress
            options: Level, ceiling, preserve categories, tier and anchors

        Returns:
            CompressionResult with token counts, savings and method tag

        Raises:
            ValidationError: If text is not a string or options are malformed
        """
        if not isinstance(text, str):
            raise ValidationError(
                "Text to compress must be a string",
                details={"type": type(text).__name__},
            )
        opts = coerce_compression_options(options)
        if opts.max_tokens is not None and opts.max_tokens < 0:
            raise ValidationError("max_tokens must be non-negative", details={"max_tokens": opts.max_tokens})

        original_tokens = self.estimator.estimate(text)

        if not text:
            compressed, method = "", METHOD_NONE
        else:
            level = self.get_effective_level(opts)
            preserve = self._preserve_list(opts)
            if level is CompressionLevel.LIGHT:
                compressed, method = self._apply_light(text), METHOD_LIGHT
            elif level is CompressionLevel.MODERATE:
                compressed, method = self._apply_moderate(text, preserve, opts.anchors), METHOD_MODERATE
            else:
                compressed, method = self._apply_aggressive(text, preserve, opts.anchors, opts.max_tokens)

        compressed_tokens = self.estimator.estimate(compressed)
        tokens_reduced = max(0, original_tokens - compressed_tokens)
        ratio = compressed_tokens / original_tokens if original_tokens > 0 else 1.0

        result = CompressionResult(
            original_text=text,
            compressed_text=compressed,
            original_token_count=original_tokens,
            compressed_token_count=compressed_tokens,
            tokens_reduced=tokens_reduced,
            cost_savings_usd=tokens_reduced * self.config.input_token_cost,
            compression_ratio=ratio,
            preserved_elements=self._confirm_preserved(compressed, opts) if compressed else [],
            compression_method=method,
        )

        self.stats.record(result)
        logger.debug(
            f"Compressed {original_tokens} -> {compressed_tokens} tokens ({method})",
            extra={
                "compression_method": method,
                "original_tokens": original_tokens,
                "compressed_tokens": compressed_tokens,
                "compression_ratio": round(ratio, 4),
            },
        )
        return result

    def compress_chapter_context(
        self,
        previous_chapters: Sequence[str],
        current_chapter: str,
        options: CompressionOptions | dict[str, Any] | None = None,
    ) -> CompressionResult:
        """
        Compress prior chapters graded by age, followed by the current chapter.

        The most recent prior chapter gets light compression, the two before it
        become bullets and anything older collapses to keywords.
        """
        opts = coerce_compression_options(options)
        if not isinstance(current_chapter, str) or any(not isinstance(c, str) for c in previous_chapters):
            raise ValidationError("Chapter texts must be strings")

        if previous_chapters:
            summaries = []
            for index, chapter in enumerate(previous_chapters):
                age = len(previous_chapters) - index
                if age > 3:
                    summaries.append(self._extract_keywords(chapter))
                elif age > 1:
                    summaries.append(self._to_bullets(chapter))
                else:
                    summaries.append(self._apply_light(chapter))
            combined = f"Previous context: {' | '.join(summaries)}\n\nCurrent: {current_chapter}"
        else:
            combined = current_chapter

        preserve = list(opts.preserve_elements or [])
        for category in (
            PreserveCategory.CHARACTER_NAMES,
            PreserveCategory.PLOT_POINTS,
            PreserveCategory.STORY_TONE,
            PreserveCategory.CURRENT_SCENE,
        ):
            if category not in preserve:
                preserve.append(category)

        return self.compress(combined, opts.model_copy(update={"preserve_elements": preserve}))

    def get_effective_level(self, options: CompressionOptions) -> CompressionLevel:
        """Premium never gets aggressive compression; no tier ever upgrades."""
        level = CompressionLevel(options.compression_level)
        if options.subscription_tier == SubscriptionTier.PREMIUM and level is CompressionLevel.AGGRESSIVE:
            return CompressionLevel.MODERATE
        return level

    def get_stats(self) -> CompressionStatsSnapshot:
        """Snapshot of this engine's statistics."""
        return self.stats.snapshot()

    def reset_stats(self) -> None:
        self.stats.reset()

    # Strategies

    def _apply_light(self, text: str) -> str:
        compressed = self._normalize_whitespace(text)
        for pattern, replacement in FILLER_PATTERNS:
            compressed = pattern.sub(replacement, compressed)
        compressed = self._remove_duplicate_sentences(compressed)
        return _keep_shorter(text, compressed)

    def _apply_moderate(
        self,
        text: str,
        preserve: list[PreserveCategory],
        anchors: dict[PreserveCategory, list[str]],
    ) -> str:
        light = self._apply_light(text)

        compressed = light
        for pattern, replacement in NARRATIVE_TEMPLATES:
            compressed = pattern.sub(replacement, compressed)

        paragraphs = _PARAGRAPH_BREAK.split(compressed)
        compressed = "\n\n".join(
            self._summarize_paragraph(paragraph, preserve, anchors)
            if len(paragraph) > self.config.paragraph_threshold
            else paragraph
            for paragraph in paragraphs
        )
        return _keep_shorter(light, compressed)

    def _apply_aggressive(
        self,
        text: str,
        preserve: list[PreserveCategory],
        anchors: dict[PreserveCategory, list[str]],
        max_tokens: int | None,
    ) -> tuple[str, str]:
        moderate = self._apply_moderate(text, preserve, anchors)

        if preserve:
            compressed, method = _keep_shorter(moderate, self._to_bullets(moderate)), METHOD_BULLETS
        else:
            compressed, method = _keep_shorter(moderate, self._extract_keywords(moderate)), METHOD_KEYWORDS

        if max_tokens is not None and self.estimator.estimate(compressed) > max_tokens:
            compressed = self._truncate(compressed, max_tokens)

        return compressed, method

    # Helpers

    def _normalize_whitespace(self, text: str) -> str:
        text = _INLINE_WHITESPACE.sub(" ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        return _EXCESS_NEWLINES.sub("\n\n", text).strip()

    def _remove_duplicate_sentences(self, text: str) -> str:
        seen: set[str] = set()
        lines = []
        for line in text.split("\n"):
            if not line:
                lines.append(line)
                continue
            kept = []
            for sentence in _split_sentences(line):
                key = _content_key(sentence)
                if key and key in seen:
                    continue
                if key:
                    seen.add(key)
                kept.append(sentence)
            if kept:
                lines.append(" ".join(kept))
        return _EXCESS_NEWLINES.sub("\n\n", "\n".join(lines)).strip()

    def _summarize_paragraph(
        self,
        paragraph: str,
        preserve: list[PreserveCategory],
        anchors: dict[PreserveCategory, list[str]],
    ) -> str:
        lines = paragraph.split("\n")
        header = ""
        if len(lines) > 1 and lines[0].rstrip().endswith(":"):
            header, lines = lines[0], lines[1:]

        anchor_terms = [term.lower() for category in preserve for term in anchors.get(category, []) if term]
        patterns = [CATEGORY_PATTERNS[category] for category in preserve if category in CATEGORY_PATTERNS]

        kept: list[str] = []
        matched = 0
        for line in lines:
            for sentence in _split_sentences(line):
                lowered = sentence.lower()
                if any(term in lowered for term in anchor_terms):
                    kept.append(sentence)
                elif matched < self.config.summary_sentence_cap and any(p.search(sentence) for p in patterns):
                    kept.append(sentence)
                    matched += 1

        extraction = " ".join(kept)
        if len(extraction) < self.config.min_extraction_chars:
            return paragraph
        return f"{header}\n{extraction}" if header else extraction

    def _to_bullets(self, text: str) -> str:
        sentences = [sentence for line in text.split("\n") for sentence in _split_sentences(line)]
        return "\n".join(f"{BULLET}{sentence}" for sentence in sentences[: self.config.bullet_cap])

    def _extract_keywords(self, text: str) -> str:
        # most_common keeps first-occurrence order among equal counts
        words = Counter(_KEYWORD.findall(text.lower()))
        keywords = [word for word, _count in words.most_common(self.config.keyword_cap)]
        return f"Keywords: {', '.join(keywords)}"

    def _truncate(self, text: str, max_tokens: int) -> str:
        max_chars = self.estimator.max_chars(max_tokens)
        if len(text) <= max_chars:
            return text
        if max_chars <= len(TRUNCATION_MARKER):
            return text[:max_chars]
        return text[: max_chars - len(TRUNCATION_MARKER)].rstrip() + TRUNCATION_MARKER

    def _preserve_list(self, options: CompressionOptions) -> list[PreserveCategory]:
        preserve: list[PreserveCategory] = []
        for category in options.preserve_elements or []:
            if category not in preserve:
                preserve.append(PreserveCategory(category))
        return preserve

    def _confirm_preserved(self, compressed: str, options: CompressionOptions) -> list[PreserveCategory]:
        """Requested categories whose anchors (if any were given) survive in the output."""
        lowered = compressed.lower()
        confirmed = []
        for category in self._preserve_list(options):
            terms = [term.lower() for term in options.anchors.get(category, []) if term]
            if not terms or any(term in lowered for term in terms):
                confirmed.append(category)
        return confirmed


def get_optimal_compression_settings(
    subscription_tier: SubscriptionTier | str,
    operation_type: OperationType | str = OperationType.CHAPTER_GENERATION,
) -> CompressionOptions:
    """
    Preset compression options for a subscription tier.

    Premium users get lighter compression with a larger window; basic users get
    moderate compression under a 3000 token ceiling.
    """
    try:
        tier = SubscriptionTier(subscription_tier)
        OperationType(operation_type)
    except ValueError as e:
        raise ValidationError(str(e), details={"tier": str(subscription_tier), "operation": str(operation_type)}) from e

    if tier is SubscriptionTier.PREMIUM:
        return CompressionOptions(
            compression_level=CompressionLevel.LIGHT,
            context_window=6000,
            subscription_tier=tier,
            preserve_elements=[
                PreserveCategory.CHARACTER_NAMES,
                PreserveCategory.DIALOGUE,
                PreserveCategory.PLOT_POINTS,
                PreserveCategory.STORY_TONE,
            ],
        )
    return CompressionOptions(
        compression_level=CompressionLevel.MODERATE,
        context_window=4000,
        max_tokens=3000,
        subscription_tier=tier,
        preserve_elements=[PreserveCategory.CHARACTER_NAMES, PreserveCategory.PLOT_POINTS],
    )


def calculate_compression_savings(
    original_tokens: int,
    compression_ratio: float,
    input_token_cost: float | None = None,
) -> CompressionSavings:
    """Projected token and USD savings for compressing original_tokens at compression_ratio."""
    if input_token_cost is None:
        from ..config import get_config

        input_token_cost = get_config().compression.input_token_cost
    if original_tokens < 0 or compression_ratio < 0:
        raise ValidationError(
            "original_tokens and compression_ratio must be non-negative",
            details={"original_tokens": original_tokens, "compression_ratio": compression_ratio},
        )
    compressed_tokens = math.floor(original_tokens * compression_ratio)
    tokens_saved = original_tokens - compressed_tokens
    return CompressionSavings(
        tokens_saved=tokens_saved,
        cost_savings_usd=tokens_saved * input_token_cost,
        percentage_saved=(tokens_saved / original_tokens) * 100 if original_tokens > 0 else 0.0,
    )
