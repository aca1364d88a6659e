"""
Context Optimization Module

Story-aware context compression for generation calls:
- CompressionEngine: light/moderate/aggressive strategies with running statistics
- StoryContextAnalyzer: complexity metrics and ordered context assembly
- ContextOptimizer: quality-gated optimization with a single light fallback
"""

from .analyzer import StoryContextAnalyzer, get_genre_complexity
from .compression import (
    CompressionEngine,
    CompressionStats,
    calculate_compression_savings,
    get_optimal_compression_settings,
)
from .config import CompressionConfig, load_config
from .models import (
    AnalysisMetrics,
    BatchItem,
    Character,
    CharacterRole,
    CompressionLevel,
    CompressionOptions,
    CompressionResult,
    CompressionSavings,
    CompressionStatsSnapshot,
    Genre,
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
from .optimizer import ContextOptimizer, get_optimization_recommendations

__all__ = [
    # Components
    "CompressionEngine",
    "CompressionStats",
    "StoryContextAnalyzer",
    "ContextOptimizer",
    # Functions
    "calculate_compression_savings",
    "get_genre_complexity",
    "get_optimal_compression_settings",
    "get_optimization_recommendations",
    # Config
    "CompressionConfig",
    "load_config",
    # Models
    "AnalysisMetrics",
    "BatchItem",
    "Character",
    "CharacterRole",
    "CompressionLevel",
    "CompressionOptions",
    "CompressionResult",
    "CompressionSavings",
    "CompressionStatsSnapshot",
    "Genre",
    "OperationKind",
    "OperationType",
    "OptimizationOptions",
    "OptimizationResult",
    "PlotImportance",
    "PlotPoint",
    "PreservationBreakdown",
    "PreserveCategory",
    "StoryContext",
    "StoryType",
]
