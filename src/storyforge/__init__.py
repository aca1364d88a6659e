"""
Storyforge - Adaptive Context Compression & Credit Accounting

Story-aware prompt compression, quality-gated context optimization and
credit accounting for LLM-backed story generation.
"""

__version__ = "1.0.0"

from .context_optimization import ContextOptimizer, StoryContext
from .credit_accounting import CostLedger
from .generation import StoryGenerationService

__all__ = ["ContextOptimizer", "CostLedger", "StoryContext", "StoryGenerationService", "__version__"]
