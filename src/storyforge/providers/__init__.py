"""
Providers Module

Interface for the language-model clients invoked after context optimization.
"""

from .base import BaseProvider, CompletionResponse, ProviderConfig

__all__ = [
    "BaseProvider",
    "CompletionResponse",
    "ProviderConfig",
]
