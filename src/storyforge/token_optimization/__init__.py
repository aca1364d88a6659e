"""
Token Optimization Module

Token estimation shared by compression, context budgeting and cost estimates.
"""

from .counter import (
    TokenEstimator,
    estimate_tokens,
    get_token_breakdown,
    get_token_estimator,
)

__all__ = [
    "TokenEstimator",
    "estimate_tokens",
    "get_token_breakdown",
    "get_token_estimator",
]
