"""
Credit Accounting Module

Turns model usage into credits and balance updates:
- CostEstimator: fixed token table for pre-call estimates
- CostLedger: USD to credit conversion, clamped charges, tier-capped grants,
  multi-step and story-mode estimates

Usage:
    from storyforge.credit_accounting import CostLedger

    ledger = CostLedger()
    estimate = ledger.estimate_cost("chapter", "medium")
    if ledger.can_afford(balance, estimate):
        ...
        entry = ledger.record_charge(user_id, balance, usage, tier)
"""

from .config import BillingConfig, SubscriptionTier, TierPolicy, default_tier_policies, load_config
from .cost_estimator import (
    STORY_MODE_OPERATIONS,
    ComplexityTier,
    CostEstimator,
    ModelPricing,
    OperationCategory,
    StoryMode,
    TokenEstimate,
)
from .ledger import CostLedger
from .models import CostBreakdown, CreditLedgerEntry, TokenUsage

__all__ = [
    # Config
    "BillingConfig",
    "SubscriptionTier",
    "TierPolicy",
    "default_tier_policies",
    "load_config",
    # Estimation
    "ComplexityTier",
    "CostEstimator",
    "ModelPricing",
    "OperationCategory",
    "STORY_MODE_OPERATIONS",
    "StoryMode",
    "TokenEstimate",
    # Ledger
    "CostLedger",
    # Models
    "CostBreakdown",
    "CreditLedgerEntry",
    "TokenUsage",
]
