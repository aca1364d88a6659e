"""
Credit Accounting Configuration

Defines typed configuration for token pricing, credit conversion and
subscription tier policies.

- 1 credit = $0.001 of actual AI cost
- Markup is applied only when credits are purchased, never at usage time
- Tiers control the monthly grant and the balance accumulation cap
"""

import os
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SubscriptionTier(str, Enum):
    """Subscription levels."""

    BASIC = "basic"
    PREMIUM = "premium"


class TierPolicy(BaseModel):
    """Credit policy for one subscription tier."""

    monthly_credits: int = Field(..., ge=0, description="Credits granted each billing month")
    max_balance: int | None = Field(
        default=None,
        ge=0,
        description="Maximum balance after a grant (None = unlimited accumulation)",
    )
    price_monthly_usd: float = Field(..., ge=0.0, description="Monthly subscription price in USD")

    @model_validator(mode="after")
    def validate_cap(self) -> "TierPolicy":
        """A cap below one month's grant would revert credits on every grant."""
        if self.max_balance is not None and self.max_balance < self.monthly_credits:
            raise ValueError(
                f"max_balance ({self.max_balance}) must be at least monthly_credits ({self.monthly_credits})"
            )
        return self

    @property
    def credit_reversion(self) -> bool:
        """Whether credits above the cap revert to the platform."""
        return self.max_balance is not None


def default_tier_policies() -> dict[SubscriptionTier, TierPolicy]:
    """Reference tier table: basic caps accumulation at 3x the monthly grant."""
    return {
        SubscriptionTier.BASIC: TierPolicy(monthly_credits=5000, max_balance=15000, price_monthly_usd=7.99),
        SubscriptionTier.PREMIUM: TierPolicy(monthly_credits=10000, max_balance=None, price_monthly_usd=14.99),
    }


class BillingConfig(BaseModel):
    """Configuration for cost estimation and credit accounting."""

    model: str = Field(default="claude-sonnet-4-20250514", description="Model the token rates apply to")

    # Per-token USD rates
    input_token_cost: float = Field(default=0.000003, gt=0.0, description="USD per input token")
    output_token_cost: float = Field(default=0.000015, gt=0.0, description="USD per output token")

    # Credit conversion
    credits_per_usd: int = Field(default=1000, ge=1, description="Credits per USD of actual AI cost")
    platform_overhead: float = Field(
        default=0.3,
        ge=0.0,
        lt=1.0,
        description="Share of a purchase kept by the platform before conversion to credits",
    )

    tiers: dict[SubscriptionTier, TierPolicy] = Field(default_factory=default_tier_policies)

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, v: dict[SubscriptionTier, TierPolicy]) -> dict[SubscriptionTier, TierPolicy]:
        """Every tier must have a policy."""
        missing = [tier.value for tier in SubscriptionTier if tier not in v]
        if missing:
            raise ValueError(f"Missing tier policies: {', '.join(missing)}")
        return v

    model_config = ConfigDict(frozen=False)


def load_config() -> BillingConfig:
    """
    Load billing configuration from environment variables.

    Environment Variables:
        BILLING_MODEL: Model the rates apply to
        BILLING_INPUT_TOKEN_COST: USD per input token (default: 0.000003)
        BILLING_OUTPUT_TOKEN_COST: USD per output token (default: 0.000015)
        BILLING_CREDITS_PER_USD: Credits per USD (default: 1000)
        BILLING_PLATFORM_OVERHEAD: Purchase overhead share (default: 0.3)
    """
    return BillingConfig(
        model=os.getenv("BILLING_MODEL", "claude-sonnet-4-20250514"),
        input_token_cost=float(os.getenv("BILLING_INPUT_TOKEN_COST", "0.000003")),
        output_token_cost=float(os.getenv("BILLING_OUTPUT_TOKEN_COST", "0.000015")),
        credits_per_usd=int(os.getenv("BILLING_CREDITS_PER_USD", "1000")),
        platform_overhead=float(os.getenv("BILLING_PLATFORM_OVERHEAD", "0.3")),
    )
