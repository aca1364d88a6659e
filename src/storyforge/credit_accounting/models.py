"""
Credit Accounting Models

Data models for token usage, cost breakdowns and ledger entries.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from .config import SubscriptionTier


class TokenUsage(BaseModel):
    """Token usage reported by the provider (or estimated before the call)."""

    input_tokens: int = Field(..., ge=0, description="Prompt tokens")
    output_tokens: int = Field(..., ge=0, description="Completion tokens")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class CostBreakdown(BaseModel):
    """USD cost of a usage figure and the credits it converts to."""

    operation: str | None = Field(default=None, description="Operation type, when estimated from the table")
    complexity: str | None = Field(default=None, description="Complexity tier, when estimated from the table")
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    total_tokens: int = Field(..., ge=0)
    input_cost_usd: float = Field(..., ge=0.0)
    output_cost_usd: float = Field(..., ge=0.0)
    total_cost_usd: float = Field(..., ge=0.0)
    credits_required: int = Field(..., ge=0)
    markup_percentage: float = Field(default=0.0, description="Markup applied at usage time (always 0)")

    model_config = ConfigDict(frozen=True)


class CreditLedgerEntry(BaseModel):
    """Auditable record of one charge against a user's balance."""

    user_id: str = Field(..., min_length=1)
    usd_cost: float = Field(..., ge=0.0, description="Raw USD cost from actual usage")
    credits: int = Field(..., ge=0, description="ceil(usd_cost x credits_per_usd)")
    previous_balance: int = Field(..., ge=0)
    resulting_balance: int = Field(..., ge=0, description="Balance after the charge, clamped at 0")
    tier: SubscriptionTier
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def clamped(self) -> bool:
        """True when the charge exceeded the balance and was clamped."""
        return self.previous_balance - self.credits < 0

    model_config = ConfigDict(frozen=True)
