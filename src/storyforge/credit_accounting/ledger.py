"""
Credit Ledger

Converts model usage into credits and computes balance updates.

- Every charge routes through to_credits: ceil(usd x credits_per_usd)
- Charges clamp at zero; affordability is checked before the call using estimates
- Subscription grants respect the tier's accumulation cap

The ledger computes new balances only. Persisting them (atomically, one
in-flight charge per user) is the caller's job.
"""

import logging
import math
from collections.abc import Sequence
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, DecimalException, InvalidOperation

from ..errors import ValidationError
from .config import BillingConfig, SubscriptionTier, TierPolicy
from .cost_estimator import STORY_MODE_OPERATIONS, ComplexityTier, CostEstimator, OperationCategory, StoryMode
from .models import CostBreakdown, CreditLedgerEntry, TokenUsage

logger = logging.getLogger(__name__)

# A double carries 15 reliable significant digits; digits past that are
# binary representation noise and never reach the credit ceiling
_FLOAT_DIGITS = ".15g"


class CostLedger:
    """
    Credit accounting for generation usage.

    Stateless apart from configuration; balances are passed in and returned.
    """

    def __init__(
        self,
        config: BillingConfig | None = None,
        estimator: CostEstimator | None = None,
    ):
        """
        Initialize ledger.

        Args:
            config: Billing configuration (global config if not provided)
            estimator: Cost estimator sharing the same pricing
        """
        if config is None:
            from ..config import get_config

            config = get_config().billing
        self.config = config
        self.estimator = estimator or CostEstimator(self.config)

    def estimate_cost(
        self,
        operation_type: OperationCategory | str,
        complexity: ComplexityTier | str = ComplexityTier.MEDIUM,
        input_tokens: int | None = None,
    ) -> CostBreakdown:
        """
        Estimate the cost of an operation before calling the model.

        Args:
            operation_type: foundation, character, chapter or improvement
            complexity: simple, medium or complex (unknown values use medium)
            input_tokens: Size of the prompt actually being sent; replaces the
                table's input estimate when given

        Returns:
            CostBreakdown with USD cost and credits required

        Raises:
            ValidationError: If the operation type is unknown
        """
        tier = self.estimator.resolve_complexity(complexity)
        estimate = self.estimator.get_token_estimate(operation_type, tier, input_tokens=input_tokens)

        return self._build_breakdown(
            estimate.input_tokens,
            estimate.output_tokens,
            operation=OperationCategory(operation_type).value,
            complexity=tier.value,
        )

    def estimate_multi_step(
        self,
        operations: Sequence[OperationCategory | str],
        complexity: ComplexityTier | str = ComplexityTier.MEDIUM,
    ) -> CostBreakdown:
        """
        Estimate a sequence of operations charged one after another.

        Each step is rounded up to whole credits on its own, as it will be when
        charged, so credits_required is the sum of the per-step credits.

        Raises:
            ValidationError: If the sequence is empty or names an unknown operation
        """
        if not operations:
            raise ValidationError("At least one operation is required", details={"operations": []})

        steps = [self.estimate_cost(operation, complexity) for operation in operations]
        total_cost = sum((Decimal(str(step.total_cost_usd)) for step in steps), Decimal(0))

        return CostBreakdown(
            operation=f"multi_step: {', '.join(step.operation for step in steps)}",
            complexity=steps[0].complexity,
            input_tokens=sum(step.input_tokens for step in steps),
            output_tokens=sum(step.output_tokens for step in steps),
            total_tokens=sum(step.total_tokens for step in steps),
            input_cost_usd=float(sum((Decimal(str(step.input_cost_usd)) for step in steps), Decimal(0))),
            output_cost_usd=float(sum((Decimal(str(step.output_cost_usd)) for step in steps), Decimal(0))),
            total_cost_usd=float(total_cost),
            credits_required=sum(step.credits_required for step in steps),
        )

    def estimate_story_mode(
        self,
        mode: StoryMode | str,
        complexity: ComplexityTier | str = ComplexityTier.MEDIUM,
    ) -> CostBreakdown:
        """Estimate the operations a story creation mode runs up front."""
        try:
            operations = STORY_MODE_OPERATIONS[StoryMode(mode)]
        except ValueError as e:
            raise ValidationError(
                f"Unknown story mode: {mode}",
                details={"mode": str(mode), "valid_modes": [m.value for m in StoryMode]},
            ) from e
        return self.estimate_multi_step(operations, complexity)

    def calculate_actual_cost(self, usage: TokenUsage) -> CostBreakdown:
        """Cost of the usage a provider actually reported."""
        return self._build_breakdown(usage.input_tokens, usage.output_tokens)

    def to_credits(self, usd_cost: float | Decimal) -> int:
        """
        Convert a USD cost to whole credits, rounding up.

        Computed exactly in Decimal, so identical inputs always yield identical
        credits and any positive cost is at least one credit.

        Raises:
            ValidationError: If the cost is negative or not a finite number
        """
        amount = self._to_decimal(usd_cost, "usd_cost")
        return self._to_integral(amount, self.config.credits_per_usd, ROUND_CEILING, "usd_cost")

    def charge(self, balance: int, usd_cost: float | Decimal) -> int:
        """
        Deduct the credits for usd_cost from balance.

        Never returns a negative balance; overdrafts are clamped to zero.
        """
        self._validate_balance(balance)
        credits = self.to_credits(usd_cost)
        new_balance = max(0, balance - credits)
        if balance - credits < 0:
            logger.warning(
                f"Charge of {credits} credits exceeded balance {balance}, clamped to 0",
                extra={"balance": balance, "credits": credits, "usd_cost": float(usd_cost)},
            )
        return new_balance

    def record_charge(
        self,
        user_id: str,
        balance: int,
        usage: TokenUsage,
        tier: SubscriptionTier | str,
    ) -> CreditLedgerEntry:
        """
        Charge actual usage and produce an auditable ledger entry.

        Args:
            user_id: User being charged
            balance: Balance before the charge
            usage: Token usage reported by the provider
            tier: Subscription tier at charge time

        Returns:
            CreditLedgerEntry with the resulting balance
        """
        self.get_tier_policy(tier)
        breakdown = self.calculate_actual_cost(usage)
        new_balance = self.charge(balance, breakdown.total_cost_usd)

        entry = CreditLedgerEntry(
            user_id=user_id,
            usd_cost=breakdown.total_cost_usd,
            credits=breakdown.credits_required,
            previous_balance=balance,
            resulting_balance=new_balance,
            tier=SubscriptionTier(tier),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        logger.info(
            f"Charged {entry.credits} credits to {user_id}",
            extra={
                "user_id": user_id,
                "credits": entry.credits,
                "usd_cost": entry.usd_cost,
                "resulting_balance": new_balance,
                "tier": entry.tier.value,
            },
        )
        return entry

    def grant_subscription_credits(self, tier: SubscriptionTier | str, balance: int) -> int:
        """
        Add the tier's monthly grant to balance.

        Capped tiers clamp the result to their maximum; the excess reverts to
        the platform. Uncapped tiers accumulate without limit.
        """
        self._validate_balance(balance)
        policy = self.get_tier_policy(tier)

        new_balance = balance + policy.monthly_credits
        if policy.max_balance is not None and new_balance > policy.max_balance:
            reverted = new_balance - policy.max_balance
            logger.info(
                f"Balance capped at {policy.max_balance}, {reverted} credits reverted",
                extra={"tier": str(SubscriptionTier(tier).value), "balance": balance, "reverted_credits": reverted},
            )
            new_balance = policy.max_balance

        return new_balance

    def can_afford(self, balance: int, cost: CostBreakdown | int) -> bool:
        """Pre-call check: does balance cover the estimated credits?"""
        self._validate_balance(balance)
        credits_required = cost.credits_required if isinstance(cost, CostBreakdown) else cost
        return balance >= credits_required

    def credits_for_purchase(self, price_usd: float | Decimal) -> int:
        """Credits bought for price_usd after platform overhead, rounded down."""
        amount = self._to_decimal(price_usd, "price_usd")
        share = 1 - Decimal(str(self.config.platform_overhead))
        return self._to_integral(amount * share, self.config.credits_per_usd, ROUND_FLOOR, "price_usd")

    def get_tier_policy(self, tier: SubscriptionTier | str) -> TierPolicy:
        try:
            return self.config.tiers[SubscriptionTier(tier)]
        except ValueError as e:
            raise ValidationError(
                f"Unknown subscription tier: {tier}",
                details={"tier": str(tier), "valid_tiers": [t.value for t in SubscriptionTier]},
            ) from e

    def _build_breakdown(
        self,
        input_tokens: int,
        output_tokens: int,
        operation: str | None = None,
        complexity: str | None = None,
    ) -> CostBreakdown:
        input_cost, output_cost, total_cost = self.estimator.calculate_cost(input_tokens, output_tokens)
        return CostBreakdown(
            operation=operation,
            complexity=complexity,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            input_cost_usd=input_cost,
            output_cost_usd=output_cost,
            total_cost_usd=total_cost,
            credits_required=self.to_credits(total_cost),
        )

    def _to_decimal(self, value: float | Decimal, name: str) -> Decimal:
        if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
            raise ValidationError(f"{name} must be a number", details={name: repr(value)})
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"{name} must be finite", details={name: repr(value)})
        try:
            if isinstance(value, Decimal):
                amount = value
            elif isinstance(value, float):
                amount = Decimal(format(value, _FLOAT_DIGITS))
            else:
                amount = Decimal(value)
        except InvalidOperation as e:
            raise ValidationError(f"{name} is not a valid amount", details={name: repr(value)}) from e
        if not amount.is_finite() or amount < 0:
            raise ValidationError(f"{name} must be a non-negative finite amount", details={name: repr(value)})
        return amount

    def _to_integral(self, amount: Decimal, credits_per_usd: int, rounding: str, name: str) -> int:
        try:
            return int((amount * credits_per_usd).to_integral_value(rounding=rounding))
        except DecimalException as e:
            raise ValidationError(f"{name} is out of range", details={name: str(amount)}) from e

    def _validate_balance(self, balance: int) -> None:
        if isinstance(balance, bool) or not isinstance(balance, int) or balance < 0:
            raise ValidationError("balance must be a non-negative integer", details={"balance": repr(balance)})
