"""
Unit Tests for the Credit Ledger

Tests USD-to-credit conversion, balance charges, subscription grants,
affordability checks and purchases.
"""

import math
from decimal import Decimal

import pytest

from storyforge.credit_accounting import (
    STORY_MODE_OPERATIONS,
    BillingConfig,
    CostLedger,
    OperationCategory,
    StoryMode,
    SubscriptionTier,
    TierPolicy,
    TokenUsage,
)
from storyforge.errors import ValidationError


class TestToCredits:
    """Tests for CostLedger.to_credits."""

    def test_rounds_up(self, ledger: CostLedger) -> None:
        """Test $0.0236 costs 24 credits."""
        assert ledger.to_credits(0.0236) == 24

    def test_deterministic(self, ledger: CostLedger) -> None:
        assert ledger.to_credits(0.0315) == ledger.to_credits(0.0315) == 32

    def test_exact_amounts_not_rounded_up(self, ledger: CostLedger) -> None:
        """Test float noise does not push exact amounts to the next credit."""
        assert ledger.to_credits(0.001) == 1
        assert ledger.to_credits(0.003) == 3
        assert ledger.to_credits(0.1 + 0.2) == 300

    def test_any_fraction_rounds_up(self, ledger: CostLedger) -> None:
        assert ledger.to_credits(0.0010001) == 2
        assert ledger.to_credits(0.000001) == 1

    def test_tiny_cost_is_one_credit(self, ledger: CostLedger) -> None:
        """Test fractions far below a credit still round up to one."""
        assert ledger.to_credits(1e-13) == 1
        assert ledger.to_credits(Decimal("1e-30")) == 1

    def test_large_cost(self, ledger: CostLedger) -> None:
        assert ledger.to_credits(1e16) == 10**19
        assert ledger.to_credits(Decimal("123456789012345.6789")) == 123456789012345679

    def test_out_of_range_cost_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.to_credits(Decimal("1e999999"))

    def test_zero(self, ledger: CostLedger) -> None:
        assert ledger.to_credits(0) == 0

    def test_decimal_input(self, ledger: CostLedger) -> None:
        assert ledger.to_credits(Decimal("0.0105")) == 11

    @pytest.mark.parametrize("bad", [-0.01, math.nan, math.inf, "0.5", None, True])
    def test_invalid_costs_rejected(self, ledger: CostLedger, bad: object) -> None:
        with pytest.raises(ValidationError):
            ledger.to_credits(bad)  # type: ignore[arg-type]


class TestCharge:
    """Tests for balance charges."""

    def test_charge_deducts_credits(self, ledger: CostLedger) -> None:
        assert ledger.charge(100, 0.05) == 50

    def test_overdraft_clamped_to_zero(self, ledger: CostLedger) -> None:
        """Test a charge far exceeding the balance returns exactly 0."""
        assert ledger.charge(5, 1000) == 0

    def test_negative_balance_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.charge(-1, 0.01)

    def test_record_charge(self, ledger: CostLedger) -> None:
        entry = ledger.record_charge("user-1", 100, TokenUsage(input_tokens=1000, output_tokens=500), "basic")

        assert entry.credits == 11
        assert entry.usd_cost == pytest.approx(0.0105)
        assert entry.previous_balance == 100
        assert entry.resulting_balance == 89
        assert entry.tier is SubscriptionTier.BASIC
        assert entry.input_tokens == 1000
        assert entry.output_tokens == 500
        assert entry.clamped is False

    def test_record_charge_clamped(self, ledger: CostLedger) -> None:
        entry = ledger.record_charge("user-1", 3, TokenUsage(input_tokens=1000, output_tokens=500), "premium")

        assert entry.resulting_balance == 0
        assert entry.clamped is True

    def test_record_charge_unknown_tier(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.record_charge("user-1", 100, TokenUsage(input_tokens=1, output_tokens=1), "gold")


class TestEstimates:
    """Tests for pre-call estimates."""

    def test_chapter_medium(self, ledger: CostLedger) -> None:
        estimate = ledger.estimate_cost("chapter", "medium")

        assert estimate.input_tokens == 500
        assert estimate.output_tokens == 2000
        assert estimate.total_tokens == 2500
        assert estimate.input_cost_usd == pytest.approx(0.0015)
        assert estimate.output_cost_usd == pytest.approx(0.03)
        assert estimate.total_cost_usd == pytest.approx(0.0315)
        assert estimate.credits_required == 32
        assert estimate.markup_percentage == 0.0

    def test_foundation_simple(self, ledger: CostLedger) -> None:
        estimate = ledger.estimate_cost("foundation", "simple")

        assert estimate.credits_required == 13
        assert estimate.operation == "foundation"
        assert estimate.complexity == "simple"

    def test_unknown_complexity_uses_medium(self, ledger: CostLedger) -> None:
        estimate = ledger.estimate_cost("chapter", "epic")

        assert estimate.complexity == "medium"
        assert estimate.credits_required == 32

    def test_unknown_operation_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.estimate_cost("translation")

    def test_prompt_size_overrides_table_input(self, ledger: CostLedger) -> None:
        """Test a known prompt size replaces the table's input estimate."""
        estimate = ledger.estimate_cost("chapter", "medium", input_tokens=36000)

        assert estimate.input_tokens == 36000
        assert estimate.output_tokens == 2000
        assert estimate.total_cost_usd == pytest.approx(0.138)
        assert estimate.credits_required == 138

    def test_negative_prompt_size_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.estimate_cost("chapter", input_tokens=-1)

    def test_actual_cost(self, ledger: CostLedger) -> None:
        breakdown = ledger.calculate_actual_cost(TokenUsage(input_tokens=2000, output_tokens=1000))

        assert breakdown.total_cost_usd == pytest.approx(0.021)
        assert breakdown.credits_required == 21
        assert breakdown.operation is None

    def test_can_afford(self, ledger: CostLedger) -> None:
        estimate = ledger.estimate_cost("chapter")

        assert ledger.can_afford(32, estimate) is True
        assert ledger.can_afford(31, estimate) is False
        assert ledger.can_afford(10, 10) is True


class TestSubscriptionGrants:
    """Tests for monthly grants and accumulation caps."""

    def test_basic_grant(self, ledger: CostLedger) -> None:
        assert ledger.grant_subscription_credits("basic", 0) == 5000

    def test_basic_grant_capped(self, ledger: CostLedger) -> None:
        """Test basic balances never exceed 15000 after a grant."""
        assert ledger.grant_subscription_credits("basic", 12000) == 15000

    def test_basic_grant_clamps_existing_excess(self, ledger: CostLedger) -> None:
        assert ledger.grant_subscription_credits("basic", 20000) == 15000

    def test_premium_uncapped(self, ledger: CostLedger) -> None:
        assert ledger.grant_subscription_credits(SubscriptionTier.PREMIUM, 50000) == 60000

    def test_unknown_tier_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.grant_subscription_credits("enterprise", 0)

    def test_tier_policies(self, ledger: CostLedger) -> None:
        basic = ledger.get_tier_policy("basic")
        premium = ledger.get_tier_policy("premium")

        assert basic.max_balance == 15000
        assert basic.credit_reversion is True
        assert premium.max_balance is None
        assert premium.credit_reversion is False

    def test_cap_below_grant_rejected(self) -> None:
        with pytest.raises(ValueError):
            TierPolicy(monthly_credits=5000, max_balance=1000, price_monthly_usd=1.0)


class TestPurchases:
    """Tests for credit purchases after platform overhead."""

    def test_basic_price(self, ledger: CostLedger) -> None:
        assert ledger.credits_for_purchase(7.99) == 5593

    def test_rounds_down(self, ledger: CostLedger) -> None:
        assert ledger.credits_for_purchase(0.0015) == 1

    def test_large_purchase(self, ledger: CostLedger) -> None:
        assert ledger.credits_for_purchase(1e16) == 7 * 10**18

    def test_custom_rate(self) -> None:
        ledger = CostLedger(BillingConfig(credits_per_usd=2000))

        assert ledger.to_credits(0.0236) == 48
        assert ledger.credits_for_purchase(1) == 1400


class TestMultiStepEstimates:
    """Tests for estimates covering several generation steps."""

    def test_sums_per_step_credits(self, ledger: CostLedger) -> None:
        """Test foundation (24) plus chapter (32) credits."""
        estimate = ledger.estimate_multi_step(["foundation", "chapter"])

        assert estimate.credits_required == 56
        assert estimate.input_tokens == 900
        assert estimate.output_tokens == 3500
        assert estimate.total_cost_usd == pytest.approx(0.0552)
        assert estimate.operation == "multi_step: foundation, chapter"

    def test_each_step_rounded_separately(self, ledger: CostLedger) -> None:
        """Test two 5.1-credit steps cost 12 credits, not ceil(10.2)."""
        estimate = ledger.estimate_multi_step([OperationCategory.IMPROVEMENT] * 2, "simple")

        assert estimate.credits_required == 12
        assert ledger.to_credits(estimate.total_cost_usd) == 11

    def test_empty_sequence_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.estimate_multi_step([])

    def test_unknown_operation_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.estimate_multi_step(["foundation", "translation"])

    @pytest.mark.parametrize(
        ("mode", "credits"),
        [("story", 56), ("novel", 120), ("choice_book", 88), ("ai_builder", 32)],
    )
    def test_story_modes(self, ledger: CostLedger, mode: str, credits: int) -> None:
        assert ledger.estimate_story_mode(mode).credits_required == credits

    def test_story_mode_operations(self) -> None:
        assert STORY_MODE_OPERATIONS[StoryMode.NOVEL].count(OperationCategory.CHAPTER) == 3

    def test_unknown_story_mode_rejected(self, ledger: CostLedger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ledger.estimate_story_mode("comic")

        assert "story" in exc_info.value.details["valid_modes"]
