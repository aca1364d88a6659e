"""
Unit Tests for the Cost Estimator

Tests the fixed token-estimate table, complexity fallback and per-token pricing.
"""

import pytest

from storyforge.credit_accounting import (
    BillingConfig,
    ComplexityTier,
    CostEstimator,
    ModelPricing,
    OperationCategory,
    TokenEstimate,
)
from storyforge.errors import ValidationError


class TestModelPricing:
    """Tests for ModelPricing dataclass."""

    @pytest.fixture
    def sample_pricing(self) -> ModelPricing:
        return ModelPricing(
            model_name="claude-sonnet-4-20250514",
            input_price_per_token=0.000003,
            output_price_per_token=0.000015,
        )

    def test_calculate_cost(self, sample_pricing: ModelPricing) -> None:
        input_cost, output_cost = sample_pricing.calculate_cost(1000, 1000)

        assert input_cost == 0.003
        assert output_cost == 0.015

    def test_zero_tokens(self, sample_pricing: ModelPricing) -> None:
        assert sample_pricing.calculate_cost(0, 0) == (0.0, 0.0)


class TestCostEstimator:
    """Tests for CostEstimator."""

    @pytest.fixture
    def estimator(self) -> CostEstimator:
        return CostEstimator(BillingConfig())

    def test_table_is_exhaustive(self, estimator: CostEstimator) -> None:
        """Test every operation has an estimate for every complexity."""
        for operation in OperationCategory:
            for complexity in ComplexityTier:
                estimate = estimator.get_token_estimate(operation, complexity)
                assert estimate.input_tokens > 0
                assert estimate.output_tokens > 0

    def test_estimates_grow_with_complexity(self, estimator: CostEstimator) -> None:
        for operation in OperationCategory:
            simple = estimator.get_token_estimate(operation, "simple")
            medium = estimator.get_token_estimate(operation, "medium")
            complex_ = estimator.get_token_estimate(operation, "complex")
            assert simple.output_tokens < medium.output_tokens < complex_.output_tokens

    def test_known_estimate(self, estimator: CostEstimator) -> None:
        assert estimator.get_token_estimate("character", "complex") == TokenEstimate(400, 1200)

    def test_unknown_complexity_falls_back(self, estimator: CostEstimator) -> None:
        assert estimator.resolve_complexity("legendary") is ComplexityTier.MEDIUM
        assert estimator.get_token_estimate("improvement", "legendary") == TokenEstimate(400, 600)

    def test_input_tokens_override(self, estimator: CostEstimator) -> None:
        estimate = estimator.get_token_estimate("chapter", "simple", input_tokens=9000)

        assert estimate == TokenEstimate(9000, 1000)
        assert estimator.get_token_estimate("chapter", "simple", input_tokens=0) == TokenEstimate(0, 1000)

    def test_unknown_operation_rejected(self, estimator: CostEstimator) -> None:
        with pytest.raises(ValidationError) as exc_info:
            estimator.get_token_estimate("poem")

        assert "valid_operations" in exc_info.value.details

    def test_calculate_cost_total(self, estimator: CostEstimator) -> None:
        input_cost, output_cost, total = estimator.calculate_cost(400, 1500)

        assert input_cost == pytest.approx(0.0012)
        assert output_cost == pytest.approx(0.0225)
        assert total == pytest.approx(0.0237)

    def test_estimate_to_usage(self) -> None:
        usage = TokenEstimate(200, 800).to_usage()

        assert usage.input_tokens == 200
        assert usage.total_tokens == 1000

    def test_pricing_follows_config(self) -> None:
        estimator = CostEstimator(BillingConfig(input_token_cost=0.00001, output_token_cost=0.00002))

        assert estimator.pricing.input_price_per_token == 0.00001
        assert estimator.calculate_cost(100, 100)[2] == pytest.approx(0.003)
