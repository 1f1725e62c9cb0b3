"""Analytic metrics tests."""
from decimal import Decimal

import pytest

from conftest import make_tier
from gamemath.logic import metrics
from gamemath.logic.metrics import Volatility, compute_metrics, volatility_label
from gamemath.logic.models import MathMode, PrizeModel


class TestSingleTierScenario:
    """1,000,000 tickets with a single 100x tier on 1000 tickets."""

    def test_hit_frequency(self, single_tier_model: PrizeModel):
        assert metrics.hit_frequency(single_tier_model) == pytest.approx(0.1)

    def test_rtp(self, single_tier_model: PrizeModel):
        assert metrics.rtp(single_tier_model) == pytest.approx(10.0)

    def test_average_win_size_is_rtp_over_hit_frequency(self, single_tier_model: PrizeModel):
        assert metrics.average_win_size(single_tier_model) == pytest.approx(100.0)

    def test_house_profit(self, single_tier_model: PrizeModel):
        """1,000,000 tickets at 10 with 10% RTP keeps 90% of sales."""
        assert metrics.estimated_house_profit(single_tier_model) == Decimal("9000000.00")

    def test_variance_and_label(self, single_tier_model: PrizeModel):
        # E[X^2] = 0.001 * 100^2 = 10, E[X]^2 = 0.01
        assert metrics.variance(single_tier_model) == pytest.approx(9.99)
        assert compute_metrics(single_tier_model).volatility_label == Volatility.LOW


class TestUnlimitedMode:
    """Probabilities are percentages and must not be scaled twice."""

    def test_rtp_uses_probability_times_payout(self, unlimited_model: PrizeModel):
        # 1% * 20x + 20% * 2x = 0.2 + 0.4 -> 60%
        assert metrics.rtp(unlimited_model) == pytest.approx(60.0)

    def test_hit_frequency_is_sum_of_probabilities(self, unlimited_model: PrizeModel):
        assert metrics.hit_frequency(unlimited_model) == pytest.approx(21.0)

    def test_house_profit_is_pool_only(self, unlimited_model: PrizeModel):
        assert metrics.estimated_house_profit(unlimited_model) is None
        assert compute_metrics(unlimited_model).total_pool_value is None

    def test_probabilities_above_100_pass_through(self):
        model = PrizeModel(
            mode=MathMode.UNLIMITED,
            tiers=[make_tier(2, probability=80.0), make_tier(5, probability=40.0)],
        )
        result = compute_metrics(model)
        assert result.hit_frequency == pytest.approx(120.0)
        assert result.hit_frequency_above_100 is True
        assert result.over_allocated is True


class TestAnomalies:
    """Values above 100% are reported raw, never clamped."""

    def test_over_allocated_pool_reports_raw_values(self):
        model = PrizeModel(total_tickets=100, tiers=[make_tier(3, weight=150)])
        result = compute_metrics(model)
        assert result.hit_frequency == pytest.approx(150.0)
        assert result.rtp == pytest.approx(450.0)
        assert result.rtp_above_100 is True
        assert result.over_allocated is True
        assert result.losing_tickets == -50

    def test_rtp_between_98_and_100_is_suspicious(self):
        model = PrizeModel(total_tickets=100, tiers=[make_tier(99, weight=1)])
        result = compute_metrics(model)
        assert result.rtp_suspiciously_high is True
        assert result.rtp_above_100 is False

    def test_normal_table_has_no_anomalies(self, small_pool_model: PrizeModel):
        result = compute_metrics(small_pool_model)
        assert not result.rtp_above_100
        assert not result.rtp_suspiciously_high
        assert not result.hit_frequency_above_100
        assert not result.over_allocated


class TestUndefinedValues:
    """Division-by-zero guards return None, never NaN or infinity."""

    def test_average_win_undefined_without_winners(self):
        model = PrizeModel(total_tickets=100, tiers=[make_tier(5, weight=0)])
        assert metrics.average_win_size(model) is None

    def test_empty_table(self):
        model = PrizeModel(total_tickets=100)
        result = compute_metrics(model)
        assert result.rtp == 0.0
        assert result.hit_frequency == 0.0
        assert result.variance == 0.0
        assert result.average_win_size is None

    def test_all_zero_probabilities(self):
        model = PrizeModel(mode=MathMode.UNLIMITED, tiers=[make_tier(10, probability=0.0)])
        assert metrics.average_win_size(model) is None


class TestVolatilityBoundaries:
    """Buckets are inclusive at the upper edge: <=10 Low, <=40 Medium, <=100 High."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0.0, Volatility.LOW),
            (10.0, Volatility.LOW),
            (10.0001, Volatility.MEDIUM),
            (40.0, Volatility.MEDIUM),
            (40.0001, Volatility.HIGH),
            (100.0, Volatility.HIGH),
            (100.0001, Volatility.VERY_HIGH),
        ],
    )
    def test_label(self, value: float, expected: Volatility):
        assert volatility_label(value) == expected

    def test_label_values_match_display_strings(self):
        assert [v.value for v in Volatility] == ["Low", "Medium", "High", "Very High"]


class TestMonotonicity:
    """Scaling weights with a fixed deck moves RTP and hit frequency the same way."""

    @pytest.mark.parametrize("factor", [0.5, 0.9, 1.1, 2.0])
    def test_scaling_weights(self, small_pool_model: PrizeModel, factor: float):
        scaled = small_pool_model.snapshot()
        for tier in scaled.tiers:
            tier.weight = int(tier.weight * factor)

        before_rtp, after_rtp = metrics.rtp(small_pool_model), metrics.rtp(scaled)
        before_hf, after_hf = metrics.hit_frequency(small_pool_model), metrics.hit_frequency(scaled)
        if factor < 1:
            assert after_rtp <= before_rtp
            assert after_hf <= before_hf
        else:
            assert after_rtp >= before_rtp
            assert after_hf >= before_hf


def test_metrics_do_not_mutate_model(small_pool_model: PrizeModel):
    before = small_pool_model.model_dump()
    compute_metrics(small_pool_model)
    assert small_pool_model.model_dump() == before
