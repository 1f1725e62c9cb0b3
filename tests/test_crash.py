"""Crash game model tests."""
from decimal import Decimal

import pytest

from gamemath.logic.crash import (
    draw_crash_point,
    instant_bust_probability,
    is_bust,
    simulate_bankroll_survival,
    simulate_crash,
    theoretical_cashout_rtp,
)
from gamemath.logic.models import CrashConfig
from gamemath.logic.rng import RNGBase, SeededRNG


class FixedRNG(RNGBase):
    """Returns a fixed value for every draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value

    def randint(self, a: int, b: int) -> int:
        return a


class TestCrashPoint:
    def test_formula_floored_to_cents(self):
        # 0.99 / 0.5 = 1.98
        assert draw_crash_point(CrashConfig(), FixedRNG(0.5)) == 1.98

    def test_below_one_is_instant_bust(self):
        # 0.99 / 1 = 0.99
        assert draw_crash_point(CrashConfig(), FixedRNG(0.0)) == 1.00

    def test_clamped_to_max(self):
        assert draw_crash_point(CrashConfig(max_multiplier=50), FixedRNG(0.999999)) == 50.0

    def test_below_min_multiplier_is_instant_bust(self):
        # 0.99 / 0.7 = 1.414 -> 1.41, under a 1.5x minimum
        config = CrashConfig(min_multiplier=1.5)
        assert draw_crash_point(config, FixedRNG(0.3)) == 1.00

    def test_bust_rule(self):
        assert is_bust(2.0, 1.99) is True
        assert is_bust(2.0, 2.0) is False
        assert is_bust(1.5, 3.0) is False

    def test_config_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            CrashConfig(min_multiplier=5.0, max_multiplier=2.0)


class TestInstantBustRate:
    """Empirical instant-bust rate matches 1 - 0.99 / 1.01."""

    def test_theoretical_probability(self):
        assert instant_bust_probability(CrashConfig()) == pytest.approx(1 - 0.99 / 1.01)

    def test_empirical_rate_over_100k_draws(self):
        config = CrashConfig(min_multiplier=1.00)
        rng = SeededRNG(seed=2025)
        rounds = 100_000
        busts = sum(1 for _ in range(rounds) if draw_crash_point(config, rng) <= 1.00)

        expected = instant_bust_probability(config) * 100
        assert busts / rounds * 100 == pytest.approx(expected, abs=1.0)

    def test_simulation_reports_bust_rate(self):
        result = simulate_crash(CrashConfig(), 100_000, rng=SeededRNG(seed=7))
        assert result.bust_rate == pytest.approx(1.98, abs=1.0)


class TestCashoutRtp:
    def test_rtp_is_99_percent_in_range(self):
        config = CrashConfig()
        for target in (1.5, 2.0, 10.0, 100.0):
            assert theoretical_cashout_rtp(config, target) == pytest.approx(99.0)

    def test_cashout_at_one_never_loses(self):
        assert theoretical_cashout_rtp(CrashConfig(), 1.0) == pytest.approx(100.0)

    def test_target_above_max_never_pays(self):
        assert theoretical_cashout_rtp(CrashConfig(max_multiplier=100), 150.0) == 0.0

    @pytest.mark.slow
    def test_simulated_rtp_converges(self):
        result = simulate_crash(CrashConfig(), 200_000, rng=SeededRNG(seed=11), cashout_target=2.0)
        assert result.rtp == pytest.approx(99.0, abs=1.5)


class TestSimulateCrash:
    def test_totals(self):
        result = simulate_crash(
            CrashConfig(),
            100,
            rng=SeededRNG(seed=3),
            bet_amount=Decimal("5"),
            cashout_target=2.0,
        )
        assert result.rounds == 100
        assert result.total_wagered == Decimal("500")
        assert result.house_profit == result.total_wagered - result.total_won
        # every win pays 5 * 2.0
        assert result.total_won % Decimal("10") == 0

    def test_history_is_trailing_window(self):
        rounds = 20
        rng = SeededRNG(seed=9)
        points = [draw_crash_point(CrashConfig(), rng) for _ in range(rounds)]
        result = simulate_crash(CrashConfig(), rounds, rng=SeededRNG(seed=9), history_size=5)

        assert result.history == points[-5:]
        assert result.max_multiplier == max(points)

    def test_zero_rounds(self):
        result = simulate_crash(CrashConfig(), 0, rng=SeededRNG(seed=1))
        assert result.rtp is None
        assert result.bust_rate is None
        assert result.history == []


class TestBankroll:
    def test_cashout_at_one_survives_to_cap(self):
        result = simulate_bankroll_survival(
            Decimal("100"), Decimal("10"), 1.0, rng=SeededRNG(seed=1), max_rounds=500
        )
        assert result.rounds_survived == 500
        assert result.ruined is False
        assert result.final_balance == Decimal("100")

    def test_unreachable_target_is_ruined(self):
        result = simulate_bankroll_survival(
            Decimal("100"), Decimal("10"), 5000.0, rng=SeededRNG(seed=1)
        )
        assert result.rounds_survived == 10
        assert result.ruined is True
        assert result.final_balance == Decimal("0")

    def test_round_cap_from_settings(self):
        result = simulate_bankroll_survival(Decimal("100"), Decimal("10"), 1.0, rng=SeededRNG(seed=1))
        assert result.rounds_survived == 10_000
