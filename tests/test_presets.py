"""Prize table preset tests."""
from decimal import Decimal

import pytest

from gamemath.logic import metrics
from gamemath.logic.models import MathMode, PrizeModel
from gamemath.logic.presets import PRIZE_PRESETS, apply_preset, get_preset, preset_model, preset_tiers


class TestPresetCatalog:
    def test_three_presets(self):
        assert set(PRIZE_PRESETS) == {"CASUAL", "BALANCED", "HIGH_ROLLER"}

    def test_lookup_is_case_insensitive(self):
        assert get_preset("balanced").key == "BALANCED"

    def test_unknown_preset_raises(self):
        with pytest.raises(KeyError):
            get_preset("NOPE")

    @pytest.mark.parametrize(
        "key,expected_rtp",
        [("CASUAL", 64.6), ("BALANCED", 95.75), ("HIGH_ROLLER", 96.0)],
    )
    def test_rtp_on_base_deck(self, key: str, expected_rtp: float):
        model = preset_model(key, 1_000_000)
        assert metrics.rtp(model) == pytest.approx(expected_rtp)


class TestScaling:
    """Weights follow the deck size, rounded half up."""

    def test_scaled_to_smaller_deck(self):
        tiers = preset_tiers("CASUAL", 100_000)
        assert [t.weight for t in tiers] == [1, 100, 1500, 7500, 40000]

    def test_half_ticket_rounds_up(self):
        tiers = preset_tiers("HIGH_ROLLER", 500_000)
        assert tiers[0].weight == 1

    def test_rtp_survives_scaling(self):
        base = metrics.rtp(preset_model("BALANCED", 1_000_000))
        scaled = metrics.rtp(preset_model("BALANCED", 2_000_000))
        assert scaled == pytest.approx(base)

    def test_stable_ids(self):
        first = [t.id for t in preset_tiers("CASUAL", 1000)]
        second = [t.id for t in preset_tiers("casual", 1000)]
        assert first == second == ["casual_1", "casual_2", "casual_3", "casual_4", "casual_5"]

    def test_fresh_tier_objects_each_build(self):
        first = preset_tiers("CASUAL", 1000)
        second = preset_tiers("CASUAL", 1000)
        first[0].weight = 99
        assert second[0].weight == 0


class TestApplyPreset:
    def test_replaces_tiers_keeps_pool_settings(self):
        model = PrizeModel(total_tickets=200_000, ticket_price=Decimal("5"))
        updated = apply_preset(model, "HIGH_ROLLER")

        assert updated.total_tickets == 200_000
        assert updated.ticket_price == Decimal("5")
        assert [t.name for t in updated.tiers][0] == "MEGA JACKPOT"
        assert model.tiers == []

    def test_preset_model_defaults(self):
        model = preset_model("CASUAL")
        assert model.mode == MathMode.POOL
        assert model.total_tickets == 1_000_000
        assert len(model.tiers) == 5
