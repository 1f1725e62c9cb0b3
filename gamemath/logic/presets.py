"""Prize table presets, designed for a 1,000,000 ticket deck."""
from dataclasses import dataclass

from gamemath.config import settings
from gamemath.logic.models import MatchN, MathMode, PrizeModel, PrizeTier


@dataclass(frozen=True)
class PresetPrize:
    name: str
    symbol_id: str
    payout: float
    weight: int
    probability: float
    count: int = 3


@dataclass(frozen=True)
class Preset:
    key: str
    name: str
    description: str
    prizes: tuple[PresetPrize, ...]


PRIZE_PRESETS: dict[str, Preset] = {
    "CASUAL": Preset(
        key="CASUAL",
        name="Casual / Low Volatility",
        description="Frequent small wins (~39% hit rate). Best for retention.",
        prizes=(
            PresetPrize("Jackpot", "sym_diamond", 100, 10, 0.001),
            PresetPrize("Big Win", "sym_gold", 20, 1000, 0.1),
            PresetPrize("Medium Win", "sym_silver", 5, 15000, 1.5),
            PresetPrize("Small Win", "sym_bronze", 2, 75000, 7.5),
            PresetPrize("Money Back", "sym_cherry", 1, 400000, 40.0),
        ),
    ),
    "BALANCED": Preset(
        key="BALANCED",
        name="Standard / Balanced",
        description="A classic mix. ~34% hit rate with decent prizes.",
        prizes=(
            PresetPrize("Grand Prize", "sym_diamond", 2500, 5, 0.0005),
            PresetPrize("Major", "sym_ruby", 500, 50, 0.005),
            PresetPrize("Minor", "sym_coin", 100, 1000, 0.1),
            PresetPrize("Mini", "sym_bill", 10, 53000, 5.3),
            PresetPrize("Free Play", "sym_cherries", 1, 290000, 29.0),
        ),
    ),
    "HIGH_ROLLER": Preset(
        key="HIGH_ROLLER",
        name="High Roller / Volatile",
        description="Massive wins, lower hit rate (~27%). Chasing the dream.",
        prizes=(
            PresetPrize("MEGA JACKPOT", "sym_crown", 50000, 1, 0.0001),
            PresetPrize("Super Win", "sym_bar_gold", 1000, 100, 0.01),
            PresetPrize("Big Win", "sym_seven", 200, 2000, 0.2),
            PresetPrize("Nice Win", "sym_bell", 20, 10000, 1.0),
            PresetPrize("Console", "sym_plum", 1, 210000, 21.0),
        ),
    ),
}


def get_preset(key: str) -> Preset:
    preset = PRIZE_PRESETS.get(key.upper())
    if preset is None:
        raise KeyError(f"Unknown preset: {key}. Available: {list(PRIZE_PRESETS)}")
    return preset


def preset_tiers(key: str, total_tickets: int) -> list[PrizeTier]:
    """
    Build fresh tiers for a preset, with weights scaled to the deck size.

    Tier ids are stable ("casual_1", ...) so a preset always hashes the same.
    """
    preset = get_preset(key)
    ratio = total_tickets / settings.preset_base_deck_size
    return [
        PrizeTier(
            id=f"{preset.key.lower()}_{index}",
            name=p.name,
            condition=MatchN(count=p.count, symbol_id=p.symbol_id),
            payout=p.payout,
            weight=int(p.weight * ratio + 0.5),
            probability=p.probability,
        )
        for index, p in enumerate(preset.prizes, start=1)
    ]


def apply_preset(model: PrizeModel, key: str) -> PrizeModel:
    """Return a copy of `model` whose prize table is replaced by a preset."""
    updated = model.snapshot()
    updated.tiers = preset_tiers(key, model.total_tickets)
    return updated


def preset_model(key: str, total_tickets: int | None = None, mode: MathMode = MathMode.POOL) -> PrizeModel:
    """Standalone model built from a preset."""
    total = total_tickets or settings.default_total_tickets
    return PrizeModel(mode=mode, total_tickets=total, tiers=preset_tiers(key, total))
