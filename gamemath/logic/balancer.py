"""Weight rescaling under constraints.

Every operation returns a new PrizeModel; the input is never mutated. Fixes
target a single constraint and do not re-run the validator, re-checking the
result is the caller's job.
"""
import logging
import math
from dataclasses import dataclass

from pydantic import BaseModel

from gamemath.config import settings
from gamemath.logic import metrics
from gamemath.logic.models import PrizeModel, PrizeTier


logger = logging.getLogger(__name__)

DISTRIBUTION_BUCKETS = ("base_game", "features", "jackpots")

# Target split of the RTP budget per volatility band (base_game, features, jackpots)
LOW_VOLATILITY_SPLIT = (0.80, 0.15, 0.05)
MEDIUM_VOLATILITY_SPLIT = (0.70, 0.20, 0.10)
HIGH_VOLATILITY_SPLIT = (0.60, 0.25, 0.15)

# Confidence in an auto-balance result, indexed by number of locked buckets
LOCK_CONFIDENCE = (95, 85, 70)


@dataclass
class BalanceOutcome:
    """Result of a weight rescale. `ratio` is None when it is undefined."""
    model: PrizeModel
    ratio: float | None
    applied: bool


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _min_weight(tier: PrizeTier, weight: int) -> int:
    # A winning tier that exists stays reachable
    if tier.is_winning:
        return max(1, weight)
    return max(0, weight)


def rtp_factor(model: PrizeModel) -> float:
    """sum(weight * payout) / total_tickets, independent of math mode."""
    if model.total_tickets <= 0:
        return 0.0
    return sum(t.weight * t.payout for t in model.tiers) / model.total_tickets


def scale_to_target_rtp(model: PrizeModel, target_rtp_pct: float) -> BalanceOutcome:
    """
    Uniformly scale all weights so the pool RTP approaches the target.

    Weights are rounded half up with a floor of 1, losing tiers included.
    Relative contribution of individual tiers is not preserved beyond that
    uniform scale.
    """
    current = rtp_factor(model)
    if current <= 0:
        return BalanceOutcome(model=model.snapshot(), ratio=None, applied=False)

    ratio = (target_rtp_pct / 100) / current
    updated = model.snapshot()
    for tier in updated.tiers:
        tier.weight = max(1, round_half_up(tier.weight * ratio))

    logger.info(
        "Scaled weights to target RTP %.2f%% (ratio=%.6f, rtp %.4f%% -> %.4f%%)",
        target_rtp_pct,
        ratio,
        current * 100,
        metrics.rtp(updated),
    )
    return BalanceOutcome(model=updated, ratio=ratio, applied=True)


def fix_rtp_ceiling(model: PrizeModel, max_rtp: float | None = None) -> BalanceOutcome:
    """Scale all weights down (floor-rounded) when RTP exceeds the ceiling."""
    max_rtp = settings.max_rtp if max_rtp is None else max_rtp
    current = rtp_factor(model)
    if current <= max_rtp:
        return BalanceOutcome(model=model.snapshot(), ratio=None, applied=False)

    ratio = max_rtp / current
    updated = model.snapshot()
    for tier in updated.tiers:
        tier.weight = _min_weight(tier, math.floor(tier.weight * ratio))

    logger.info("RTP ceiling fix: %.4f%% -> %.4f%%", current * 100, metrics.rtp(updated))
    return BalanceOutcome(model=updated, ratio=ratio, applied=True)


def fix_money_back_rate(model: PrizeModel, max_rate: float | None = None) -> BalanceOutcome:
    """Shrink only the money-back (1x) tiers down to the allowed share of the deck."""
    max_rate = settings.max_money_back_rate if max_rate is None else max_rate
    target_count = math.floor(model.total_tickets * max_rate)
    current_count = model.money_back_weight
    if current_count <= 0 or current_count <= target_count:
        return BalanceOutcome(model=model.snapshot(), ratio=None, applied=False)

    ratio = target_count / current_count
    updated = model.snapshot()
    for tier in updated.tiers:
        if tier.is_money_back:
            tier.weight = _min_weight(tier, math.floor(tier.weight * ratio))

    logger.info(
        "Money-back fix: %d -> %d tickets (cap %d)",
        current_count,
        updated.money_back_weight,
        target_count,
    )
    return BalanceOutcome(model=updated, ratio=ratio, applied=True)


def resize_deck(model: PrizeModel, new_total_tickets: int) -> BalanceOutcome:
    """Change the deck size, scaling every tier to keep its share of the deck."""
    old_total = model.total_tickets
    updated = model.snapshot()
    if old_total <= 0:
        updated.total_tickets = new_total_tickets
        return BalanceOutcome(model=updated, ratio=None, applied=True)

    ratio = new_total_tickets / old_total
    for tier in updated.tiers:
        tier.weight = _min_weight(tier, round_half_up(tier.weight * ratio))
    updated.total_tickets = new_total_tickets
    return BalanceOutcome(model=updated, ratio=ratio, applied=True)


# === RTP budget auto-balance ===


class RtpDistribution(BaseModel):
    """Split of the total RTP budget, in percentage points."""
    base_game: float = 0.0
    features: float = 0.0
    jackpots: float = 0.0

    @property
    def total(self) -> float:
        return self.base_game + self.features + self.jackpots


class BucketLocks(BaseModel):
    base_game: bool = False
    features: bool = False
    jackpots: bool = False


class AutoBalanceOutcome(BaseModel):
    distribution: RtpDistribution
    target_rtp: float
    confidence: int | None


def volatility_split(volatility: float) -> tuple[float, float, float]:
    """Split for a 1-10 volatility setting: <=3 low, <=7 medium, else high."""
    if volatility <= 3:
        return LOW_VOLATILITY_SPLIT
    if volatility <= 7:
        return MEDIUM_VOLATILITY_SPLIT
    return HIGH_VOLATILITY_SPLIT


def auto_balance_distribution(
    distribution: RtpDistribution,
    target_rtp: float,
    volatility: float,
    locks: BucketLocks | None = None,
) -> AutoBalanceOutcome:
    """
    Distribute a target RTP across base game, features and jackpots.

    Locked buckets keep their value. The remainder goes to unlocked buckets
    proportionally to the volatility split, rounded to 0.1, and the rounding
    error lands on the largest unlocked bucket so the buckets sum to the
    target.
    """
    locks = locks or BucketLocks()
    if target_rtp < settings.auto_balance_min_rtp:
        target_rtp = settings.auto_balance_default_rtp

    current = distribution.model_dump()
    locked = {name: getattr(locks, name) for name in DISTRIBUTION_BUCKETS}
    unlocked = [name for name in DISTRIBUTION_BUCKETS if not locked[name]]

    if not unlocked:
        return AutoBalanceOutcome(
            distribution=distribution.model_copy(),
            target_rtp=target_rtp,
            confidence=None,
        )

    split = dict(zip(DISTRIBUTION_BUCKETS, volatility_split(volatility)))
    locked_total = sum(current[name] for name in DISTRIBUTION_BUCKETS if locked[name])
    remaining = target_rtp - locked_total
    weight_total = sum(split[name] for name in unlocked)

    balanced = dict(current)
    for name in unlocked:
        balanced[name] = round_half_up(remaining * split[name] / weight_total * 10) / 10

    rounding_error = target_rtp - sum(balanced.values())
    if abs(rounding_error) > 1e-12:
        largest = max(unlocked, key=lambda name: balanced[name])
        balanced[largest] += rounding_error

    return AutoBalanceOutcome(
        distribution=RtpDistribution(**balanced),
        target_rtp=target_rtp,
        confidence=LOCK_CONFIDENCE[len(DISTRIBUTION_BUCKETS) - len(unlocked)],
    )
