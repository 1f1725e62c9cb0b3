"""Analytic metrics for a prize model.

All functions are pure: they read a PrizeModel and never mutate it. Values
above 100% are passed through unclamped so callers can flag them.
"""
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel

from gamemath.logic.models import MathMode, PrizeModel, PrizeTier


CENT = Decimal("0.01")

# Upper bounds (inclusive) of each volatility bucket. Shared with presets,
# do not tune.
VOLATILITY_LOW_MAX = 10.0
VOLATILITY_MEDIUM_MAX = 40.0
VOLATILITY_HIGH_MAX = 100.0

RTP_SUSPICIOUS_PCT = 98.0


class Volatility(str, Enum):
    """Volatility label bucketed from payout variance."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


class Metrics(BaseModel):
    """Derived metrics of a prize model snapshot."""
    mode: MathMode
    rtp: float
    hit_frequency: float
    variance: float
    volatility_label: Volatility
    average_win_size: float | None
    estimated_house_profit: Decimal | None
    total_winning_weight: int
    losing_tickets: int
    total_pool_value: Decimal | None

    # Anomalies: data-entry mistakes, distinct from commercial limits
    rtp_above_100: bool
    rtp_suspiciously_high: bool
    hit_frequency_above_100: bool
    over_allocated: bool


def draw_probabilities(model: PrizeModel) -> list[tuple[PrizeTier, float]]:
    """Per-draw probability (0..1) of each tier."""
    if model.mode == MathMode.POOL:
        if model.total_tickets <= 0:
            return [(t, 0.0) for t in model.tiers]
        return [(t, t.weight / model.total_tickets) for t in model.tiers]
    return [(t, t.probability / 100) for t in model.tiers]


def hit_frequency(model: PrizeModel) -> float:
    """Percentage of draws that win anything."""
    if model.mode == MathMode.POOL:
        if model.total_tickets <= 0:
            return 0.0
        return model.total_winning_weight / model.total_tickets * 100
    return model.total_probability


def rtp(model: PrizeModel) -> float:
    """
    Return to player as a percentage.

    Unlimited mode probabilities are already percentages, so
    sum(probability/100 * payout) * 100 reduces to sum(probability * payout).
    """
    if model.mode == MathMode.POOL:
        if model.total_tickets <= 0:
            return 0.0
        return sum(t.weight * t.payout for t in model.tiers) / model.total_tickets * 100
    return sum(t.probability * t.payout for t in model.tiers)


def variance(model: PrizeModel) -> float:
    """E[X^2] - E[X]^2 of the payout multiplier."""
    probs = draw_probabilities(model)
    ex = sum(p * t.payout for t, p in probs)
    ex2 = sum(p * t.payout ** 2 for t, p in probs)
    return ex2 - ex * ex


def volatility_label(value: float) -> Volatility:
    if value <= VOLATILITY_LOW_MAX:
        return Volatility.LOW
    if value <= VOLATILITY_MEDIUM_MAX:
        return Volatility.MEDIUM
    if value <= VOLATILITY_HIGH_MAX:
        return Volatility.HIGH
    return Volatility.VERY_HIGH


def total_pool_value(model: PrizeModel) -> Decimal:
    """Gross sales of a full deck."""
    return Decimal(model.total_tickets) * model.ticket_price


def estimated_house_profit(model: PrizeModel) -> Decimal | None:
    """Expected operator profit over a full deck. Pool mode only."""
    if model.mode != MathMode.POOL:
        return None
    edge = Decimal(1) - Decimal(repr(rtp(model))) / Decimal(100)
    return (total_pool_value(model) * edge).quantize(CENT, rounding=ROUND_HALF_UP)


def average_win_size(model: PrizeModel) -> float | None:
    """Average multiplier of a winning draw, or None when nothing wins."""
    hf = hit_frequency(model)
    if hf <= 0:
        return None
    return rtp(model) / hf


def compute_metrics(model: PrizeModel) -> Metrics:
    """Bundle every metric for display."""
    rtp_pct = rtp(model)
    hf = hit_frequency(model)
    var = variance(model)
    is_pool = model.mode == MathMode.POOL

    if is_pool:
        over_allocated = model.total_winning_weight > model.total_tickets
    else:
        over_allocated = model.total_probability > 100

    return Metrics(
        mode=model.mode,
        rtp=rtp_pct,
        hit_frequency=hf,
        variance=var,
        volatility_label=volatility_label(var),
        average_win_size=average_win_size(model),
        estimated_house_profit=estimated_house_profit(model),
        total_winning_weight=model.total_winning_weight,
        losing_tickets=model.losing_tickets,
        total_pool_value=total_pool_value(model) if is_pool else None,
        rtp_above_100=rtp_pct > 100,
        rtp_suspiciously_high=RTP_SUSPICIOUS_PCT < rtp_pct <= 100,
        hit_frequency_above_100=hf > 100,
        over_allocated=over_allocated,
    )
