"""Crash game probability model.

Independent of the prize-tier engine: a round draws one continuous crash
multiplier and the player either cashes out below it or busts.
"""
import logging
import math
from collections import deque
from decimal import Decimal

from pydantic import BaseModel

from gamemath.config import settings
from gamemath.logic.models import CrashConfig
from gamemath.logic.rng import ProductionRNG, RNGBase


logger = logging.getLogger(__name__)

CRASH_NUMERATOR = 0.99
INSTANT_BUST = 1.00


class CrashSimulationResult(BaseModel):
    """Flat-bet, fixed-cashout strategy results."""
    rounds: int
    bet_amount: Decimal
    cashout_target: float
    total_wagered: Decimal
    total_won: Decimal
    house_profit: Decimal
    rtp: float | None
    busts: int
    bust_rate: float | None
    max_multiplier: float
    history: list[float]


class BankrollResult(BaseModel):
    """Outcome of playing one bankroll until ruin or the round cap."""
    rounds_survived: int
    final_balance: Decimal
    ruined: bool


def _floor_cents(value: float) -> float:
    return math.floor(value * 100) / 100


def draw_crash_point(config: CrashConfig, rng: RNGBase) -> float:
    """
    One crash point: 0.99 / (1 - r), capped at max_multiplier, floored to
    2 decimals. Anything below min_multiplier becomes an instant bust.
    """
    r = rng.random()
    crash_point = CRASH_NUMERATOR / (1 - r)
    if crash_point > config.max_multiplier:
        crash_point = config.max_multiplier
    crash_point = _floor_cents(crash_point)
    if crash_point < config.min_multiplier:
        crash_point = INSTANT_BUST
    return crash_point


def is_bust(cashout_target: float, crash_point: float) -> bool:
    """The player loses when the target is above the realized crash point."""
    return cashout_target > crash_point


def _survival(threshold: float, config: CrashConfig) -> float:
    """P(raw crash point >= threshold) for a threshold on the cent grid."""
    if threshold > _floor_cents(config.max_multiplier):
        return 0.0
    if threshold <= CRASH_NUMERATOR:
        return 1.0
    return CRASH_NUMERATOR / threshold


def _ceil_cents(value: float) -> float:
    return math.ceil(round(value * 100, 6)) / 100


def instant_bust_probability(config: CrashConfig) -> float:
    """Probability that a round ends at or below 1.00x."""
    threshold = max(_ceil_cents(config.min_multiplier), INSTANT_BUST + 0.01)
    return 1.0 - _survival(threshold, config)


def theoretical_cashout_rtp(config: CrashConfig, cashout_target: float) -> float:
    """RTP (%) of always cashing out at `cashout_target`."""
    if cashout_target <= INSTANT_BUST:
        return cashout_target * 100
    threshold = max(_ceil_cents(cashout_target), _ceil_cents(config.min_multiplier))
    return _survival(threshold, config) * cashout_target * 100


def simulate_crash(
    config: CrashConfig,
    rounds: int,
    rng: RNGBase | None = None,
    bet_amount: Decimal | None = None,
    cashout_target: float | None = None,
    history_size: int | None = None,
) -> CrashSimulationResult:
    """
    Play `rounds` rounds with a flat bet and a fixed auto-cashout.

    `history` keeps the last `history_size` crash points for plotting.
    """
    rng = rng or ProductionRNG()
    bet = bet_amount if bet_amount is not None else settings.crash_default_bet
    target = cashout_target if cashout_target is not None else settings.crash_default_cashout
    size = settings.crash_history_size if history_size is None else history_size
    win_amount = bet * Decimal(repr(target))

    total_wagered = Decimal(0)
    total_won = Decimal(0)
    busts = 0
    max_multiplier = 0.0
    history: deque = deque(maxlen=size)

    for _ in range(rounds):
        crash_point = draw_crash_point(config, rng)
        if crash_point <= INSTANT_BUST:
            busts += 1
        if crash_point > max_multiplier:
            max_multiplier = crash_point
        history.append(crash_point)

        total_wagered += bet
        if not is_bust(target, crash_point):
            total_won += win_amount

    rtp = float(total_won / total_wagered * 100) if total_wagered > 0 else None
    logger.info(
        "Crash simulation: rounds=%d cashout=%.2fx rtp=%s busts=%d",
        rounds,
        target,
        f"{rtp:.4f}" if rtp is not None else "n/a",
        busts,
    )
    return CrashSimulationResult(
        rounds=rounds,
        bet_amount=bet,
        cashout_target=target,
        total_wagered=total_wagered,
        total_won=total_won,
        house_profit=total_wagered - total_won,
        rtp=rtp,
        busts=busts,
        bust_rate=busts / rounds * 100 if rounds > 0 else None,
        max_multiplier=max_multiplier,
        history=list(history),
    )


def simulate_bankroll_survival(
    bankroll: Decimal,
    bet_amount: Decimal,
    cashout_target: float,
    rng: RNGBase | None = None,
    max_rounds: int | None = None,
    config: CrashConfig | None = None,
) -> BankrollResult:
    """
    Bet a fixed amount each round with a fixed auto-cashout until the
    balance is gone or the round cap is reached. Runs synchronously.
    """
    rng = rng or ProductionRNG()
    config = config or CrashConfig()
    cap = settings.bankroll_max_rounds if max_rounds is None else max_rounds
    win_amount = bet_amount * Decimal(repr(cashout_target))

    balance = bankroll
    rounds = 0
    while balance > 0 and rounds < cap:
        crash_point = draw_crash_point(config, rng)
        balance -= bet_amount
        if not is_bust(cashout_target, crash_point):
            balance += win_amount
        rounds += 1

    return BankrollResult(rounds_survived=rounds, final_balance=balance, ruined=balance <= 0)
