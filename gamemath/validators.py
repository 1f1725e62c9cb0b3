"""Request validators for simulation and crash endpoints."""
from decimal import Decimal

from gamemath.config import settings
from gamemath.errors import ErrorCode, GameMathError
from gamemath.logic.crash import INSTANT_BUST


def validate_spins(spins: int | None, limit: int | None = None) -> None:
    """
    Raises INVALID_REQUEST if spins is not in 1..limit.

    None is accepted and means "use the default".
    """
    limit = settings.sim_max_spins_per_request if limit is None else limit
    if spins is None:
        return
    if spins <= 0 or spins > limit:
        raise GameMathError(
            ErrorCode.INVALID_REQUEST,
            f"Spin count {spins} out of range. Allowed: 1..{limit}",
        )


def validate_bet(bet_amount: Decimal | None) -> None:
    """Raises INVALID_REQUEST if the bet is not positive."""
    if bet_amount is not None and bet_amount <= 0:
        raise GameMathError(
            ErrorCode.INVALID_REQUEST,
            f"Bet amount must be positive, got {bet_amount}",
        )


def validate_cashout(cashout_target: float | None) -> None:
    """Raises INVALID_REQUEST if the auto-cashout target is below 1.00x."""
    if cashout_target is not None and cashout_target < INSTANT_BUST:
        raise GameMathError(
            ErrorCode.INVALID_REQUEST,
            f"Cashout target must be at least {INSTANT_BUST:.2f}x, got {cashout_target}",
        )


def validate_crash_request(rounds: int, bet_amount: Decimal | None, cashout_target: float | None) -> None:
    """Run all validations on a crash simulation request."""
    validate_spins(rounds, settings.crash_max_rounds_per_request)
    validate_bet(bet_amount)
    validate_cashout(cashout_target)
