"""Commercial viability rules for Pool-mode prize tables.

Violations are returned, never raised, so every broken rule can be shown at
once. Unlimited-mode tables are exempt from the commercial rules.
"""
from dataclasses import dataclass, field
from decimal import Decimal

from pydantic import BaseModel, Field

from gamemath.config import settings
from gamemath.logic import metrics
from gamemath.logic.models import MathMode, PrizeModel


@dataclass(frozen=True)
class CommercialLimits:
    """Thresholds as fractions (0.85 == 85%)."""
    max_rtp: float = field(default_factory=lambda: settings.max_rtp)
    min_loser_rate: float = field(default_factory=lambda: settings.min_loser_rate)
    max_money_back_rate: float = field(default_factory=lambda: settings.max_money_back_rate)


class ValidationWarning(BaseModel):
    """Non-blocking risk notice."""
    title: str
    message: str
    details: str | None = None


class ValidationResult(BaseModel):
    """Outcome of a validation pass."""
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False


def _pct(fraction: float) -> str:
    return f"{fraction * 100:.1f}%"


def _limit_pct(fraction: float) -> str:
    return f"{fraction * 100:g}%"


def total_payout_value(model: PrizeModel) -> Decimal:
    """Cash paid out if every ticket in the deck is sold and claimed."""
    return sum(
        (Decimal(t.weight) * Decimal(repr(t.payout)) * model.ticket_price for t in model.tiers),
        Decimal(0),
    )


def loser_rate(model: PrizeModel) -> float:
    if model.total_tickets <= 0:
        return 0.0
    return max(0, model.losing_tickets) / model.total_tickets


def money_back_rate(model: PrizeModel) -> float:
    if model.total_tickets <= 0:
        return 0.0
    return model.money_back_weight / model.total_tickets


def validate(model: PrizeModel, limits: CommercialLimits | None = None) -> ValidationResult:
    """
    Apply commercial hard errors and soft warnings to a prize table.

    Hard errors: RTP ceiling, loser-rate floor, guaranteed loss, more
    winners than tickets. Soft warning: money-back rate.
    """
    limits = limits or CommercialLimits()
    result = ValidationResult()

    if model.mode != MathMode.POOL:
        return result

    current_rtp = metrics.rtp(model) / 100
    total_sales = metrics.total_pool_value(model)
    total_payout = total_payout_value(model)
    losers = loser_rate(model)
    money_back = money_back_rate(model)

    if current_rtp > limits.max_rtp:
        result.add_error(
            f"RTP ({_pct(current_rtp)}) exceeds allowed maximum of {_limit_pct(limits.max_rtp)}"
        )

    if losers < limits.min_loser_rate:
        result.add_error(
            f"Too few losing tickets ({_pct(losers)}). "
            f"Min required: {_limit_pct(limits.min_loser_rate)}"
        )

    if money_back > limits.max_money_back_rate:
        result.warnings.append(
            ValidationWarning(
                title="Money-Back Frequency Risk",
                message=(
                    "Money-back tickets refund the full stake and significantly "
                    "impact player behavior and cash-flow timing."
                ),
                details=(
                    f"Current rate: {_pct(money_back)} "
                    f"(Rec. Max: {_limit_pct(limits.max_money_back_rate)}). "
                    "This is profitable but increases early payout risk."
                ),
            )
        )

    if total_payout > total_sales:
        result.add_error(
            f"Guaranteed Loss: Total Payouts ({total_payout:,.2f}) "
            f"exceed Total Sales ({total_sales:,.2f})."
        )

    if model.total_winning_weight > model.total_tickets:
        result.add_error(
            f"Configuration Impossible: More winners ({model.total_winning_weight:,}) "
            f"than tickets ({model.total_tickets:,})!"
        )

    return result


def validate_structure(model: PrizeModel) -> ValidationResult:
    """Structural checks of the prize table, independent of commercial limits."""
    result = ValidationResult()

    if not model.tiers:
        result.warnings.append(
            ValidationWarning(
                title="Empty Prize Table",
                message="No prize structure defined. Game will have no wins.",
            )
        )
        return result

    is_pool = model.mode == MathMode.POOL
    for tier in model.tiers:
        amount = tier.weight if is_pool else tier.probability
        if tier.is_winning and amount == 0:
            result.warnings.append(
                ValidationWarning(
                    title="Unreachable Prize",
                    message=(
                        f"Prize '{tier.name}' has 0 tickets/chance. "
                        "Ideally remove it or add tickets."
                    ),
                )
            )

    if is_pool:
        if model.total_winning_weight <= 0:
            result.add_error("Total prize weight must be greater than 0.")

        top_payout = max(t.payout for t in model.tiers)
        top_tickets = sum(t.weight for t in model.tiers if t.payout == top_payout)
        if top_tickets == 0:
            result.add_error(
                f"The Top Prize ({top_payout:g}x) has 0 winning tickets. Please add at least 1."
            )
    elif model.total_probability <= 0:
        result.add_error("Total prize probability must be greater than 0.")

    return result
