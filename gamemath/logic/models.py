"""Prize model and crash config data structures."""
import uuid
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gamemath.config import settings


class MathMode(str, Enum):
    """How tier likelihood is expressed."""
    POOL = "POOL"
    UNLIMITED = "UNLIMITED"


class WinLogic(str, Enum):
    """Whether a ticket may carry more than one winning pattern."""
    SINGLE_WIN = "SINGLE_WIN"
    MULTI_WIN = "MULTI_WIN"


class FixedTarget(BaseModel):
    """Target symbol chosen at design time."""
    type: Literal["fixed"] = "fixed"
    symbol_id: str


class DynamicTarget(BaseModel):
    """Target symbol chosen at play time."""
    type: Literal["dynamic"] = "dynamic"


TargetSource = Annotated[FixedTarget | DynamicTarget, Field(discriminator="type")]


class MatchN(BaseModel):
    """Win by matching `count` copies of a symbol."""
    type: Literal["match_n"] = "match_n"
    count: int = Field(default=3, ge=1)
    symbol_id: str | None = None


class FindTarget(BaseModel):
    """Win by revealing a designated symbol."""
    type: Literal["find_target"] = "find_target"
    source: TargetSource = Field(default_factory=DynamicTarget)


WinCondition = Annotated[MatchN | FindTarget, Field(discriminator="type")]


def describe_condition(condition: MatchN | FindTarget) -> str:
    """Human readable label for a win condition."""
    if isinstance(condition, MatchN):
        symbol = condition.symbol_id or "any symbol"
        return f"Match {condition.count} x {symbol}"
    if isinstance(condition, FindTarget):
        if isinstance(condition.source, FixedTarget):
            return f"Find {condition.source.symbol_id}"
        return "Find dynamic target"
    raise TypeError(f"Unknown win condition: {condition!r}")


def new_tier_id() -> str:
    return f"prize_{uuid.uuid4().hex[:12]}"


class PrizeTier(BaseModel):
    """
    One weighted prize tier.

    `weight` is the ticket count in Pool mode, `probability` the percentage
    (0-100) in Unlimited mode. Both are kept so switching modes is lossless.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_tier_id, frozen=True)
    name: str = ""
    condition: WinCondition = Field(default_factory=MatchN)
    payout: float = Field(default=0.0, ge=0)
    weight: int = Field(default=0, ge=0)
    probability: float = Field(default=0.0, ge=0, le=100)

    @property
    def is_winning(self) -> bool:
        return self.payout > 0

    @property
    def is_money_back(self) -> bool:
        return self.payout == 1


class PrizeModel(BaseModel):
    """
    Aggregate prize table for one game.

    Sum invariants (weights within the deck, probabilities within 100%) are
    reported by metrics and the validator rather than rejected here, so an
    editor can hold a broken table and show what is wrong with it.
    RTP, hit frequency and variance are never stored on the model.
    """
    model_config = ConfigDict(validate_assignment=True)

    mode: MathMode = MathMode.POOL
    tiers: list[PrizeTier] = Field(default_factory=list)
    total_tickets: int = Field(default_factory=lambda: settings.default_total_tickets, gt=0)
    ticket_price: Decimal = Field(default_factory=lambda: settings.default_ticket_price, gt=0)
    win_logic: WinLogic = WinLogic.SINGLE_WIN

    @model_validator(mode="after")
    def _unique_tier_ids(self) -> "PrizeModel":
        ids = [t.id for t in self.tiers]
        if len(ids) != len(set(ids)):
            raise ValueError("Prize tier ids must be unique")
        return self

    @property
    def total_winning_weight(self) -> int:
        return sum(t.weight for t in self.tiers)

    @property
    def total_probability(self) -> float:
        return sum(t.probability for t in self.tiers)

    @property
    def losing_tickets(self) -> int:
        """Implicit losing tickets. Negative when the deck is over-allocated."""
        return self.total_tickets - self.total_winning_weight

    @property
    def money_back_weight(self) -> int:
        return sum(t.weight for t in self.tiers if t.is_money_back)

    def tier(self, tier_id: str) -> PrizeTier:
        for t in self.tiers:
            if t.id == tier_id:
                return t
        raise KeyError(tier_id)

    def add_tier(self, tier: PrizeTier) -> PrizeTier:
        if any(t.id == tier.id for t in self.tiers):
            raise ValueError(f"Duplicate prize tier id: {tier.id}")
        self.tiers.append(tier)
        return tier

    def update_tier(self, tier_id: str, **changes: Any) -> PrizeTier:
        """Mutate a tier in place. The id cannot be changed."""
        tier = self.tier(tier_id)
        for field_name, value in changes.items():
            setattr(tier, field_name, value)
        return tier

    def remove_tier(self, tier_id: str) -> PrizeTier:
        tier = self.tier(tier_id)
        self.tiers.remove(tier)
        return tier

    def snapshot(self) -> "PrizeModel":
        """Independent deep copy, unaffected by later edits."""
        return self.model_copy(deep=True)


class CrashConfig(BaseModel):
    """Parameters of the crash-point distribution."""

    growth_rate: float = Field(default=0.1, gt=0)
    house_edge: float = Field(default=4.0, ge=0, le=100)  # percent
    min_multiplier: float = Field(default=1.0, ge=1.0)
    max_multiplier: float = Field(default=1000.0, gt=1.0)

    @model_validator(mode="after")
    def _check_range(self) -> "CrashConfig":
        if self.max_multiplier < self.min_multiplier:
            raise ValueError("max_multiplier must be >= min_multiplier")
        return self
