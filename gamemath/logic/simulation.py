"""Batched simulation of a prize model.

A SimulationRun works on a frozen snapshot of the prize model taken at
construction, so edits to the live model never leak into a running
simulation. Draws happen in fixed-size batches; the run can be inspected,
stopped or reset between batches only, never mid-draw.

Two sampling schemes:
- finite deck (Pool mode): draw without replacement until the deck runs out.
  Over a full deck every tier is hit exactly `weight` times.
- with replacement (Monte Carlo): Pool weights or Unlimited probabilities
  drive independent draws. An optional compensated cap suppresses wins that
  would push realized RTP above theoretical RTP.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterator

from pydantic import BaseModel, Field

from gamemath.config import settings
from gamemath.config_hash import model_hash
from gamemath.logic import metrics
from gamemath.logic.models import MathMode, PrizeModel, PrizeTier
from gamemath.logic.rng import ProductionRNG, RNGBase


logger = logging.getLogger(__name__)

# Default run length when not drawing a finite deck
DEFAULT_MONTE_CARLO_SPINS = 1000


class RunState(str, Enum):
    """Lifecycle of a simulation run."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


class SimulationOptions(BaseModel):
    """
    Run parameters.

    spins: draws to perform; defaults to the deck size for a finite deck.
    bet_amount: stake per draw; defaults to the model's ticket price.
    finite_deck: draw without replacement; defaults to True in Pool mode.
    rtp_cap: compensated mode, only honored for draws with replacement.
    """
    spins: int | None = Field(default=None, gt=0)
    bet_amount: Decimal | None = Field(default=None, gt=0)
    finite_deck: bool | None = None
    rtp_cap: bool = False
    batch_size: int = Field(default_factory=lambda: settings.sim_batch_size, gt=0)
    history_size: int = Field(default_factory=lambda: settings.sim_history_size, ge=0)
    major_tier_count: int = Field(default_factory=lambda: settings.sim_major_tier_count, ge=0)


@dataclass
class DeckState:
    """Remaining tickets of a finite deck. Rebuilt from the snapshot on reset."""
    remaining_tickets: int
    remaining_weight: dict[str, int]

    @classmethod
    def from_model(cls, model: PrizeModel) -> "DeckState":
        return cls(
            remaining_tickets=model.total_tickets,
            remaining_weight={t.id: t.weight for t in model.tiers},
        )


class AuditEntry(BaseModel):
    """A major win and the draw index (1-based) it happened on."""
    ticket_index: int
    tier_id: str
    tier_name: str
    win: Decimal


@dataclass
class SimulationAggregates:
    """Running totals, updated per draw."""
    spins: int = 0
    total_bet: Decimal = Decimal(0)
    total_won: Decimal = Decimal(0)
    wins: int = 0
    suppressed_wins: int = 0
    tier_hits: dict[str, int] = field(default_factory=dict)
    history: deque = field(default_factory=deque)
    audit_log: list[AuditEntry] = field(default_factory=list)

    @property
    def actual_rtp(self) -> float | None:
        if self.total_bet <= 0:
            return None
        return float(self.total_won / self.total_bet * 100)

    @property
    def house_profit(self) -> Decimal:
        return self.total_bet - self.total_won

    @property
    def hit_rate(self) -> float | None:
        if self.spins <= 0:
            return None
        return self.wins / self.spins * 100


@dataclass
class BatchProgress:
    """Snapshot reported after each batch."""
    draws: int
    spins_done: int
    spins_left: int
    state: RunState
    actual_rtp: float | None
    exhausted: bool


class SimulationReport(BaseModel):
    """Full state of a run for display."""
    config_hash: str
    state: RunState
    mode: MathMode
    finite_deck: bool
    compensated: bool
    exhausted: bool
    bet_amount: Decimal
    theoretical_rtp: float
    spins: int
    spins_remaining: int
    wins: int
    suppressed_wins: int
    total_bet: Decimal
    total_won: Decimal
    house_profit: Decimal
    actual_rtp: float | None
    hit_rate: float | None
    tier_hits: dict[str, int]
    history: list[Decimal]
    audit_log: list[AuditEntry]
    remaining_tickets: int | None = None
    remaining_weight: dict[str, int] | None = None


def major_tier_ids(tiers: list[PrizeTier], count: int) -> set[str]:
    """Ids of the `count` highest-paying tiers."""
    ranked = sorted(tiers, key=lambda t: t.payout, reverse=True)
    return {t.id for t in ranked[:count]}


class SimulationRun:
    """
    One simulation over a frozen prize model snapshot.

    State machine: IDLE -> RUNNING -> COMPLETED. `stop()` returns a running
    run to IDLE keeping its progress; `reset()` discards all progress and
    rebuilds the deck from the snapshot.
    """

    def __init__(
        self,
        model: PrizeModel,
        options: SimulationOptions | None = None,
        rng: RNGBase | None = None,
    ):
        self.model = model.snapshot()
        self.options = options or SimulationOptions()
        self.rng = rng or ProductionRNG()
        self.config_hash = model_hash(self.model)

        if self.options.finite_deck is None:
            self.finite_deck = self.model.mode == MathMode.POOL
        else:
            self.finite_deck = self.options.finite_deck
        # Finite decks regulate themselves
        self.compensated = self.options.rtp_cap and not self.finite_deck

        self.bet_amount = self.options.bet_amount or self.model.ticket_price
        self.theoretical_rtp = metrics.rtp(self.model)
        self._rtp_cap_factor = Decimal(repr(self.theoretical_rtp)) / 100
        self._tiers = list(self.model.tiers)
        self._win_amounts = {
            t.id: self.bet_amount * Decimal(repr(t.payout)) for t in self._tiers
        }
        self._major_ids = major_tier_ids(self._tiers, self.options.major_tier_count)
        self._pool_weight_total = self.model.total_winning_weight
        self._probability_total = self.model.total_probability

        self.reset()

    # === lifecycle ===

    def reset(self) -> None:
        """Discard all progress and rebuild the deck from the snapshot."""
        self.state = RunState.IDLE
        self.exhausted = False
        self.deck = DeckState.from_model(self.model) if self.finite_deck else None
        self.aggregates = SimulationAggregates(
            tier_hits={t.id: 0 for t in self._tiers},
            history=deque(maxlen=self.options.history_size),
        )
        self.spins_left = self._initial_spins()

        if self.is_empty:
            # Nothing to draw from: no-op run
            self.state = RunState.COMPLETED
            self.spins_left = 0

    def stop(self) -> None:
        """Pause between batches. Deck and aggregates stay consistent."""
        if self.state == RunState.RUNNING:
            self.state = RunState.IDLE
            logger.info("Simulation %s stopped after %d spins", self.config_hash, self.aggregates.spins)

    def add_spins(self, spins: int) -> None:
        """Queue more draws on the same deck and aggregates."""
        if self.is_empty or self.exhausted:
            return
        self.spins_left += spins
        if self.state == RunState.COMPLETED:
            self.state = RunState.IDLE

    @property
    def is_empty(self) -> bool:
        return not self._tiers or self.model.total_tickets <= 0

    def _initial_spins(self) -> int:
        if self.options.spins is not None:
            return self.options.spins
        if self.finite_deck:
            return self.model.total_tickets
        return DEFAULT_MONTE_CARLO_SPINS

    # === driving ===

    def step(self) -> BatchProgress:
        """Execute one batch of up to `batch_size` draws."""
        if self.state == RunState.COMPLETED:
            return self._progress(0)

        if self.state == RunState.IDLE:
            self.state = RunState.RUNNING
            logger.info(
                "Simulation %s running: mode=%s finite_deck=%s compensated=%s spins=%d",
                self.config_hash,
                self.model.mode.value,
                self.finite_deck,
                self.compensated,
                self.spins_left,
            )

        iterations = min(self.options.batch_size, self.spins_left)
        draws = 0
        for _ in range(iterations):
            if self.finite_deck and self.deck.remaining_tickets <= 0:
                break
            self._draw()
            draws += 1

        self.spins_left -= draws
        if self.finite_deck and self.deck.remaining_tickets <= 0:
            self.exhausted = True
            self.spins_left = 0
        if self.spins_left <= 0:
            self._complete()

        return self._progress(draws)

    def batches(self) -> Iterator[BatchProgress]:
        """Yield after every batch until the run completes or is stopped."""
        while self.state != RunState.COMPLETED:
            progress = self.step()
            yield progress
            if self.state == RunState.IDLE:
                return

    def run(self) -> "SimulationReport":
        """Drive the run to completion and return the report."""
        for _ in self.batches():
            pass
        return self.report()

    def _complete(self) -> None:
        self.state = RunState.COMPLETED
        agg = self.aggregates
        logger.info(
            "Simulation %s completed: spins=%d actual_rtp=%s theoretical_rtp=%.4f exhausted=%s",
            self.config_hash,
            agg.spins,
            f"{agg.actual_rtp:.4f}" if agg.actual_rtp is not None else "n/a",
            self.theoretical_rtp,
            self.exhausted,
        )

    # === draws ===

    def _draw(self) -> None:
        agg = self.aggregates
        agg.spins += 1
        agg.total_bet += self.bet_amount

        if self.finite_deck:
            tier = self._draw_from_deck()
        elif self.model.mode == MathMode.POOL:
            tier = self._draw_pool_weights()
        else:
            tier = self._draw_probabilities()

        if tier is None:
            return

        win = self._win_amounts[tier.id]
        if self.compensated and win > 0:
            if agg.total_won + win > agg.total_bet * self._rtp_cap_factor:
                agg.suppressed_wins += 1
                return

        agg.tier_hits[tier.id] += 1
        if win <= 0:
            return

        agg.wins += 1
        agg.total_won += win
        agg.history.append(win)
        if tier.id in self._major_ids:
            agg.audit_log.append(
                AuditEntry(ticket_index=agg.spins, tier_id=tier.id, tier_name=tier.name, win=win)
            )

    def _draw_from_deck(self) -> PrizeTier | None:
        """Sample one ticket without replacement."""
        deck = self.deck
        ticket = self.rng.randint(0, deck.remaining_tickets - 1)
        deck.remaining_tickets -= 1

        cumulative = 0
        for tier in self._tiers:
            count = deck.remaining_weight[tier.id]
            if count <= 0:
                continue
            cumulative += count
            if ticket < cumulative:
                deck.remaining_weight[tier.id] = count - 1
                return tier
        return None

    def _draw_pool_weights(self) -> PrizeTier | None:
        """Monte Carlo draw using Pool weights as a distribution."""
        total = self._pool_weight_total
        if total <= 0:
            return None
        if self.rng.random() >= total / self.model.total_tickets:
            return None
        pick = self.rng.uniform_below(total)
        cumulative = 0
        for tier in self._tiers:
            cumulative += tier.weight
            if pick < cumulative:
                return tier
        return None

    def _draw_probabilities(self) -> PrizeTier | None:
        """Unlimited mode draw: win with sum(p)/100, then tier proportional to p."""
        total = self._probability_total
        if total <= 0:
            return None
        if self.rng.random() >= total / 100:
            return None
        pick = self.rng.uniform_below(total)
        cumulative = 0.0
        for tier in self._tiers:
            cumulative += tier.probability
            if pick < cumulative:
                return tier
        return None

    # === reporting ===

    def _progress(self, draws: int) -> BatchProgress:
        return BatchProgress(
            draws=draws,
            spins_done=self.aggregates.spins,
            spins_left=self.spins_left,
            state=self.state,
            actual_rtp=self.aggregates.actual_rtp,
            exhausted=self.exhausted,
        )

    def report(self) -> SimulationReport:
        agg = self.aggregates
        return SimulationReport(
            config_hash=self.config_hash,
            state=self.state,
            mode=self.model.mode,
            finite_deck=self.finite_deck,
            compensated=self.compensated,
            exhausted=self.exhausted,
            bet_amount=self.bet_amount,
            theoretical_rtp=self.theoretical_rtp,
            spins=agg.spins,
            spins_remaining=self.spins_left,
            wins=agg.wins,
            suppressed_wins=agg.suppressed_wins,
            total_bet=agg.total_bet,
            total_won=agg.total_won,
            house_profit=agg.house_profit,
            actual_rtp=agg.actual_rtp,
            hit_rate=agg.hit_rate,
            tier_hits=dict(agg.tier_hits),
            history=list(agg.history),
            audit_log=list(agg.audit_log),
            remaining_tickets=self.deck.remaining_tickets if self.deck else None,
            remaining_weight=dict(self.deck.remaining_weight) if self.deck else None,
        )


def simulate(
    model: PrizeModel,
    options: SimulationOptions | None = None,
    rng: RNGBase | None = None,
) -> SimulationReport:
    """Run a simulation to completion in one call."""
    return SimulationRun(model, options, rng).run()
