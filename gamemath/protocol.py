"""Request and response models of the HTTP surface."""
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from gamemath.config import settings
from gamemath.logic.balancer import BucketLocks, RtpDistribution
from gamemath.logic.crash import BankrollResult, CrashSimulationResult
from gamemath.logic.metrics import Metrics
from gamemath.logic.models import CrashConfig, PrizeModel
from gamemath.logic.simulation import RunState, SimulationOptions, SimulationReport
from gamemath.logic.validator import ValidationResult


class FixKind(str, Enum):
    """Single-constraint fixes offered next to a validation error."""

    RTP_CEILING = "rtp_ceiling"
    MONEY_BACK = "money_back"


# === Request Models ===


class ModelRequest(BaseModel):
    """Body carrying a prize model to analyze."""

    model: PrizeModel


class TargetRtpRequest(BaseModel):
    """POST /balance/target-rtp request body."""

    model: PrizeModel
    target_rtp: float = Field(..., gt=0, description="Target RTP in percent")


class AutoFixRequest(BaseModel):
    """POST /balance/auto-fix request body."""

    model: PrizeModel
    fix: FixKind


class DistributionRequest(BaseModel):
    """POST /balance/distribution request body."""

    distribution: RtpDistribution = Field(default_factory=RtpDistribution)
    target_rtp: float = settings.auto_balance_default_rtp
    volatility: float = Field(default=5, ge=1, le=10)
    locks: BucketLocks = Field(default_factory=BucketLocks)


class CreateSimulationRequest(BaseModel):
    """POST /simulations request body."""

    model: PrizeModel
    options: SimulationOptions = Field(default_factory=SimulationOptions)
    seed: int | None = Field(default=None, description="Seed for a reproducible run")


class RunRequest(BaseModel):
    """POST /simulations/{id}/run body. `add_spins` queues more draws first."""

    add_spins: int | None = None


class CrashSimulateRequest(BaseModel):
    """POST /crash/simulate request body."""

    config: CrashConfig = Field(default_factory=CrashConfig)
    rounds: int
    bet_amount: Decimal | None = None
    cashout_target: float | None = None
    seed: int | None = None


class BankrollRequest(BaseModel):
    """POST /crash/bankroll request body."""

    bankroll: Decimal = Field(..., gt=0)
    bet_amount: Decimal
    cashout_target: float
    max_rounds: int | None = Field(default=None, gt=0)
    seed: int | None = None


# === Response Models ===


class MetricsResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    metrics: Metrics


class ValidateResponse(BaseModel):
    """Commercial and structural results, reported separately."""

    protocolVersion: str = settings.protocol_version
    config_hash: str
    commercial: ValidationResult
    structure: ValidationResult


class BalanceResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    model: PrizeModel
    applied: bool
    ratio: float | None
    metrics: Metrics
    validation: ValidationResult


class DistributionResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    distribution: RtpDistribution
    target_rtp: float
    confidence: int | None


class PresetSummary(BaseModel):
    key: str
    name: str
    description: str


class PresetListResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    presets: list[PresetSummary]


class PresetResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    key: str
    name: str
    description: str
    model: PrizeModel
    metrics: Metrics


class SimulationResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    run_id: str
    report: SimulationReport


class StepResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    run_id: str
    draws: int
    state: RunState
    report: SimulationReport


class CrashSimulateResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    config_hash: str
    instant_bust_probability: float
    theoretical_rtp: float
    result: CrashSimulationResult


class BankrollResponse(BaseModel):
    protocolVersion: str = settings.protocol_version
    result: BankrollResult
