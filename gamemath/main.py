"""Game Math Engine FastAPI Application."""
from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from gamemath.config import settings
from gamemath.config_hash import model_hash
from gamemath.errors import ErrorCode, GameMathError
from gamemath.logic import balancer, metrics, presets, validator
from gamemath.logic.crash import (
    instant_bust_probability,
    simulate_bankroll_survival,
    simulate_crash,
    theoretical_cashout_rtp,
)
from gamemath.logic.models import PrizeModel
from gamemath.logic.rng import ProductionRNG, RNGBase, SeededRNG
from gamemath.logic.simulation import RunState, SimulationRun
from gamemath.middleware import ErrorHandlerMiddleware
from gamemath.protocol import (
    AutoFixRequest,
    BalanceResponse,
    BankrollRequest,
    BankrollResponse,
    CrashSimulateRequest,
    CrashSimulateResponse,
    CreateSimulationRequest,
    DistributionRequest,
    DistributionResponse,
    FixKind,
    MetricsResponse,
    ModelRequest,
    PresetListResponse,
    PresetResponse,
    PresetSummary,
    RunRequest,
    SimulationResponse,
    StepResponse,
    TargetRtpRequest,
    ValidateResponse,
)
from gamemath.registry import RunEntry, SimulationRegistry
from gamemath.telemetry import (
    BalanceAppliedEvent,
    SimulationCompletedEvent,
    ValidationFailedEvent,
    telemetry_service,
)
from gamemath.validators import (
    validate_bet,
    validate_cashout,
    validate_crash_request,
    validate_spins,
)


app = FastAPI(
    title="Game Math Engine",
    version="0.1.0",
    description="Prize table analysis, balancing and simulation for casino games",
)

app.add_middleware(ErrorHandlerMiddleware)

# Runs are kept in memory only
app.state.registry = SimulationRegistry()


def _registry(request: Request) -> SimulationRegistry:
    return request.app.state.registry


def _rng(seed: int | None) -> RNGBase:
    return SeededRNG(seed) if seed is not None else ProductionRNG()


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


# === Analysis ===


@app.post("/metrics")
async def compute_metrics(body: ModelRequest) -> dict:
    """Analytic metrics of a prize model."""
    return MetricsResponse(metrics=metrics.compute_metrics(body.model)).model_dump(mode="json")


@app.post("/validate")
async def validate_model(body: ModelRequest) -> dict:
    """
    Commercial rules (Pool mode only) and structural checks.

    Failures are part of a 200 response, not errors.
    """
    config_hash = model_hash(body.model)
    commercial = validator.validate(body.model)
    structure = validator.validate_structure(body.model)

    if not commercial.is_valid:
        telemetry_service.emit_validation_failed(
            ValidationFailedEvent(
                config_hash=config_hash,
                error_count=len(commercial.errors),
                warning_count=len(commercial.warnings),
                errors=commercial.errors,
            )
        )

    return ValidateResponse(
        config_hash=config_hash,
        commercial=commercial,
        structure=structure,
    ).model_dump(mode="json")


# === Balancing ===


def _balance_response(operation: str, before: PrizeModel, outcome: balancer.BalanceOutcome) -> dict:
    if outcome.applied:
        telemetry_service.emit_balance_applied(
            BalanceAppliedEvent(
                operation=operation,
                config_hash_before=model_hash(before),
                config_hash_after=model_hash(outcome.model),
                ratio=outcome.ratio,
                rtp_before=metrics.rtp(before),
                rtp_after=metrics.rtp(outcome.model),
            )
        )
    return BalanceResponse(
        model=outcome.model,
        applied=outcome.applied,
        ratio=outcome.ratio,
        metrics=metrics.compute_metrics(outcome.model),
        validation=validator.validate(outcome.model),
    ).model_dump(mode="json")


@app.post("/balance/target-rtp")
async def balance_target_rtp(body: TargetRtpRequest) -> dict:
    """Uniformly rescale weights toward a target RTP."""
    outcome = balancer.scale_to_target_rtp(body.model, body.target_rtp)
    return _balance_response("target_rtp", body.model, outcome)


@app.post("/balance/auto-fix")
async def balance_auto_fix(body: AutoFixRequest) -> dict:
    """Apply the single-constraint fix named in the request."""
    if body.fix == FixKind.RTP_CEILING:
        outcome = balancer.fix_rtp_ceiling(body.model)
    else:
        outcome = balancer.fix_money_back_rate(body.model)
    return _balance_response(body.fix.value, body.model, outcome)


@app.post("/balance/distribution")
async def balance_distribution(body: DistributionRequest) -> dict:
    """Split a target RTP across base game, features and jackpots."""
    outcome = balancer.auto_balance_distribution(
        body.distribution, body.target_rtp, body.volatility, body.locks
    )
    return DistributionResponse(
        distribution=outcome.distribution,
        target_rtp=outcome.target_rtp,
        confidence=outcome.confidence,
    ).model_dump(mode="json")


# === Presets ===


@app.get("/presets")
async def list_presets() -> dict:
    return PresetListResponse(
        presets=[
            PresetSummary(key=p.key, name=p.name, description=p.description)
            for p in presets.PRIZE_PRESETS.values()
        ]
    ).model_dump(mode="json")


@app.get("/presets/{name}")
async def get_preset(name: str, total_tickets: int | None = None) -> dict:
    """A preset materialized as a Pool model, weights scaled to `total_tickets`."""
    if total_tickets is not None and total_tickets <= 0:
        raise GameMathError(ErrorCode.INVALID_REQUEST, "total_tickets must be positive.")
    try:
        preset = presets.get_preset(name)
    except KeyError:
        raise GameMathError(
            ErrorCode.UNKNOWN_PRESET,
            f"Unknown preset: {name}. Available: {list(presets.PRIZE_PRESETS)}",
        )
    model = presets.preset_model(preset.key, total_tickets)
    return PresetResponse(
        key=preset.key,
        name=preset.name,
        description=preset.description,
        model=model,
        metrics=metrics.compute_metrics(model),
    ).model_dump(mode="json")


# === Simulations ===


def _report_completion(run_id: str, entry: RunEntry) -> None:
    """Emit simulation_completed once per completed run (again after a reset)."""
    run = entry.run
    if run.state != RunState.COMPLETED or entry.completion_reported:
        return
    entry.completion_reported = True
    telemetry_service.emit_simulation_completed(
        SimulationCompletedEvent(
            run_id=run_id,
            config_hash=run.config_hash,
            mode=run.model.mode.value,
            finite_deck=run.finite_deck,
            compensated=run.compensated,
            spins=run.aggregates.spins,
            theoretical_rtp=run.theoretical_rtp,
            actual_rtp=run.aggregates.actual_rtp,
            exhausted=run.exhausted,
        )
    )


@app.post("/simulations")
async def create_simulation(request: Request, body: CreateSimulationRequest) -> dict:
    """Create a run over a snapshot of the posted model. Nothing is drawn yet."""
    validate_spins(body.options.spins)
    validate_bet(body.options.bet_amount)

    run = SimulationRun(body.model, body.options, _rng(body.seed))
    # Omitted spins default to the whole deck, which must fit the cap too
    if run.spins_left > 0:
        validate_spins(run.spins_left)
    registry = _registry(request)
    run_id = registry.add(run)
    entry = registry.get(run_id)
    _report_completion(run_id, entry)
    return SimulationResponse(run_id=run_id, report=run.report()).model_dump(mode="json")


@app.get("/simulations/{run_id}")
async def get_simulation(request: Request, run_id: str) -> dict:
    entry = _registry(request).get(run_id)
    return SimulationResponse(run_id=run_id, report=entry.run.report()).model_dump(mode="json")


@app.post("/simulations/{run_id}/step")
async def step_simulation(request: Request, run_id: str) -> dict:
    """Execute one batch and return progress."""
    async with _registry(request).locked(run_id) as entry:
        progress = await run_in_threadpool(entry.run.step)
        _report_completion(run_id, entry)
        return StepResponse(
            run_id=run_id,
            draws=progress.draws,
            state=progress.state,
            report=entry.run.report(),
        ).model_dump(mode="json")


@app.post("/simulations/{run_id}/run")
async def run_simulation(request: Request, run_id: str, body: RunRequest | None = None) -> dict:
    """Drive the run to completion, optionally queueing more spins first."""
    async with _registry(request).locked(run_id) as entry:
        if body is not None and body.add_spins is not None:
            validate_spins(body.add_spins)
            entry.run.add_spins(body.add_spins)
            if entry.run.state != RunState.COMPLETED:
                entry.completion_reported = False
        report = await run_in_threadpool(entry.run.run)
        _report_completion(run_id, entry)
        return SimulationResponse(run_id=run_id, report=report).model_dump(mode="json")


@app.post("/simulations/{run_id}/reset")
async def reset_simulation(request: Request, run_id: str) -> dict:
    """Discard all progress and rebuild the deck from the original snapshot."""
    async with _registry(request).locked(run_id) as entry:
        entry.run.reset()
        entry.completion_reported = False
        _report_completion(run_id, entry)
        return SimulationResponse(run_id=run_id, report=entry.run.report()).model_dump(mode="json")


@app.delete("/simulations/{run_id}")
async def delete_simulation(request: Request, run_id: str) -> dict:
    _registry(request).remove(run_id)
    return {"protocolVersion": settings.protocol_version, "run_id": run_id, "deleted": True}


# === Crash ===


@app.post("/crash/simulate")
async def crash_simulate(body: CrashSimulateRequest) -> dict:
    """Flat-bet, fixed-cashout crash simulation."""
    validate_crash_request(body.rounds, body.bet_amount, body.cashout_target)
    cashout = body.cashout_target if body.cashout_target is not None else settings.crash_default_cashout

    result = await run_in_threadpool(
        simulate_crash,
        body.config,
        body.rounds,
        _rng(body.seed),
        body.bet_amount,
        body.cashout_target,
    )
    return CrashSimulateResponse(
        config_hash=model_hash(body.config),
        instant_bust_probability=instant_bust_probability(body.config),
        theoretical_rtp=theoretical_cashout_rtp(body.config, cashout),
        result=result,
    ).model_dump(mode="json")


@app.post("/crash/bankroll")
async def crash_bankroll(body: BankrollRequest) -> dict:
    """Play a bankroll until ruin or the round cap."""
    validate_bet(body.bet_amount)
    validate_cashout(body.cashout_target)
    if body.max_rounds is not None:
        validate_spins(body.max_rounds, settings.bankroll_max_rounds)

    result = await run_in_threadpool(
        simulate_bankroll_survival,
        body.bankroll,
        body.bet_amount,
        body.cashout_target,
        _rng(body.seed),
        body.max_rounds,
    )
    return BankrollResponse(result=result).model_dump(mode="json")
