#!/usr/bin/env python3
"""
Audit simulation script.

Runs a seeded, headless simulation of a prize model (or the crash game) and
writes a one-row CSV for certification.

Usage:
    python -m scripts.audit_sim --preset BALANCED --seed AUDIT_2025 --out out/audit_balanced.csv
    python -m scripts.audit_sim --model table.json --spins 100000 --monte-carlo --rtp-cap --seed AUDIT_2025 --out out/audit_mc.csv
    python -m scripts.audit_sim --game crash --spins 100000 --cashout 2.0 --seed AUDIT_2025 --out out/audit_crash.csv
"""
import argparse
import csv
import hashlib
import subprocess
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gamemath.config import settings
from gamemath.config_hash import model_hash
from gamemath.logic.crash import (
    CrashSimulationResult,
    instant_bust_probability,
    simulate_crash,
    theoretical_cashout_rtp,
)
from gamemath.logic.models import CrashConfig, PrizeModel
from gamemath.logic.presets import preset_model
from gamemath.logic.rng import SeededRNG
from gamemath.logic.simulation import SimulationOptions, SimulationReport, SimulationRun


def get_git_commit() -> str:
    """Get current git commit hash (short)."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=Path(__file__).parent.parent,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return "unknown"


def get_timestamp_iso() -> str:
    """Get ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def check_cached_result(output_path: str, config_hash: str, spins: int, seed: str, game: str) -> bool:
    """
    Check if valid cached result exists.

    Returns True if cache is valid (same config_hash, spins, seed, game).
    """
    path = Path(output_path)
    if not path.exists():
        return False

    try:
        with open(path, "r") as f:
            reader = csv.DictReader(f)
            row = next(reader, None)
            if row is None:
                return False

            if row.get("config_hash") != config_hash:
                return False
            if int(row.get("spins", 0)) != spins:
                return False
            if row.get("seed") != seed:
                return False
            if row.get("game") != game:
                return False

            return True
    except (OSError, csv.Error, ValueError):
        return False


def seed_to_int(seed_str: str) -> int:
    """Convert string seed to integer deterministically."""
    return int(hashlib.sha256(seed_str.encode()).hexdigest(), 16) % (2**31)


def load_model(model_path: str | None, preset: str | None, total_tickets: int | None) -> PrizeModel:
    """Prize model from a JSON file, or a preset built for `total_tickets`."""
    if model_path:
        return PrizeModel.model_validate_json(Path(model_path).read_text())
    return preset_model(preset, total_tickets)


def run_prize_simulation(
    model: PrizeModel,
    seed_str: str,
    spins: int | None = None,
    finite_deck: bool | None = None,
    rtp_cap: bool = False,
    bet_amount: Decimal | None = None,
    verbose: bool = False,
) -> SimulationReport:
    """
    Run a seeded prize model simulation to completion.

    Args:
        model: Prize table to draw from
        seed_str: Seed string for reproducibility
        spins: Draws to perform (defaults to the deck size for a finite deck)
        finite_deck: Draw without replacement (defaults by math mode)
        rtp_cap: Compensated mode for draws with replacement
        bet_amount: Stake per draw (defaults to the ticket price)
        verbose: Print progress
    """
    options = SimulationOptions(
        spins=spins,
        finite_deck=finite_deck,
        rtp_cap=rtp_cap,
        bet_amount=bet_amount,
    )
    run = SimulationRun(model, options, SeededRNG(seed=seed_to_int(seed_str)))
    total = run.spins_left

    for progress in run.batches():
        if verbose and total > 0:
            pct = progress.spins_done / total * 100
            print(f"\rProgress: {pct:.1f}%", end="", flush=True)

    if verbose:
        print("\rProgress: 100.0%")

    return run.report()


def run_crash_simulation(
    config: CrashConfig,
    rounds: int,
    seed_str: str,
    bet_amount: Decimal | None = None,
    cashout_target: float | None = None,
) -> CrashSimulationResult:
    """Run a seeded flat-bet crash simulation."""
    return simulate_crash(
        config,
        rounds,
        rng=SeededRNG(seed=seed_to_int(seed_str)),
        bet_amount=bet_amount,
        cashout_target=cashout_target,
    )


def deck_invariant_violations(model: PrizeModel, report: SimulationReport) -> list[str]:
    """
    Tiers whose hit count differs from their weight after a fully drawn deck.

    Only meaningful for an exhausted, non-over-allocated finite deck.
    """
    if not report.exhausted or model.total_winning_weight > model.total_tickets:
        return []
    return [
        f"{t.name or t.id}: hits={report.tier_hits.get(t.id, 0)} weight={t.weight}"
        for t in model.tiers
        if report.tier_hits.get(t.id, 0) != t.weight
    ]


def build_prize_row(seed_str: str, report: SimulationReport) -> dict[str, Any]:
    """CSV row for a prize model simulation."""
    return {
        "timestamp": get_timestamp_iso(),
        "git_commit": get_git_commit(),
        "config_hash": report.config_hash,
        "game": "prize",
        "mode": report.mode.value,
        "spins": report.spins,
        "seed": seed_str,
        "finite_deck": report.finite_deck,
        "compensated": report.compensated,
        "exhausted": report.exhausted,
        "bet_amount": f"{report.bet_amount:.2f}",
        "theoretical_rtp": f"{report.theoretical_rtp:.4f}",
        "rtp": f"{report.actual_rtp:.4f}" if report.actual_rtp is not None else "",
        "hit_freq": f"{report.hit_rate:.4f}" if report.hit_rate is not None else "",
        "total_bet": f"{report.total_bet:.2f}",
        "total_won": f"{report.total_won:.2f}",
        "house_profit": f"{report.house_profit:.2f}",
        "suppressed_wins": report.suppressed_wins,
        "major_wins": len(report.audit_log),
    }


def build_crash_row(config: CrashConfig, seed_str: str, result: CrashSimulationResult) -> dict[str, Any]:
    """CSV row for a crash simulation."""
    return {
        "timestamp": get_timestamp_iso(),
        "git_commit": get_git_commit(),
        "config_hash": model_hash(config),
        "game": "crash",
        "spins": result.rounds,
        "seed": seed_str,
        "bet_amount": f"{result.bet_amount:.2f}",
        "cashout_target": f"{result.cashout_target:.2f}",
        "theoretical_rtp": f"{theoretical_cashout_rtp(config, result.cashout_target):.4f}",
        "rtp": f"{result.rtp:.4f}" if result.rtp is not None else "",
        "instant_bust_probability": f"{instant_bust_probability(config) * 100:.4f}",
        "bust_rate": f"{result.bust_rate:.4f}" if result.bust_rate is not None else "",
        "total_wagered": f"{result.total_wagered:.2f}",
        "total_won": f"{result.total_won:.2f}",
        "house_profit": f"{result.house_profit:.2f}",
        "max_multiplier": f"{result.max_multiplier:.2f}",
    }


def generate_csv(row: dict[str, Any], output_path: str) -> None:
    """Write a single-row audit CSV."""
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=row.keys())
        writer.writeheader()
        writer.writerow(row)

    print(f"CSV written to: {output_path}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seeded audit simulation")
    parser.add_argument(
        "--game",
        choices=["prize", "crash"],
        default="prize",
        help="Simulate a prize model or the crash game",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--model", type=str, help="Prize model JSON file")
    source.add_argument("--preset", type=str, help="Preset key, e.g. BALANCED")
    parser.add_argument(
        "--total-tickets",
        type=int,
        default=None,
        help="Deck size when building a preset",
    )
    parser.add_argument(
        "--spins",
        type=int,
        default=None,
        help="Draws (prize) or rounds (crash) to simulate",
    )
    parser.add_argument(
        "--monte-carlo",
        action="store_true",
        help="Draw with replacement even in Pool mode",
    )
    parser.add_argument(
        "--rtp-cap",
        action="store_true",
        help="Compensated mode: suppress wins above theoretical RTP",
    )
    parser.add_argument("--bet", type=Decimal, default=None, help="Stake per draw")
    parser.add_argument(
        "--cashout",
        type=float,
        default=settings.crash_default_cashout,
        help="Crash auto-cashout multiplier",
    )
    parser.add_argument(
        "--seed",
        type=str,
        required=True,
        help="Seed string for reproducibility",
    )
    parser.add_argument(
        "--out",
        type=str,
        required=True,
        help="Output CSV path",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show progress",
    )
    parser.add_argument(
        "--skip-if-cached",
        action="store_true",
        help="Skip simulation if valid cached result exists",
    )

    args = parser.parse_args(argv)

    if args.spins is not None and args.spins <= 0:
        parser.error("--spins must be positive")

    if args.game == "crash":
        if args.spins is None:
            parser.error("--spins is required for --game crash")
        config = CrashConfig()
        config_hash = model_hash(config)
        print(f"Running crash simulation: rounds={args.spins}, cashout={args.cashout:.2f}x, seed={args.seed}")
        print(f"Config hash: {config_hash}")

        if args.skip_if_cached:
            if check_cached_result(args.out, config_hash, args.spins, args.seed, args.game):
                print(f"Using cached result: {args.out}")
                return 0

        result = run_crash_simulation(config, args.spins, args.seed, args.bet, args.cashout)
        generate_csv(build_crash_row(config, args.seed, result), args.out)

        print(f"\nSummary:")
        print(f"  Rounds: {result.rounds}")
        print(f"  RTP: {result.rtp:.4f}%")
        print(f"  Theoretical RTP: {theoretical_cashout_rtp(config, result.cashout_target):.4f}%")
        print(f"  Instant busts: {result.busts} ({result.bust_rate:.4f}%)")
        return 0

    if not args.model and not args.preset:
        parser.error("one of --model or --preset is required")

    try:
        model = load_model(args.model, args.preset, args.total_tickets)
    except KeyError as e:
        print(f"ERROR: {e}")
        return 1

    finite_deck = False if args.monte_carlo else None
    run = SimulationRun(model, SimulationOptions(spins=args.spins, finite_deck=finite_deck))
    config_hash = run.config_hash
    spins = run.spins_left
    print(f"Running simulation: mode={model.mode.value}, spins={spins}, seed={args.seed}")
    print(f"Config hash: {config_hash}")

    if args.skip_if_cached:
        if check_cached_result(args.out, config_hash, spins, args.seed, args.game):
            print(f"Using cached result: {args.out}")
            print("(Skipping simulation - cache valid for config_hash, spins, seed, game)")
            return 0

    report = run_prize_simulation(
        model,
        args.seed,
        spins=args.spins,
        finite_deck=finite_deck,
        rtp_cap=args.rtp_cap,
        bet_amount=args.bet,
        verbose=args.verbose,
    )
    generate_csv(build_prize_row(args.seed, report), args.out)

    print(f"\nSummary:")
    print(f"  Spins: {report.spins}")
    print(f"  Total bet: {report.total_bet:.2f}")
    print(f"  Total won: {report.total_won:.2f}")
    print(f"  Theoretical RTP: {report.theoretical_rtp:.4f}%")
    if report.actual_rtp is not None:
        print(f"  Actual RTP: {report.actual_rtp:.4f}%")
    if report.hit_rate is not None:
        print(f"  Hit frequency: {report.hit_rate:.4f}%")
    if report.compensated:
        print(f"  Suppressed wins: {report.suppressed_wins}")

    # ASSERTION: a fully drawn deck pays every tier exactly its weight
    violations = deck_invariant_violations(model, report)
    if violations:
        print("ASSERTION FAILED: tier hits differ from weights on an exhausted deck")
        for line in violations:
            print(f"  {line}")
        return 1
    if report.exhausted:
        print("\nASSERTION PASSED: every tier hit exactly its weight")

    return 0


if __name__ == "__main__":
    sys.exit(main())
