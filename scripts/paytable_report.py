#!/usr/bin/env python3
"""
Paytable report: analytic metrics plus commercial and structural validation.

Exit code 1 when the table breaks a commercial or structural rule.

Usage:
    python -m scripts.paytable_report --preset HIGH_ROLLER
    python -m scripts.paytable_report --model table.json --json
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Any

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gamemath.config_hash import get_config_hash, model_hash
from gamemath.logic.metrics import Metrics, compute_metrics
from gamemath.logic.models import MathMode, PrizeModel, describe_condition
from gamemath.logic.presets import preset_model
from gamemath.logic.validator import ValidationResult, validate, validate_structure


def build_report(model: PrizeModel) -> dict[str, Any]:
    """Metrics, validation and per-tier breakdown as a JSON-ready dict."""
    metrics = compute_metrics(model)
    commercial = validate(model)
    structure = validate_structure(model)
    return {
        "config_hash": get_config_hash(),
        "model_hash": model_hash(model),
        "is_valid": commercial.is_valid and structure.is_valid,
        "metrics": metrics.model_dump(mode="json"),
        "commercial": commercial.model_dump(mode="json"),
        "structure": structure.model_dump(mode="json"),
        "tiers": [
            {
                "id": t.id,
                "name": t.name,
                "condition": describe_condition(t.condition),
                "payout": t.payout,
                "weight": t.weight,
                "probability": t.probability,
            }
            for t in model.tiers
        ],
    }


def _print_result(label: str, result: ValidationResult) -> None:
    status = "PASS" if result.is_valid else "FAIL"
    print(f"\n{label}: {status}")
    for error in result.errors:
        print(f"  ERROR: {error}")
    for warning in result.warnings:
        print(f"  WARNING: {warning.title} - {warning.message}")
        if warning.details:
            print(f"           {warning.details}")


def print_human(model: PrizeModel, metrics: Metrics, commercial: ValidationResult, structure: ValidationResult) -> None:
    print("=" * 60)
    print(f"PAYTABLE REPORT  mode={model.mode.value}  hash={model_hash(model)}")
    print("=" * 60)

    is_pool = model.mode == MathMode.POOL
    print(f"\n{'Tier':<20} {'Payout':>10} {'Weight' if is_pool else 'Prob %':>12}")
    print("-" * 44)
    for t in model.tiers:
        amount = f"{t.weight:,}" if is_pool else f"{t.probability:.4f}"
        print(f"{(t.name or t.id)[:20]:<20} {t.payout:>9g}x {amount:>12}")

    print(f"\nRTP:            {metrics.rtp:.4f}%")
    print(f"Hit frequency:  {metrics.hit_frequency:.4f}%")
    print(f"Variance:       {metrics.variance:.4f} ({metrics.volatility_label.value})")
    if metrics.average_win_size is not None:
        print(f"Avg win size:   {metrics.average_win_size:.4f}x")
    if is_pool:
        print(f"Losing tickets: {metrics.losing_tickets:,} of {model.total_tickets:,}")
        print(f"Pool value:     {metrics.total_pool_value:,.2f}")
        print(f"House profit:   {metrics.estimated_house_profit:,.2f}")

    anomalies = [
        name
        for name, flagged in (
            ("RTP above 100%", metrics.rtp_above_100),
            ("RTP suspiciously high", metrics.rtp_suspiciously_high),
            ("hit frequency above 100%", metrics.hit_frequency_above_100),
            ("over-allocated", metrics.over_allocated),
        )
        if flagged
    ]
    if anomalies:
        print(f"Anomalies:      {', '.join(anomalies)}")

    _print_result("Commercial rules", commercial)
    _print_result("Structure", structure)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Prize table metrics and validation")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--model", type=str, help="Prize model JSON file")
    source.add_argument("--preset", type=str, help="Preset key, e.g. BALANCED")
    parser.add_argument(
        "--total-tickets",
        type=int,
        default=None,
        help="Deck size when building a preset",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of the human-readable report",
    )

    args = parser.parse_args(argv)

    try:
        if args.model:
            model = PrizeModel.model_validate_json(Path(args.model).read_text())
        else:
            model = preset_model(args.preset, args.total_tickets)
    except KeyError as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        report = build_report(model)
        print(json.dumps(report, indent=2))
        return 0 if report["is_valid"] else 1

    commercial = validate(model)
    structure = validate_structure(model)
    print_human(model, compute_metrics(model), commercial, structure)
    return 0 if commercial.is_valid and structure.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())
