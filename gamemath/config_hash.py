"""Config fingerprints for audit reports and telemetry.

This module provides the shared hash functions used by:
- simulation reports (model fingerprint of the frozen snapshot)
- audit_sim.py (CSV audit)
- telemetry events

The hashes MUST be computed identically in all locations.
"""
import hashlib
import json

from pydantic import BaseModel

from gamemath.config import settings


def _digest(payload: object) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]


def get_config_hash() -> str:
    """
    Hash of the engine settings that affect validation and simulation.

    Returns 16-char hex hash of config snapshot.
    """
    config_snapshot = {
        "max_rtp": settings.max_rtp,
        "min_loser_rate": settings.min_loser_rate,
        "max_money_back_rate": settings.max_money_back_rate,
        "sim_batch_size": settings.sim_batch_size,
        "sim_major_tier_count": settings.sim_major_tier_count,
    }
    return _digest(config_snapshot)


def model_hash(model: BaseModel) -> str:
    """16-char hex hash of a PrizeModel or CrashConfig."""
    return _digest(model.model_dump(mode="json"))
