"""Engine configuration derived from environment."""
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with commercial defaults."""

    model_config = SettingsConfigDict(env_prefix="GAMEMATH_")

    # Server
    debug: bool = False

    # Protocol
    protocol_version: str = "1.0"

    # Commercial constraints (Pool mode only)
    max_rtp: float = 0.85
    min_loser_rate: float = 0.40
    max_money_back_rate: float = 0.15

    # Pool defaults
    default_total_tickets: int = 1_000_000
    default_ticket_price: Decimal = Decimal("10")
    preset_base_deck_size: int = 1_000_000

    # Auto-balancer
    auto_balance_min_rtp: float = 92.0
    auto_balance_default_rtp: float = 96.0

    # Simulation
    sim_batch_size: int = 2500
    sim_history_size: int = 50
    sim_major_tier_count: int = 3
    sim_max_spins_per_request: int = 10_000_000
    sim_max_active_runs: int = 32

    # Crash
    crash_default_bet: Decimal = Decimal("10")
    crash_default_cashout: float = 2.0
    crash_history_size: int = 50
    crash_max_rounds_per_request: int = 1_000_000
    bankroll_max_rounds: int = 10_000


settings = Settings()
