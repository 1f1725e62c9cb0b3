"""Pytest fixtures for engine and API tests."""
from decimal import Decimal
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from gamemath.logic.models import FindTarget, MatchN, MathMode, PrizeModel, PrizeTier
from gamemath.main import app
from gamemath.telemetry import telemetry_service


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (large seeded simulations)"
    )


class RecordingTelemetrySink:
    """Telemetry sink that keeps every event for assertions."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def get_events(self, event_name: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]


def make_tier(payout: float, weight: int = 0, probability: float = 0.0, name: str = "", **kwargs) -> PrizeTier:
    return PrizeTier(
        name=name or f"{payout:g}x",
        payout=payout,
        weight=weight,
        probability=probability,
        **kwargs,
    )


@pytest.fixture
def single_tier_model() -> PrizeModel:
    """1,000,000 tickets, one 100x tier on 1000 of them."""
    return PrizeModel(
        mode=MathMode.POOL,
        total_tickets=1_000_000,
        ticket_price=Decimal("10"),
        tiers=[make_tier(100, weight=1000, name="Top")],
    )


@pytest.fixture
def small_pool_model() -> PrizeModel:
    """Small commercially valid deck that a test can draw in full quickly."""
    return PrizeModel(
        mode=MathMode.POOL,
        total_tickets=1000,
        ticket_price=Decimal("2"),
        tiers=[
            make_tier(50, weight=2, name="Jackpot"),
            make_tier(10, weight=20, name="Big", condition=FindTarget()),
            make_tier(2, weight=100, name="Small"),
            make_tier(1, weight=120, name="Money Back", condition=MatchN(count=3, symbol_id="sym_cherry")),
        ],
    )


@pytest.fixture
def unlimited_model() -> PrizeModel:
    return PrizeModel(
        mode=MathMode.UNLIMITED,
        tiers=[
            make_tier(20, probability=1.0, name="Big"),
            make_tier(2, probability=20.0, name="Small"),
        ],
    )


@pytest.fixture
def model_payload(small_pool_model: PrizeModel) -> dict[str, Any]:
    return small_pool_model.model_dump(mode="json")


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """TestClient with an empty simulation registry."""
    app.state.registry.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.state.registry.clear()


@pytest.fixture
def recording_telemetry() -> Generator[RecordingTelemetrySink, None, None]:
    """Route telemetry to a recording sink for the duration of a test."""
    sink = RecordingTelemetrySink()
    original_sink = telemetry_service._sink
    telemetry_service.set_sink(sink)
    yield sink
    telemetry_service.set_sink(original_sink)
