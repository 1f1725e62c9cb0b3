"""Server-side telemetry for simulations, validation and balancing."""
import logging
from dataclasses import dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class SimulationCompletedEvent:
    """simulation_completed: a run reached COMPLETED."""

    run_id: str
    config_hash: str
    mode: str  # "POOL" | "UNLIMITED"
    finite_deck: bool
    compensated: bool
    spins: int
    theoretical_rtp: float
    actual_rtp: float | None
    exhausted: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "config_hash": self.config_hash,
            "mode": self.mode,
            "finite_deck": self.finite_deck,
            "compensated": self.compensated,
            "spins": self.spins,
            "theoretical_rtp": self.theoretical_rtp,
            "actual_rtp": self.actual_rtp,
            "exhausted": self.exhausted,
        }


@dataclass
class ValidationFailedEvent:
    """validation_failed: a Pool model broke at least one commercial rule."""

    config_hash: str
    error_count: int
    warning_count: int
    errors: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "config_hash": self.config_hash,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "errors": self.errors,
        }


@dataclass
class BalanceAppliedEvent:
    """balance_applied: a balancer operation changed the weights."""

    operation: str  # "target_rtp" | "rtp_ceiling" | "money_back"
    config_hash_before: str
    config_hash_after: str
    ratio: float | None
    rtp_before: float
    rtp_after: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "config_hash_before": self.config_hash_before,
            "config_hash_after": self.config_hash_after,
            "ratio": self.ratio,
            "rtp_before": self.rtp_before,
            "rtp_after": self.rtp_after,
        }


class TelemetryService:
    """Service for emitting server telemetry events."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """
        Emit event with exception safety.

        Sink failures MUST NOT break HTTP requests.
        """
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def emit_simulation_completed(self, event: SimulationCompletedEvent) -> None:
        self._safe_emit("simulation_completed", event.to_dict())

    def emit_validation_failed(self, event: ValidationFailedEvent) -> None:
        self._safe_emit("validation_failed", event.to_dict())

    def emit_balance_applied(self, event: BalanceAppliedEvent) -> None:
        self._safe_emit("balance_applied", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
