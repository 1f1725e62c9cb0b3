"""In-memory store of live simulation runs."""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from gamemath.config import settings
from gamemath.errors import ErrorCode, GameMathError
from gamemath.logic.simulation import SimulationRun


logger = logging.getLogger(__name__)


@dataclass
class RunEntry:
    """A run plus the lock serializing batches on it."""

    run: SimulationRun
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    completion_reported: bool = False


class SimulationRegistry:
    """Bounded map of run id -> SimulationRun. Lost on restart."""

    def __init__(self, max_runs: int | None = None):
        self._max_runs = settings.sim_max_active_runs if max_runs is None else max_runs
        self._runs: dict[str, RunEntry] = {}

    def __len__(self) -> int:
        return len(self._runs)

    def add(self, run: SimulationRun) -> str:
        """Register a run. Raises RUN_LIMIT_EXCEEDED when the registry is full."""
        if len(self._runs) >= self._max_runs:
            raise GameMathError(
                ErrorCode.RUN_LIMIT_EXCEEDED,
                f"At most {self._max_runs} simulation runs may be active. Delete one first.",
            )
        run_id = uuid.uuid4().hex
        self._runs[run_id] = RunEntry(run=run)
        logger.info("Registered simulation %s (%s)", run_id, run.config_hash)
        return run_id

    def get(self, run_id: str) -> RunEntry:
        entry = self._runs.get(run_id)
        if entry is None:
            raise GameMathError(ErrorCode.RUN_NOT_FOUND, f"Simulation run {run_id} not found.")
        return entry

    def remove(self, run_id: str) -> None:
        self.get(run_id)
        del self._runs[run_id]
        logger.info("Removed simulation %s", run_id)

    @asynccontextmanager
    async def locked(self, run_id: str):
        """Hold the run's lock so batches from concurrent requests never interleave."""
        entry = self.get(run_id)
        async with entry.lock:
            yield entry

    def clear(self) -> None:
        self._runs.clear()
