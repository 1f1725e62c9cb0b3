"""Random sources injected into simulations."""
import random
import secrets
from abc import ABC, abstractmethod


class RNGBase(ABC):
    """Abstract RNG interface used by every draw in the engine."""

    @abstractmethod
    def random(self) -> float:
        """Return random float in [0, 1)."""
        pass

    @abstractmethod
    def randint(self, a: int, b: int) -> int:
        """Return random int in [a, b] inclusive."""
        pass

    def uniform_below(self, upper: float) -> float:
        """Return random float in [0, upper)."""
        return self.random() * upper


class ProductionRNG(RNGBase):
    """
    Cryptographically secure source, no fixed seed.

    Used when a caller does not inject an RNG.
    """

    def random(self) -> float:
        return secrets.randbelow(2**53) / (2**53)

    def randint(self, a: int, b: int) -> int:
        return secrets.randbelow(b - a + 1) + a


class SeededRNG(RNGBase):
    """
    Deterministic RNG for certification runs and tests.

    The seed is kept so reports can record it for reproducibility.
    """

    def __init__(self, seed: int):
        self._rng = random.Random(seed)
        self.seed = seed

    def random(self) -> float:
        return self._rng.random()

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)
