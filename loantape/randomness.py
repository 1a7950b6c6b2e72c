"""
Uniform sampling primitives shared by every generator.

All randomness in the package flows through a RandomSource so that tests (and
regression runs) can pin a seed and get identical tapes. Production callers
simply construct RandomSource() and get an OS-seeded stream.
"""

import math
import random
from datetime import date, timedelta
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class RandomSource:
    """Seedable wrapper around random.Random with the draws the generators need."""

    def __init__(self, seed: Optional[object] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def uniform_int(self, low: float, high: float) -> int:
        """Uniform integer in [low, high], both ends inclusive.

        Bounds may be fractional (e.g. 0.3 x an average loan size); they are
        narrowed to the integers inside the interval.
        """
        lo = math.ceil(low)
        hi = math.floor(high)
        if hi < lo:
            return int(round(low))
        return self._rng.randint(lo, hi)

    def uniform_float(self, low: float, high: float, decimals: int = 2) -> float:
        return round(self._rng.uniform(low, high), decimals)

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        return self._rng.choice(items)

    def uniform_date(self, start: date, end: date) -> date:
        """Uniform calendar date in [start, end]."""
        span = (end - start).days
        return start + timedelta(days=self._rng.randint(0, max(span, 0)))

    def chance(self, probability: float) -> bool:
        """Bernoulli draw: True with the given probability."""
        return self._rng.random() < probability

    def __repr__(self):
        return f"RandomSource(seed={self.seed!r})"
