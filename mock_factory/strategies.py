"""Signal generation strategies for simulated industrial devices.

Every strategy implements ``generate(current, min_value, max_value) -> float``
and returns the next process value for one device.  The engine keeps one
instance of each strategy and shares it between all devices of that
simulation type:

- ``RealisticStrategy`` - Brownian-motion walk, +/-1.5 % of span per tick,
  reflected back into range at the rails.
- ``RandomStrategy``    - same walk with a wider +/-5 % step.
- ``SineWaveStrategy``  - deterministic oscillation over 200 ticks, driven by
  one tick counter shared by every sine-wave device.
- ``ChaosStrategy``     - mostly stable, with 5 % fault injection
  (wire-break ``-999`` or transmitter saturation ``2 * max``).

All values are generated in full precision; only the returned value is
rounded to two decimals.
"""

from __future__ import annotations

import itertools
import math
import random
from abc import ABC, abstractmethod
from collections.abc import Mapping

from mock_factory.errors import StrategyResolutionError
from mock_factory.models import SimulationType

__all__ = [
    "ChaosStrategy",
    "DataGenerationStrategy",
    "RandomStrategy",
    "RealisticStrategy",
    "SineWaveStrategy",
    "build_strategies",
    "resolve_strategy",
]


class DataGenerationStrategy(ABC):
    """Base class for signal generators.

    Parameters:
        rng: Random source.  Defaults to a private ``random.Random``; pass a
             seeded instance for reproducible output.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @abstractmethod
    def generate(self, current: float, min_value: float, max_value: float) -> float:
        """Produce the next process value.

        Parameters:
            current: The device's current reading.
            min_value: Engineering-unit low range.
            max_value: Engineering-unit high range.
        """


# -----------------------------------------------------------------------
# Bounded random walks
# -----------------------------------------------------------------------


class _BoundedWalkStrategy(DataGenerationStrategy):
    """Random walk that bounces off the range limits instead of sticking."""

    volatility_factor: float = 0.0

    def generate(self, current: float, min_value: float, max_value: float) -> float:
        volatility = (max_value - min_value) * self.volatility_factor
        delta = self._rng.uniform(-volatility, volatility)
        return round(_reflect(current + delta, min_value, max_value), 2)


def _reflect(value: float, min_value: float, max_value: float) -> float:
    """Mirror an out-of-range value back inside ``[min_value, max_value]``."""
    if value < min_value:
        value = min_value + (min_value - value)
    elif value > max_value:
        value = max_value - (value - max_value)
    # A bounce larger than the whole span still has to land in range
    return max(min_value, min(max_value, value))


class RealisticStrategy(_BoundedWalkStrategy):
    """Brownian-motion walk - the default, smoothest signal."""

    volatility_factor = 0.015


class RandomStrategy(_BoundedWalkStrategy):
    """Noisier walk: still correlated with the last reading, but wanders faster."""

    volatility_factor = 0.05


# -----------------------------------------------------------------------
# Sine wave
# -----------------------------------------------------------------------


class SineWaveStrategy(DataGenerationStrategy):
    """Smooth oscillation sweeping the full range over ``period`` ticks.

    The tick counter belongs to the strategy instance, so every device
    using the same instance advances one shared phase.  Devices with
    different cadences therefore drift apart in wall-clock time.
    ``current`` is ignored.
    """

    period = 200.0

    def __init__(self, rng: random.Random | None = None) -> None:
        super().__init__(rng)
        # next() on itertools.count is atomic under the GIL
        self._tick = itertools.count()

    def generate(self, current: float, min_value: float, max_value: float) -> float:
        t = next(self._tick)
        amplitude = (max_value - min_value) / 2.0
        midpoint = (max_value + min_value) / 2.0
        return round(midpoint + amplitude * math.sin(2 * math.pi * t / self.period), 2)


# -----------------------------------------------------------------------
# Chaos / fault injection
# -----------------------------------------------------------------------


class ChaosStrategy(DataGenerationStrategy):
    """Mostly-stable signal with occasional catastrophic readings.

    95 % of ticks drift by at most +/-2 % of the span and are clamped to
    the range.  5 % of ticks return a fault value that deliberately leaves
    the range: ``WIRE_BREAK_VALUE`` or ``2 * max_value``, chosen with a
    coin flip.
    """

    FAULT_PROBABILITY = 0.05
    WIRE_BREAK_VALUE = -999.0
    NOISE_FACTOR = 0.04

    def generate(self, current: float, min_value: float, max_value: float) -> float:
        if self._rng.random() < self.FAULT_PROBABILITY:
            return self._rng.choice((self.WIRE_BREAK_VALUE, max_value * 2))

        noise = (self._rng.random() - 0.5) * (max_value - min_value) * self.NOISE_FACTOR
        value = max(min_value, min(max_value, current + noise))
        return round(value, 2)


# -----------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------

_STRATEGY_CLASSES: dict[SimulationType, type[DataGenerationStrategy]] = {
    SimulationType.REALISTIC: RealisticStrategy,
    SimulationType.RANDOM: RandomStrategy,
    SimulationType.SINE_WAVE: SineWaveStrategy,
    SimulationType.CHAOS: ChaosStrategy,
}


def build_strategies(rng: random.Random | None = None) -> dict[SimulationType, DataGenerationStrategy]:
    """Create one instance of every built-in strategy."""
    return {kind: cls(rng) for kind, cls in _STRATEGY_CLASSES.items()}


def resolve_strategy(
    kind: SimulationType | str,
    strategies: Mapping[SimulationType, DataGenerationStrategy],
) -> DataGenerationStrategy:
    """Look up the strategy for *kind*.

    Raises:
        StrategyResolutionError: *kind* is not a known simulation type or
            has no registered instance.
    """
    try:
        key = SimulationType(kind)
    except ValueError:
        raise StrategyResolutionError(f"Unknown simulation type: {kind!r}") from None

    strategy = strategies.get(key)
    if strategy is None:
        raise StrategyResolutionError(f"No strategy registered for: {key}")
    return strategy
