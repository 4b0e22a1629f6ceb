"""
Built-in load shapes.

A shape maps elapsed time within a test to offered concurrency and the pause
before the next batch. Shapes are pure: the generator owns the clock.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

from gauntlet.exceptions import UnknownPatternError


class LoadShape(Protocol):
    name: str

    def concurrency(
        self, elapsed: float, duration: float, target: int, rng: random.Random
    ) -> int:
        ...

    def interval(self, elapsed: float, duration: float, rng: random.Random) -> float:
        ...


@dataclass(frozen=True)
class ConstantShape:
    """Full target concurrency every second."""

    name: str = "constant"
    interval_seconds: float = 1.0

    def concurrency(self, elapsed, duration, target, rng) -> int:
        return max(1, target)

    def interval(self, elapsed, duration, rng) -> float:
        return self.interval_seconds


@dataclass(frozen=True)
class RampShape:
    """
    Linear ramp up, hold, linear ramp down.

    Example:
        RampShape(up=0.3, steady=0.6)  # 30% up, 60% hold, last 10% down
    """

    name: str = "ramp"
    up: float = 0.3
    steady: float = 0.6
    interval_seconds: float = 0.1

    def concurrency(self, elapsed, duration, target, rng) -> int:
        if duration <= 0:
            return max(1, target)
        up_end = duration * self.up
        steady_end = up_end + duration * self.steady
        down = duration - steady_end
        if elapsed < up_end:
            level = math.floor(target * elapsed / up_end)
        elif elapsed < steady_end or down <= 0:
            level = target
        else:
            progress = min(1.0, (elapsed - steady_end) / down)
            level = math.floor(target * (1 - progress))
        return max(1, level)

    def interval(self, elapsed, duration, rng) -> float:
        return self.interval_seconds


@dataclass(frozen=True)
class StepShape:
    """Equal-length steps, step k of n offering floor(target / n * k)."""

    name: str = "step"
    steps: int = 5
    interval_seconds: float = 0.2

    def concurrency(self, elapsed, duration, target, rng) -> int:
        if duration <= 0:
            return max(1, target)
        step = min(self.steps, math.floor(elapsed / (duration / self.steps)) + 1)
        return max(1, math.floor(target / self.steps * step))

    def interval(self, elapsed, duration, rng) -> float:
        return self.interval_seconds


@dataclass(frozen=True)
class SpikeShape:
    """
    Low base load punctuated by periodic full-target bursts.

    Each period ends with a burst of spike_seconds; outside a burst one
    base-level batch runs and the loop sleeps until the next burst.
    """

    name: str = "spike"
    period_seconds: float = 10.0
    spike_seconds: float = 2.0
    base_ratio: float = 0.2
    spike_interval_seconds: float = 0.05

    def _phase(self, elapsed: float) -> float:
        return elapsed % self.period_seconds

    def in_spike(self, elapsed: float) -> bool:
        return self._phase(elapsed) >= self.period_seconds - self.spike_seconds

    def concurrency(self, elapsed, duration, target, rng) -> int:
        if self.in_spike(elapsed):
            return max(1, target)
        return max(1, math.floor(target * self.base_ratio))

    def interval(self, elapsed, duration, rng) -> float:
        if self.in_spike(elapsed):
            return self.spike_interval_seconds
        return self.period_seconds - self.spike_seconds - self._phase(elapsed)


@dataclass(frozen=True)
class RandomShape:
    """Uniform random concurrency in [low, 1] x target with random pauses."""

    name: str = "random"
    low: float = 0.1
    min_interval_seconds: float = 0.1
    max_interval_seconds: float = 0.5

    def concurrency(self, elapsed, duration, target, rng) -> int:
        return max(1, math.floor(target * (self.low + rng.random() * (1 - self.low))))

    def interval(self, elapsed, duration, rng) -> float:
        return rng.uniform(self.min_interval_seconds, self.max_interval_seconds)


@dataclass(frozen=True)
class SinusoidalShape:
    """Two full sine cycles around half the target."""

    name: str = "sinusoidal"
    cycles: float = 2.0
    amplitude: float = 0.4
    interval_seconds: float = 0.1

    def concurrency(self, elapsed, duration, target, rng) -> int:
        progress = elapsed / duration if duration > 0 else 0.0
        wave = math.sin(progress * math.pi * 2 * self.cycles)
        return max(1, math.floor(target * (0.5 + self.amplitude * wave)))

    def interval(self, elapsed, duration, rng) -> float:
        return self.interval_seconds


BUILTIN_SHAPES: Mapping[str, LoadShape] = MappingProxyType(
    {
        shape.name: shape
        for shape in (
            ConstantShape(),
            RampShape(),
            StepShape(),
            SpikeShape(),
            RandomShape(),
            SinusoidalShape(),
        )
    }
)


def get_shape(name: str, shapes: Optional[Mapping[str, LoadShape]] = None) -> LoadShape:
    """Look name up in shapes, the built-in shapes by default."""
    shapes = BUILTIN_SHAPES if shapes is None else shapes
    try:
        return shapes[name]
    except KeyError:
        raise UnknownPatternError(name, list(shapes), kind="load pattern") from None
