"""
Adaptive load controller.

A PID-style loop that scales offered concurrency toward a target throughput.
Each update computes the relative throughput error, averages the last
`window` errors for the integral term, and uses the change since the
previous error for the derivative term.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerGains:
    kp: float = 0.1
    ki: float = 0.1
    kd: float = 0.05


class AdaptiveLoadController:
    def __init__(
        self,
        target_throughput: float,
        *,
        gains: Optional[ControllerGains] = None,
        window: int = 10,
        adaptation_threshold: float = 0.05,
        max_adjustment: float = 0.5,
        min_level: float = 0.1,
        max_concurrency: int = 1000,
    ) -> None:
        if target_throughput <= 0:
            raise ValueError("target_throughput must be > 0")
        self.target_throughput = target_throughput
        self.gains = gains or ControllerGains()
        self.adaptation_threshold = adaptation_threshold
        self.max_adjustment = max_adjustment
        self.min_level = min_level
        self.max_concurrency = max_concurrency
        self.level = 1.0
        self.levels: List[float] = []
        self._errors: Deque[float] = deque(maxlen=window)
        self._previous: Optional[float] = None

    def adjustment(self, throughput: float) -> float:
        """Advance the controller state and return the clamped adjustment."""
        error = (self.target_throughput - throughput) / self.target_throughput
        self._errors.append(error)
        integral = sum(self._errors) / len(self._errors)
        derivative = 0.0 if self._previous is None else error - self._previous
        self._previous = error
        raw = (
            self.gains.kp * error
            + self.gains.ki * integral
            + self.gains.kd * derivative
        )
        return max(-self.max_adjustment, min(self.max_adjustment, raw))

    def update(self, throughput: float) -> float:
        adjustment = self.adjustment(throughput)
        if abs(adjustment) > self.adaptation_threshold:
            self.level = max(self.min_level, self.level * (1 + adjustment))
            logger.debug(
                "Load adjusted by %.3f to level %.3f (throughput %.1f, target %.1f)",
                adjustment,
                self.level,
                throughput,
                self.target_throughput,
            )
        self.levels.append(self.level)
        return self.level

    def offered(self, concurrency: int) -> int:
        """Scale a shape's concurrency by the current level within [1, max_concurrency]."""
        return max(1, min(self.max_concurrency, round(concurrency * self.level)))
