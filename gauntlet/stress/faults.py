"""
In-process fault injection for workloads.

inject_faults() wraps a WorkloadSpec so every execute() first asks a
FaultPlan whether this call should be delayed, fail, or both. Plans are
deterministic for a given seed, which lets stress patterns be exercised
against a workload that degrades on demand. Nothing here touches external
systems.

Usage:
    from gauntlet.stress import faults, rules

    plan = faults.FaultPlan("flaky", [rules.every_nth(7, 20, faults.timeout)])
    flaky = faults.inject_faults(workload, plan, seed=1)
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional

from gauntlet.clock import Clock, SystemClock
from gauntlet.models import WorkloadSpec

logger = logging.getLogger(__name__)

# Decides from the 1-based call number and the plan's seeded RNG.
Trigger = Callable[[int, random.Random], bool]
ExceptionFactory = Callable[[], Exception]


@dataclass(frozen=True)
class Fault:
    delay_seconds: float = 0.0
    exception: Optional[Exception] = None


@dataclass(frozen=True)
class FaultRule:
    """Delay and/or raise whenever trigger fires."""

    trigger: Trigger
    delay_seconds: float = 0.0
    exc_factory: Optional[ExceptionFactory] = None

    def maybe_fault(self, call_index: int, rng: random.Random) -> Optional[Fault]:
        if not self.trigger(call_index, rng):
            return None
        exception = self.exc_factory() if self.exc_factory is not None else None
        return Fault(delay_seconds=self.delay_seconds, exception=exception)


@dataclass
class FaultPlan:
    """Named, ordered rules; the first rule that fires decides the call."""

    name: str
    rules: List[FaultRule] = field(default_factory=list)

    def decide(self, call_index: int, rng: random.Random) -> Optional[Fault]:
        for rule in self.rules:
            fault = rule.maybe_fault(call_index, rng)
            if fault is not None:
                return fault
        return None

    def __add__(self, other: "FaultPlan") -> "FaultPlan":
        return FaultPlan(f"{self.name}+{other.name}", [*self.rules, *other.rules])


class ServiceUnavailable(Exception):
    """A dependency answered with an error."""


# Messages carry the markers network_saturation classifies on.


def connection_refused(message: str = "ECONNREFUSED connection refused (injected)") -> Exception:
    return ConnectionRefusedError(message)


def host_not_found(message: str = "ENOTFOUND host lookup failed (injected)") -> Exception:
    return ConnectionError(message)


def timeout(message: str = "timeout waiting for response (injected)") -> Exception:
    return TimeoutError(message)


def service_error(message: str = "service unavailable (injected)") -> Exception:
    return ServiceUnavailable(message)


class FaultInjector:
    """Numbers calls across worker threads and applies the plan to each."""

    def __init__(self, plan: FaultPlan, seed: int = 0, clock: Optional[Clock] = None) -> None:
        self.plan = plan
        self.clock = clock or SystemClock()
        self.enabled = True
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._calls = 0

    @property
    def call_count(self) -> int:
        with self._lock:
            return self._calls

    def inject(self) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._calls += 1
            fault = self.plan.decide(self._calls, self._rng)
        if fault is None:
            return
        self.clock.sleep(fault.delay_seconds)
        if fault.exception is not None:
            logger.debug("Plan %s injected %r", self.plan.name, fault.exception)
            raise fault.exception


def inject_faults(
    workload: WorkloadSpec,
    plan: FaultPlan,
    *,
    seed: int = 0,
    clock: Optional[Clock] = None,
) -> WorkloadSpec:
    """Copy of workload whose execute() consults plan before the real call."""
    injector = FaultInjector(plan, seed=seed, clock=clock)
    execute = workload.execute

    def execute_with_faults() -> Any:
        injector.inject()
        return execute()

    return replace(workload, execute=execute_with_faults)


def failing(exc_factory: ExceptionFactory) -> Callable[[], Any]:
    """An execute() that raises on every call."""

    def execute() -> Any:
        raise exc_factory()

    return execute
