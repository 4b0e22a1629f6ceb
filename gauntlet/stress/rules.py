"""
Triggers and ready-made fault rules.

A trigger decides from the call number and the plan's RNG; a rule pairs a
trigger with a delay and/or an exception.

Example:
    rules.burst(5, 10, faults.service_error)   # calls 5-14 fail
    rules.every_nth(7, 20, faults.timeout)     # calls 1-7 of every 20 fail
"""

from __future__ import annotations

from typing import Iterable

from gauntlet.stress.faults import ExceptionFactory, FaultRule, Trigger


def chance(p: float) -> Trigger:
    return lambda call, rng: rng.random() < p


def window(start: int, length: int) -> Trigger:
    return lambda call, rng: start <= call < start + length


def cycle(fail: int, out_of: int) -> Trigger:
    if out_of <= 0:
        raise ValueError("out_of must be positive")
    return lambda call, rng: (call - 1) % out_of < fail


def at(indices: Iterable[int]) -> Trigger:
    chosen = frozenset(indices)
    return lambda call, rng: call in chosen


def latency(p: float, delay_seconds: float) -> FaultRule:
    return FaultRule(chance(p), delay_seconds=delay_seconds)


def error_rate(p: float, exc_factory: ExceptionFactory) -> FaultRule:
    return FaultRule(chance(p), exc_factory=exc_factory)


def every_nth(fail: int, out_of: int, exc_factory: ExceptionFactory) -> FaultRule:
    """Exactly fail/out_of of all calls raise, deterministically."""
    return FaultRule(cycle(fail, out_of), exc_factory=exc_factory)


def burst(start: int, length: int, exc_factory: ExceptionFactory) -> FaultRule:
    """Fail calls in [start, start + length)."""
    return FaultRule(window(start, length), exc_factory=exc_factory)


def nth_call(indices: Iterable[int], exc_factory: ExceptionFactory) -> FaultRule:
    return FaultRule(at(indices), exc_factory=exc_factory)


def slow_failure(p: float, delay_seconds: float, exc_factory: ExceptionFactory) -> FaultRule:
    """Delay, then raise."""
    return FaultRule(chance(p), delay_seconds=delay_seconds, exc_factory=exc_factory)
