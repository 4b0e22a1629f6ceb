"""
The six stress patterns.

Each pattern runs for its intensity's duration, one batch per tick, and
returns a StressMetrics trace plus the failure points it observed. A
critical failure point halts the pattern early.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from gauntlet.clock import Clock, RunControl, Ticker
from gauntlet.exceptions import UnknownPatternError
from gauntlet.models import (
    BatchResult,
    BatchSample,
    FailurePoint,
    MemoryLeak,
    StressMetrics,
)
from gauntlet.resources import ResourceSampler
from gauntlet.runner import Runner
from gauntlet.stats import compute_latency_stats
from gauntlet.stress.scenario import IntensityProfile, StressScenario, intensity_profile
from gauntlet.stress.thresholds import check_batch, check_failure_thresholds

logger = logging.getLogger(__name__)

LEAK_GROWTH_BYTES = 10 * 1024 * 1024
LEAK_MIN_ITERATION = 10
SLOW_OPERATION_MS = 5000
CONTENTION_ERROR_RATE = 10
CASCADE_ERROR_RATE = 5
CASCADE_LIMIT = 3
NETWORK_MARKERS = ("ECONNREFUSED", "ENOTFOUND", "timeout")
MIXED_WORKLOAD_TYPES = ("cpu", "memory", "io", "network")

PatternResult = Tuple[StressMetrics, List[FailurePoint]]


def sample(batch: BatchResult) -> BatchSample:
    return BatchSample(
        timestamp=batch.started_at,
        concurrency=batch.concurrency,
        error_rate=batch.error_rate,
        throughput=batch.throughput,
        avg_latency=batch.avg_latency,
        p95_latency=compute_latency_stats(batch.durations, [95]).percentile(95),
    )


def share(target: int, ratio: float) -> int:
    return max(1, math.floor(target * ratio))


class StressPatterns:
    """Runs a named stress pattern against a scenario's workload."""

    # Consecutive threshold violations before overload declares a breaking point.
    breaking_point_ticks = 3

    def __init__(
        self,
        runner: Runner,
        clock: Clock,
        control: RunControl,
        sampler: ResourceSampler,
    ) -> None:
        self.runner = runner
        self.clock = clock
        self.control = control
        self.sampler = sampler
        self._patterns: Dict[str, Callable[[StressScenario, IntensityProfile], PatternResult]] = {
            "overload": self.overload,
            "memory_pressure": self.memory_pressure,
            "disk_io": self.disk_io,
            "network_saturation": self.network_saturation,
            "mixed_workload": self.mixed_workload,
            "cascading_failure": self.cascading_failure,
        }

    @property
    def available(self) -> List[str]:
        return list(self._patterns)

    def run(self, scenario: StressScenario) -> PatternResult:
        pattern = self._patterns.get(scenario.stress_type)
        if pattern is None:
            raise UnknownPatternError(scenario.stress_type, self.available, kind="stress pattern")
        profile = intensity_profile(scenario.intensity)
        if scenario.duration_seconds is not None:
            profile = IntensityProfile(
                profile.multiplier, scenario.duration_seconds, profile.ramp_up_seconds
            )
        logger.info(
            "Stress pattern %s (%s) for %.0fs",
            scenario.stress_type,
            scenario.intensity,
            profile.duration_seconds,
        )
        metrics, failure_points = pattern(scenario, profile)
        metrics.duration_seconds = profile.duration_seconds
        return metrics, failure_points

    def _ticker(self, profile: IntensityProfile) -> Ticker:
        return Ticker(self.clock, profile.duration_seconds, self.control)

    def _check(
        self, scenario: StressScenario, batch: BatchResult, iteration: Optional[int] = None
    ) -> Optional[FailurePoint]:
        return check_batch(
            batch,
            scenario.failure_thresholds,
            self.sampler.snapshot(),
            iteration=iteration,
            timestamp=self.clock.time(),
        )

    def overload(self, scenario: StressScenario, profile: IntensityProfile) -> PatternResult:
        base = scenario.target_concurrency
        peak = math.floor(base * profile.multiplier)
        metrics = StressMetrics(pattern="overload")
        failure_points: List[FailurePoint] = []
        ticker = self._ticker(profile)
        violations = 0
        for elapsed in ticker:
            if profile.ramp_up_seconds > 0 and elapsed < profile.ramp_up_seconds:
                progress = elapsed / profile.ramp_up_seconds
                concurrency = max(1, math.floor(base + (peak - base) * progress))
            else:
                concurrency = max(1, peak)
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            point = self._check(scenario, batch)
            if point is None:
                violations = 0
            else:
                violations += 1
                if violations >= self.breaking_point_ticks:
                    point = point.model_copy(update={"severity": "critical"})
                failure_points.append(point)
                if point.severity == "critical":
                    metrics.breaking_point = point
                    logger.warning(
                        "Overload breaking point at concurrency %d: %s",
                        concurrency,
                        point.reason,
                    )
                    break
            metrics.error_spikes.append(sample(batch))
            ticker.pause(1.0)
        return metrics, failure_points

    def memory_pressure(
        self, scenario: StressScenario, profile: IntensityProfile
    ) -> PatternResult:
        concurrency = share(scenario.target_concurrency, 0.8)
        metrics = StressMetrics(pattern="memory_pressure")
        failure_points: List[FailurePoint] = []
        last = self.sampler.snapshot()
        iteration = 0
        ticker = self._ticker(profile)
        for _ in ticker:
            iteration += 1
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            current = self.sampler.snapshot()
            growth = current.rss - last.rss
            metrics.memory_growth.append(growth)
            if iteration > LEAK_MIN_ITERATION and growth > LEAK_GROWTH_BYTES:
                metrics.memory_leaks.append(
                    MemoryLeak(iteration=iteration, growth_bytes=growth, timestamp=self.clock.time())
                )
                logger.warning(
                    "Suspected leak at iteration %d: +%.1fMB", iteration, growth / 1024 / 1024
                )
            point = check_batch(
                batch,
                scenario.failure_thresholds,
                current,
                iteration=iteration,
                timestamp=self.clock.time(),
            )
            if point is not None:
                failure_points.append(point)
            last = current
            ticker.pause(2.0)
        return metrics, failure_points

    def disk_io(self, scenario: StressScenario, profile: IntensityProfile) -> PatternResult:
        concurrency = share(scenario.target_concurrency, 0.6)
        metrics = StressMetrics(pattern="disk_io")
        failure_points: List[FailurePoint] = []
        ticker = self._ticker(profile)
        for _ in ticker:
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            record = sample(batch)
            metrics.io_operations.append(record)
            if record.p95_latency is not None and record.p95_latency > SLOW_OPERATION_MS:
                metrics.slow_operations.append(record)
            point = self._check(scenario, batch)
            if point is not None:
                failure_points.append(point)
            ticker.pause(3.0)
        return metrics, failure_points

    def network_saturation(
        self, scenario: StressScenario, profile: IntensityProfile
    ) -> PatternResult:
        concurrency = share(scenario.target_concurrency, 0.7)
        metrics = StressMetrics(pattern="network_saturation")
        failure_points: List[FailurePoint] = []
        ticker = self._ticker(profile)
        for _ in ticker:
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            metrics.samples.append(sample(batch))
            for err in batch.errors:
                if not any(marker in err.error for marker in NETWORK_MARKERS):
                    continue
                if "timeout" in err.error:
                    metrics.timeout_errors += 1
                else:
                    metrics.connection_errors += 1
            point = self._check(scenario, batch)
            if point is not None:
                failure_points.append(point)
            ticker.pause(2.0)
        return metrics, failure_points

    def mixed_workload(
        self, scenario: StressScenario, profile: IntensityProfile
    ) -> PatternResult:
        concurrency = share(scenario.target_concurrency, 0.25)
        metrics = StressMetrics(
            pattern="mixed_workload",
            resource_usage={kind: [] for kind in MIXED_WORKLOAD_TYPES},
        )
        failure_points: List[FailurePoint] = []
        ticker = self._ticker(profile)
        for _ in ticker:
            error_rates = []
            total = 0
            for kind in MIXED_WORKLOAD_TYPES:
                batch = self.runner.run_batch(concurrency, scenario.workload, 1)
                record = sample(batch)
                metrics.resource_usage[kind].append(record)
                error_rates.append(batch.error_rate)
                total += batch.total_operations
            avg_error = sum(error_rates) / len(error_rates)
            if avg_error > CONTENTION_ERROR_RATE:
                metrics.contention_points.append(
                    BatchSample(
                        timestamp=self.clock.time(),
                        concurrency=concurrency * len(MIXED_WORKLOAD_TYPES),
                        error_rate=avg_error,
                        throughput=0.0,
                        avg_latency=0.0,
                    )
                )
            point = check_failure_thresholds(
                scenario.failure_thresholds,
                error_rate=avg_error,
                concurrency=concurrency * len(MIXED_WORKLOAD_TYPES),
                timestamp=self.clock.time(),
            )
            if point is not None:
                failure_points.append(point)
            ticker.pause(5.0)
        return metrics, failure_points

    def cascading_failure(
        self, scenario: StressScenario, profile: IntensityProfile
    ) -> PatternResult:
        concurrency = max(1, scenario.target_concurrency)
        metrics = StressMetrics(pattern="cascading_failure")
        failure_points: List[FailurePoint] = []
        ticker = self._ticker(profile)
        for _ in ticker:
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            if batch.error_rate > CASCADE_ERROR_RATE:
                metrics.failure_count += 1
                metrics.failure_chain.append(sample(batch))
                if metrics.failure_count > CASCADE_LIMIT:
                    point = FailurePoint(
                        type="cascading_failure",
                        severity="critical",
                        reason="Multiple cascading failures detected",
                        value=batch.error_rate,
                        threshold=CASCADE_ERROR_RATE,
                        concurrency=concurrency,
                        timestamp=self.clock.time(),
                    )
                    failure_points.append(point)
                    metrics.breaking_point = point
                    logger.warning("Cascading failure after %d failing batches", metrics.failure_count)
                    break
            else:
                metrics.failure_count = max(0, metrics.failure_count - 1)
            point = self._check(scenario, batch)
            if point is not None:
                failure_points.append(point)
            ticker.pause(3.0)
        return metrics, failure_points
