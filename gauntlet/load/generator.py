"""
Load pattern generator.

Drives a workload with a time-varying concurrency shape for a fixed
duration, one batch per tick, and analyzes the collected metrics.

Usage:
    from gauntlet.load import LoadPatternGenerator, create_scenario

    generator = LoadPatternGenerator(runner)
    result = generator.run_load_test(
        create_scenario("checkout", workload, pattern="spike", target_concurrency=40)
    )
    print(result.analysis.performance.peak_throughput)
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from gauntlet import telemetry
from gauntlet.clock import Clock, RunControl, Ticker
from gauntlet.load.analysis import analyze_load_test, compare_scenarios
from gauntlet.load.controller import AdaptiveLoadController, ControllerGains
from gauntlet.load.shapes import BUILTIN_SHAPES, LoadShape, get_shape
from gauntlet.models import (
    BatchResult,
    ErrorRecord,
    LoadMetrics,
    LoadTestResult,
    MultiScenarioResult,
    PhaseOutcome,
    WorkloadSpec,
)
from gauntlet.resources import PsutilSampler, ResourceSampler, memory_delta
from gauntlet.runner import Runner, describe_error
from gauntlet.stats import compute_latency_stats, mean

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadScenario:
    """
    One load test definition.

    Setting target_throughput enables the adaptive controller, which scales
    the shape's concurrency toward that rate within [1, max_concurrency].
    """

    name: str
    workload: WorkloadSpec
    pattern: str = "ramp"
    duration_seconds: float = 30.0
    target_concurrency: int = 50
    description: str = ""
    monitoring: bool = True
    monitoring_interval_seconds: float = 5.0
    target_throughput: Optional[float] = None
    max_concurrency: int = 1000
    gains: Optional[ControllerGains] = None


def create_scenario(name: str, workload: WorkloadSpec, **overrides: Any) -> LoadScenario:
    """Build a LoadScenario with defaults: ramp pattern, 30s, concurrency 50."""
    return replace(LoadScenario(name=name, workload=workload), **overrides)


class LoadPatternGenerator:
    def __init__(
        self,
        runner: Runner,
        *,
        control: Optional[RunControl] = None,
        sampler: Optional[ResourceSampler] = None,
        clock: Optional[Clock] = None,
        seed: Optional[int] = None,
        percentiles: Optional[Sequence[float]] = None,
    ) -> None:
        self.runner = runner
        self.control = control or RunControl()
        self.sampler = sampler or PsutilSampler()
        self.clock = clock or runner.clock
        self.rng = random.Random(seed)
        self.percentiles = percentiles
        self.shapes: Dict[str, LoadShape] = dict(BUILTIN_SHAPES)

    def register_shape(self, shape: LoadShape) -> None:
        """Make a custom shape available to this generator's scenarios by its name."""
        self.shapes[shape.name] = shape

    def run_load_test(self, scenario: LoadScenario) -> LoadTestResult:
        """
        Run setup -> pattern -> analysis -> teardown for one scenario.

        Raises UnknownPatternError for an unregistered pattern. Any other
        failure is recorded on the result instead of raised.
        """
        shape = get_shape(scenario.pattern, self.shapes)
        workload = scenario.workload
        result = LoadTestResult(
            scenario=scenario.name,
            pattern=scenario.pattern,
            start_time=self.clock.time(),
        )
        logger.info(
            "Load test %s: pattern=%s duration=%.1fs target=%d",
            scenario.name,
            scenario.pattern,
            scenario.duration_seconds,
            scenario.target_concurrency,
        )
        with telemetry.span("gauntlet.load_test", scenario=scenario.name, pattern=scenario.pattern):
            try:
                if workload.setup is not None:
                    result.phases["setup"] = self._timed(workload.setup)
                self._drive(shape, scenario, result.metrics)
                self._finalize(result.metrics)
                result.analysis = analyze_load_test(result.metrics)
            except Exception as exc:
                result.error = describe_error(exc)
                logger.error("Load test %s failed: %s", scenario.name, result.error)
            finally:
                if workload.teardown is not None:
                    try:
                        result.phases["teardown"] = self._timed(workload.teardown)
                    except Exception as exc:
                        result.error = result.error or describe_error(exc)
                        logger.error("Teardown of %s failed: %s", scenario.name, exc)
        result.end_time = self.clock.time()
        logger.info(
            "Load test %s done: %d ops, error rate %.2f%%",
            scenario.name,
            result.metrics.total_operations,
            result.metrics.error_rate,
        )
        return result

    def run_multi_scenario(self, scenarios: Iterable[LoadScenario]) -> MultiScenarioResult:
        results = MultiScenarioResult(timestamp=self.clock.time())
        for scenario in scenarios:
            if not self.control.running:
                break
            logger.info("Running load scenario %s", scenario.name)
            results.scenarios[scenario.name] = self.run_load_test(scenario)
        results.comparison = compare_scenarios(results.scenarios)
        return results

    def _timed(self, fn: Callable[[], Any]) -> PhaseOutcome:
        before = self.sampler.snapshot()
        start = self.clock.now()
        fn()
        return PhaseOutcome(
            duration_ms=(self.clock.now() - start) * 1000,
            memory_delta=memory_delta(before, self.sampler.snapshot()),
        )

    def _drive(self, shape: LoadShape, scenario: LoadScenario, metrics: LoadMetrics) -> None:
        controller = None
        if scenario.target_throughput:
            controller = AdaptiveLoadController(
                scenario.target_throughput,
                gains=scenario.gains,
                max_concurrency=scenario.max_concurrency,
            )
        duration = scenario.duration_seconds
        ticker = Ticker(self.clock, duration, self.control)
        next_sample = 0.0
        for elapsed in ticker:
            concurrency = shape.concurrency(
                elapsed, duration, scenario.target_concurrency, self.rng
            )
            if controller is not None:
                concurrency = controller.offered(concurrency)
            else:
                concurrency = min(concurrency, scenario.max_concurrency)
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            self._record(metrics, batch)
            if controller is not None:
                metrics.load_levels.append(controller.update(batch.throughput))
            if scenario.monitoring and ticker.elapsed >= next_sample:
                metrics.memory.append(self.sampler.snapshot())
                next_sample = ticker.elapsed + scenario.monitoring_interval_seconds
            ticker.pause(shape.interval(elapsed, duration, self.rng))

    def _record(self, metrics: LoadMetrics, batch: BatchResult) -> None:
        metrics.total_operations += batch.total_operations
        metrics.successful_operations += batch.successful_operations
        metrics.failed_operations += batch.failed_operations
        metrics.throughput.append(batch.throughput)
        metrics.latencies.extend(batch.durations)
        metrics.concurrency.append(batch.concurrency)
        metrics.timestamps.append(batch.started_at)
        metrics.errors.extend(
            ErrorRecord(timestamp=e.timestamp, error=e.error) for e in batch.errors
        )

    def _finalize(self, metrics: LoadMetrics) -> None:
        metrics.avg_throughput = mean(metrics.throughput)
        total = metrics.total_operations
        metrics.error_rate = metrics.failed_operations / total * 100 if total else 0.0
        metrics.latency_stats = compute_latency_stats(metrics.latencies, self.percentiles)
