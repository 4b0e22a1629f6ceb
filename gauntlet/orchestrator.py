"""
Benchmark orchestrator.

Runs each workload through setup -> warmup -> measurement -> stress ->
teardown, then derives summaries, trend analytics and suite-level
recommendations. Suites run one workload at a time; a failing phase ends
only the workload it belongs to.

Usage:
    from gauntlet import build_engine, WorkloadSpec

    engine = build_engine()
    suite = engine.orchestrator.run_suite("api", [WorkloadSpec("ping", ping)])
    print(suite.analysis.knee_point)
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable, List, Optional, Tuple

from gauntlet import telemetry
from gauntlet.analysis import (
    adapt_levels,
    analyze_suite,
    compare_performance,
    compute_summary,
    detect_anomalies,
    detect_bottlenecks,
    detect_regressions,
    generate_predictions,
    generate_recommendations,
    history_metrics,
    recommend_warmup,
    warmup_effect,
)
from gauntlet.clock import Clock, RunControl, SystemClock, Ticker
from gauntlet.config import BenchmarkConfig
from gauntlet.events import BENCHMARK_COMPLETE, CONCURRENCY_COMPLETE, STOPPED, EventHooks
from gauntlet.exceptions import GauntletError, WorkloadError
from gauntlet.history import HistoryStore
from gauntlet.models import (
    AdvancedAnalysis,
    ConcurrencyMeasurement,
    ConcurrencyProfile,
    HistoryEntry,
    MemoryDelta,
    PhaseError,
    PhaseOutcome,
    RunResult,
    StressPhaseResult,
    SuiteResult,
    WorkloadSpec,
    from_epoch,
)
from gauntlet.resources import PsutilSampler, ResourceSampler, memory_delta, system_info
from gauntlet.runner import Runner, describe_error
from gauntlet.stats import compute_latency_stats

logger = logging.getLogger(__name__)

STRESS_BATCH_PAUSE_SECONDS = 0.001


class BenchmarkOrchestrator:
    """Sequences benchmark phases over a Runner and records trends in a HistoryStore."""

    def __init__(
        self,
        runner: Runner,
        *,
        config: Optional[BenchmarkConfig] = None,
        history: Optional[HistoryStore] = None,
        hooks: Optional[EventHooks] = None,
        control: Optional[RunControl] = None,
        sampler: Optional[ResourceSampler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.runner = runner
        self.config = config or BenchmarkConfig()
        self.history = history or HistoryStore(self.config.history_size)
        self.hooks = hooks or EventHooks()
        self.control = control or RunControl()
        self.sampler = sampler or PsutilSampler()
        self.clock = clock or runner.clock or SystemClock()

    @property
    def running(self) -> bool:
        return self.control.running

    def stop(self) -> None:
        """Ask running loops to finish their current batch and exit."""
        logger.info("Stop requested")
        self.control.stop()
        self.hooks.emit(STOPPED)

    def run_suite(self, suite_name: str, workloads: Iterable[WorkloadSpec]) -> SuiteResult:
        self.control.reset()
        suite = SuiteResult(
            suite_name=suite_name,
            timestamp=from_epoch(self.clock.time()),
            system=system_info(),
        )
        logger.info("Starting benchmark suite %s", suite_name)
        with telemetry.span("gauntlet.suite", suite=suite_name):
            for workload in workloads:
                if not self.control.running:
                    suite.stopped = True
                    logger.info("Suite %s stopped before %s", suite_name, workload.name)
                    break
                try:
                    result = self.run_benchmark(workload)
                except GauntletError as exc:
                    logger.error("Benchmark %s could not start: %s", workload.name, exc)
                    result = RunResult(
                        name=workload.name,
                        description=workload.description,
                        timestamp=from_epoch(self.clock.time()),
                        errors=[PhaseError(phase="start", error=exc.message, type=exc.code)],
                    )
                suite.benchmarks[workload.name] = result

        suite.analysis = analyze_suite(suite.benchmarks)
        suite.recommendations = generate_recommendations(
            suite.analysis, self.config.concurrency_levels
        )
        logger.info(
            "Suite %s finished: %d benchmarks, knee=%s",
            suite_name,
            len(suite.benchmarks),
            suite.analysis.knee_point,
        )
        return suite

    def run_benchmark(self, workload: WorkloadSpec) -> RunResult:
        """Run one workload through every phase. Raises ConcurrentRunError if busy."""
        with self.history.run_lock(workload.name):
            with telemetry.span("gauntlet.benchmark", workload=workload.name):
                result = self._run(workload)
        telemetry.log(
            "info",
            "gauntlet.benchmark_complete",
            workload=workload.name,
            best_concurrency=result.summary.best_concurrency,
            best_throughput=result.summary.best_throughput,
            errors=len(result.errors),
        )
        self.hooks.emit(BENCHMARK_COMPLETE, workload.name, result)
        return result

    def _run(self, workload: WorkloadSpec) -> RunResult:
        name = workload.name
        config = self.config
        past = self.history.entries(name)
        result = RunResult(
            name=name,
            description=workload.description,
            timestamp=from_epoch(self.clock.time()),
        )
        logger.info("Benchmark %s starting", name)

        try:
            if workload.setup is not None:
                result.phases["setup"] = self._phase("setup", workload.setup, name)[0]

            warmup_n = config.warmup_iterations
            if config.intelligent_warmup:
                warmup_n = recommend_warmup(past, warmup_n)
            result.warmup_iterations = warmup_n
            outcome, batch = self._phase(
                "warmup", lambda: self.runner.run_batch(1, workload, warmup_n), name
            )
            outcome.iterations = warmup_n
            result.phases["warmup"] = outcome
            result.warmup_effect = warmup_effect(batch.durations)

            levels = list(config.concurrency_levels)
            if config.adaptive_load_generation:
                levels = adapt_levels(levels, past, config.max_concurrency)
            else:
                levels = [level for level in levels if level <= config.max_concurrency] or [
                    min(levels)
                ]
            result.concurrency_levels = levels
            outcome, _ = self._phase(
                "measurement", lambda: self._measure(workload, levels, result), name
            )
            result.phases["measurement"] = outcome

            if config.duration_seconds > 0 and self.control.running:
                _, stress = self._phase(
                    "stress", lambda: self._stress(workload, max(levels)), name
                )
                result.phases["stress"] = stress

            if workload.teardown is not None:
                result.phases["teardown"] = self._phase("teardown", workload.teardown, name)[0]
        except WorkloadError as failure:
            details = failure.details
            result.phases[failure.phase] = PhaseOutcome(
                duration_ms=details["duration_ms"],
                memory_delta=MemoryDelta(rss=details["rss_delta"], vms=details["vms_delta"]),
                error=failure.message,
            )
            result.errors.append(
                PhaseError(phase=failure.phase, error=details["cause"], type=details["cause_type"])
            )
            logger.error("Benchmark %s failed in %s: %s", name, failure.phase, failure.message)

        result.summary = compute_summary(result.measurements)
        if not result.errors and result.measurements and self.control.running:
            self._record_trends(result, past)
        logger.info(
            "Benchmark %s done: best concurrency %d at %.1f ops/s",
            name,
            result.summary.best_concurrency,
            result.summary.best_throughput,
        )
        return result

    def _phase(
        self, phase: str, fn: Callable[[], Any], workload: str = ""
    ) -> Tuple[PhaseOutcome, Any]:
        """Run fn, timing it and recording the memory delta.

        Raises WorkloadError carrying the timing of the failed phase.
        """
        before = self.sampler.snapshot()
        start = self.clock.now()
        try:
            value = fn()
        except Exception as exc:
            delta = memory_delta(before, self.sampler.snapshot())
            raise WorkloadError(
                describe_error(exc),
                workload=workload,
                phase=phase,
                details={
                    "cause": str(exc),
                    "cause_type": type(exc).__name__,
                    "duration_ms": (self.clock.now() - start) * 1000,
                    "rss_delta": delta.rss,
                    "vms_delta": delta.vms,
                },
            ) from exc
        outcome = PhaseOutcome(
            duration_ms=(self.clock.now() - start) * 1000,
            memory_delta=memory_delta(before, self.sampler.snapshot()),
        )
        logger.debug("Phase %s took %.2fms", phase, outcome.duration_ms)
        return outcome, value

    def _measure(self, workload: WorkloadSpec, levels: List[int], result: RunResult) -> None:
        iterations = self.config.measurement_iterations
        for level in levels:
            if not self.control.running:
                logger.info("Measurement of %s stopped before level %d", workload.name, level)
                break
            batch = self.runner.run_batch(level, workload, iterations)
            measurement = ConcurrencyMeasurement(
                concurrency=level,
                total_time_ms=batch.elapsed_seconds * 1000,
                iterations=batch.successful_operations,
                failed_iterations=batch.failed_operations,
                throughput=batch.throughput,
                latencies=compute_latency_stats(batch.durations, self.config.percentiles),
                errors=batch.errors,
                memory=self.sampler.snapshot(),
            )
            result.measurements[level] = measurement
            logger.info(
                "%s concurrency=%d throughput=%.1f ops/s errors=%d",
                workload.name,
                level,
                measurement.throughput,
                measurement.failed_iterations,
            )
            self.hooks.emit(CONCURRENCY_COMPLETE, workload.name, level, measurement)

    def _stress(self, workload: WorkloadSpec, max_concurrency: int) -> StressPhaseResult:
        config = self.config
        ramp = config.ramp_up_seconds
        ticker = Ticker(self.clock, config.duration_seconds, self.control)
        durations: List[float] = []
        errors = []
        successful = failed = 0
        for elapsed in ticker:
            if ramp > 0 and elapsed < ramp:
                concurrency = max(1, math.floor(1 + (max_concurrency - 1) * elapsed / ramp))
            else:
                concurrency = max_concurrency
            batch = self.runner.run_batch(concurrency, workload, 1)
            durations.extend(batch.durations)
            errors.extend(batch.errors)
            successful += batch.successful_operations
            failed += batch.failed_operations
            ticker.pause(STRESS_BATCH_PAUSE_SECONDS)
        actual = ticker.elapsed
        if config.cool_down_seconds > 0 and self.control.running:
            self.clock.sleep(config.cool_down_seconds)

        return StressPhaseResult(
            duration_ms=actual * 1000,
            total_operations=successful + failed,
            successful_operations=successful,
            failed_operations=failed,
            throughput=successful / actual if actual > 0 else 0.0,
            avg_latency=sum(durations) / len(durations) if durations else 0.0,
            latencies=compute_latency_stats(durations, config.percentiles),
            errors=errors,
            concurrency_profile=ConcurrencyProfile(
                max_concurrency=max_concurrency,
                ramp_up_seconds=min(ramp, actual),
                steady_state_seconds=max(0.0, actual - ramp),
            ),
            batches=ticker.ticks,
        )

    def _record_trends(self, result: RunResult, past: List[HistoryEntry]) -> None:
        config = self.config
        name = result.name
        metrics = history_metrics(result)
        advanced = AdvancedAnalysis()

        if config.regression_detection:
            baseline = self.history.baseline(name)
            if baseline is None:
                self.history.set_baseline(name, metrics)
                logger.info("Baseline recorded for %s", name)
            else:
                advanced.regressions = detect_regressions(metrics, baseline)
                self.history.record_regressions(name, advanced.regressions)
                for regression in advanced.regressions:
                    logger.warning(
                        "Regression in %s.%s: %.1f%% (%s)",
                        name,
                        regression.metric,
                        regression.change_percent,
                        regression.severity,
                    )
        if config.anomaly_detection:
            advanced.anomalies = detect_anomalies(
                metrics, past, config.anomaly_threshold, config.anomaly_min_history
            )
        if config.bottleneck_analysis:
            advanced.bottlenecks = detect_bottlenecks(result, self.sampler.snapshot())
        if config.predictive_modeling:
            advanced.predictions = generate_predictions(metrics, past, config.prediction_window)
        if config.comparative_analysis:
            advanced.comparisons = compare_performance(metrics, past)

        result.advanced = advanced
        self.history.append(name, HistoryEntry(timestamp=result.timestamp, metrics=metrics))
