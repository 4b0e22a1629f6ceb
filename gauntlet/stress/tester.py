"""
Stress engine: baseline -> stress pattern -> recovery, then analysis.

Usage:
    from gauntlet.stress import StressEngine, create_stress_scenario

    engine = StressEngine(runner, loads=generator)
    result = engine.run_stress_test(
        create_stress_scenario("orders", workload, stress_type="overload", intensity="low")
    )
    print(result.analysis.system_limits.max_safe_concurrency)
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Optional

from gauntlet import telemetry
from gauntlet.clock import Clock, RunControl
from gauntlet.exceptions import UnknownPatternError
from gauntlet.load.generator import LoadPatternGenerator, create_scenario
from gauntlet.models import (
    LoadTestResult,
    Recommendation,
    RecoveryCapability,
    RecoveryResult,
    RecoveryStep,
    StressAnalysis,
    StressMetrics,
    StressPhase,
    StressTestResult,
    SystemLimits,
)
from gauntlet.resources import PsutilSampler, ResourceSampler
from gauntlet.runner import Runner, describe_error
from gauntlet.stress.patterns import StressPatterns
from gauntlet.stress.scenario import StressScenario

logger = logging.getLogger(__name__)

BASELINE_DURATION_SECONDS = 30.0
BASELINE_LOAD_RATIO = 0.3
RECOVERY_STEPS = (0.8, 0.6, 0.4, 0.2, 0.1)
RECOVERY_OBSERVATION_SECONDS = 5.0
RECOVERY_MAX_ERROR_RATE = 5.0
RECOVERY_MAX_LATENCY_MS = 1000.0
SIGNIFICANT_LEAK_BYTES = 50 * 1024 * 1024


class StressEngine:
    def __init__(
        self,
        runner: Runner,
        *,
        loads: Optional[LoadPatternGenerator] = None,
        control: Optional[RunControl] = None,
        sampler: Optional[ResourceSampler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.runner = runner
        self.clock = clock or runner.clock
        self.control = control or RunControl()
        self.sampler = sampler or PsutilSampler()
        self.loads = loads or LoadPatternGenerator(
            runner, control=self.control, sampler=self.sampler, clock=self.clock
        )
        self.patterns = StressPatterns(runner, self.clock, self.control, self.sampler)

    def run_stress_test(self, scenario: StressScenario) -> StressTestResult:
        """
        Raises UnknownPatternError for an unregistered stress type. Any other
        failure is recorded on the result instead of raised.
        """
        if scenario.stress_type not in self.patterns.available:
            raise UnknownPatternError(
                scenario.stress_type, self.patterns.available, kind="stress pattern"
            )
        result = StressTestResult(
            scenario=scenario.name,
            stress_type=scenario.stress_type,
            intensity=scenario.intensity,
            start_time=self.clock.time(),
        )
        workload = scenario.workload
        logger.info(
            "Stress test %s: %s at %s intensity", scenario.name, scenario.stress_type, scenario.intensity
        )
        with telemetry.span(
            "gauntlet.stress_test", scenario=scenario.name, stress_type=scenario.stress_type
        ):
            try:
                if workload.setup is not None:
                    workload.setup()
                result.phases["baseline"] = self._baseline(scenario)

                start = self.clock.now()
                metrics, failure_points = self.patterns.run(scenario)
                result.phases["stress"] = StressPhase(
                    duration_ms=(self.clock.now() - start) * 1000,
                    metrics=metrics.model_dump(),
                    failure_points=failure_points,
                )
                result.failure_points.extend(failure_points)

                if scenario.recovery_test and self.control.running:
                    result.recovery = self._recovery(scenario)
                    result.phases["recovery"] = result.recovery

                result.analysis = self._analyze(result, metrics)
            except Exception as exc:
                result.error = describe_error(exc)
                logger.error("Stress test %s failed: %s", scenario.name, result.error)
            finally:
                if workload.teardown is not None:
                    try:
                        workload.teardown()
                    except Exception as exc:
                        result.error = result.error or describe_error(exc)
                        logger.error("Teardown of %s failed: %s", scenario.name, exc)
        result.end_time = self.clock.time()
        telemetry.log(
            "info",
            "gauntlet.stress_complete",
            scenario=scenario.name,
            failure_points=len(result.failure_points),
            error=result.error,
        )
        return result

    def _baseline(self, scenario: StressScenario) -> LoadTestResult:
        # Setup and teardown run once around the whole stress test.
        workload = replace(scenario.workload, setup=None, teardown=None)
        baseline = create_scenario(
            "baseline",
            workload,
            pattern="constant",
            duration_seconds=BASELINE_DURATION_SECONDS,
            target_concurrency=max(1, math.floor(scenario.target_concurrency * BASELINE_LOAD_RATIO)),
        )
        return self.loads.run_load_test(baseline)

    def _recovery(self, scenario: StressScenario) -> RecoveryResult:
        logger.info("Recovery test for %s", scenario.name)
        start = self.clock.now()
        steps: List[RecoveryStep] = []
        for ratio in RECOVERY_STEPS:
            concurrency = max(1, math.floor(scenario.target_concurrency * ratio))
            batch = self.runner.run_batch(concurrency, scenario.workload, 1)
            steps.append(
                RecoveryStep(
                    load_ratio=ratio,
                    concurrency=concurrency,
                    error_rate=batch.error_rate,
                    avg_latency=batch.avg_latency,
                    throughput=batch.throughput,
                    timestamp=self.clock.time(),
                )
            )
            self.clock.sleep(RECOVERY_OBSERVATION_SECONDS)
        final = steps[-1]
        return RecoveryResult(
            recovery_time_seconds=self.clock.now() - start,
            steps=steps,
            success=(
                final.error_rate < RECOVERY_MAX_ERROR_RATE
                and final.avg_latency < RECOVERY_MAX_LATENCY_MS
            ),
            final_error_rate=final.error_rate,
            final_avg_latency=final.avg_latency,
        )

    def _analyze(self, result: StressTestResult, metrics: StressMetrics) -> StressAnalysis:
        breaking = [p for p in result.failure_points if p.severity == "critical"]
        analysis = StressAnalysis(breaking_points=breaking)

        if result.recovery is not None:
            recovery = result.recovery
            analysis.recovery_capability = RecoveryCapability(
                recovery_time_seconds=recovery.recovery_time_seconds,
                success=recovery.success,
                final_error_rate=recovery.final_error_rate,
                final_avg_latency=recovery.final_avg_latency,
                degradation_percent=self._degradation(result),
            )

        limits = SystemLimits()
        if breaking:
            first = min(breaking, key=lambda p: p.timestamp or 0.0)
            limits.max_safe_concurrency = first.concurrency or 0
        if metrics.pattern == "memory_pressure" and any(
            leak.growth_bytes > SIGNIFICANT_LEAK_BYTES for leak in metrics.memory_leaks
        ):
            limits.memory_leak_threshold = "detected"
        analysis.system_limits = limits
        analysis.recommendations = stress_recommendations(analysis)
        return analysis

    @staticmethod
    def _degradation(result: StressTestResult) -> Optional[float]:
        baseline = result.phases.get("baseline")
        if not isinstance(baseline, LoadTestResult) or result.recovery is None:
            return None
        base_latency = baseline.metrics.latency_stats.mean or 0.0
        if base_latency == 0:
            return 0.0
        final = result.recovery.final_avg_latency or 0.0
        return (final - base_latency) / base_latency * 100


def stress_recommendations(analysis: StressAnalysis) -> List[Recommendation]:
    recommendations = []
    if analysis.breaking_points:
        where = analysis.breaking_points[0].concurrency
        recommendations.append(
            Recommendation(
                type="capacity_planning",
                priority="high",
                message=f"System breaks at concurrency {where if where else 'under high load'}",
                actions=[
                    "Set a concurrency limit below the breaking point",
                    "Add autoscaling or load shedding",
                ],
            )
        )
    recovery = analysis.recovery_capability
    if recovery is not None and not recovery.success:
        recommendations.append(
            Recommendation(
                type="resilience",
                priority="high",
                message="System does not recover once load drops",
                actions=["Add graceful degradation", "Add retries and health checks"],
            )
        )
    if analysis.system_limits.memory_leak_threshold == "detected":
        recommendations.append(
            Recommendation(
                type="memory_management",
                priority="high",
                message="Memory leak detected under sustained pressure",
                actions=["Find and fix the leak", "Add memory monitoring"],
            )
        )
    return recommendations
