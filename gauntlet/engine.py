"""
Assembler wiring the layers of one engine together.

All components share one clock, one run control, one resource sampler and
one set of event hooks, so stop() halts every layer and tests can swap the
clock for a ManualClock in one place.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from gauntlet import telemetry
from gauntlet.assessment import assessment_recommendations, score_assessment
from gauntlet.clock import Clock, RunControl, SystemClock
from gauntlet.config import BenchmarkConfig
from gauntlet.events import STOPPED, EventHooks
from gauntlet.exceptions import GauntletError
from gauntlet.history import HistoryStore
from gauntlet.load.generator import LoadPatternGenerator, LoadScenario
from gauntlet.models import AssessmentPhase, AssessmentResult, WorkloadSpec
from gauntlet.orchestrator import BenchmarkOrchestrator
from gauntlet.resources import PsutilSampler, ResourceSampler
from gauntlet.runner import Runner
from gauntlet.stress.chaos import ChaosEngine, HealthProbe
from gauntlet.stress.scenario import StressScenario
from gauntlet.stress.tester import StressEngine

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    config: BenchmarkConfig
    clock: Clock
    control: RunControl
    hooks: EventHooks
    history: HistoryStore
    runner: Runner
    orchestrator: BenchmarkOrchestrator
    loads: LoadPatternGenerator
    stress: StressEngine
    chaos: ChaosEngine

    def stop(self) -> None:
        """Stop every layer after its current batch."""
        logger.info("Engine stop requested")
        self.control.stop()
        self.hooks.emit(STOPPED)

    def assess(
        self,
        workloads: Iterable[WorkloadSpec] = (),
        load_scenarios: Iterable[LoadScenario] = (),
        stress_scenarios: Iterable[StressScenario] = (),
        *,
        suite_name: str = "comprehensive",
    ) -> AssessmentResult:
        """
        Run benchmarks, then load tests, then stress tests, and score them together.

        Empty inputs skip their phase. A stop ends the assessment between
        runs; a run that cannot start is recorded as the assessment error.
        """
        workloads = list(workloads)
        load_scenarios = list(load_scenarios)
        stress_scenarios = list(stress_scenarios)
        result = AssessmentResult(timestamp=self.clock.time())
        logger.info(
            "Assessment starting: %d workloads, %d load scenarios, %d stress scenarios",
            len(workloads),
            len(load_scenarios),
            len(stress_scenarios),
        )
        with telemetry.span("gauntlet.assessment", suite=suite_name):
            try:
                if workloads:
                    result.benchmarks = self.orchestrator.run_suite(suite_name, workloads)
                    self._phase_done(result, "benchmarks")
                if load_scenarios and self.control.running:
                    for scenario in load_scenarios:
                        if not self.control.running:
                            break
                        result.load_tests[scenario.name] = self.loads.run_load_test(scenario)
                    self._phase_done(result, "load_tests")
                if stress_scenarios and self.control.running:
                    for scenario in stress_scenarios:
                        if not self.control.running:
                            break
                        result.stress_tests[scenario.name] = self.stress.run_stress_test(scenario)
                    self._phase_done(result, "stress_tests")
            except GauntletError as exc:
                result.error = exc.message
                logger.error("Assessment failed: %s", exc.message)

        result.scores = score_assessment(result)
        result.recommendations = assessment_recommendations(result)
        telemetry.log(
            "info",
            "gauntlet.assessment_complete",
            overall=result.scores.overall,
            phases=[phase.name for phase in result.phases],
            error=result.error,
        )
        logger.info("Assessment finished: overall score %.1f", result.scores.overall)
        return result

    def _phase_done(self, result: AssessmentResult, name: str) -> None:
        result.phases.append(AssessmentPhase(name=name, completed_at=self.clock.time()))


def build_engine(
    config: Optional[BenchmarkConfig] = None,
    *,
    clock: Optional[Clock] = None,
    history: Optional[HistoryStore] = None,
    hooks: Optional[EventHooks] = None,
    sampler: Optional[ResourceSampler] = None,
    health_probe: Optional[HealthProbe] = None,
    seed: Optional[int] = None,
) -> Engine:
    config = config or BenchmarkConfig()
    clock = clock or SystemClock()
    control = RunControl()
    hooks = hooks or EventHooks()
    history = history or HistoryStore(config.history_size)
    sampler = sampler or PsutilSampler()

    runner = Runner(clock, call_timeout_seconds=config.call_timeout_seconds)
    orchestrator = BenchmarkOrchestrator(
        runner,
        config=config,
        history=history,
        hooks=hooks,
        control=control,
        sampler=sampler,
        clock=clock,
    )
    loads = LoadPatternGenerator(
        runner,
        control=control,
        sampler=sampler,
        clock=clock,
        seed=seed,
        percentiles=config.percentiles,
    )
    stress = StressEngine(runner, loads=loads, control=control, sampler=sampler, clock=clock)
    chaos = ChaosEngine(health_probe, clock=clock, control=control, sampler=sampler, seed=seed)
    return Engine(
        config=config,
        clock=clock,
        control=control,
        hooks=hooks,
        history=history,
        runner=runner,
        orchestrator=orchestrator,
        loads=loads,
        stress=stress,
        chaos=chaos,
    )
