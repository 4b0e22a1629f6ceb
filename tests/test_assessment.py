"""Tests for comprehensive assessment scoring and Engine.assess."""

import pytest

from gauntlet import BenchmarkConfig, WorkloadSpec, build_engine
from gauntlet.assessment import (
    assessment_recommendations,
    load_score,
    score_assessment,
    stress_score,
    suite_score,
)
from gauntlet.load import create_scenario
from gauntlet.models import (
    AssessmentResult,
    BenchmarkPerformance,
    Bottleneck,
    ConcurrencyMeasurement,
    ErrorDistribution,
    FailurePoint,
    LatencyStats,
    LoadAnalysis,
    LoadPerformance,
    LoadStability,
    LoadTestResult,
    RunResult,
    StressAnalysis,
    StressTestResult,
    SuiteAnalysis,
    SuiteResult,
)
from gauntlet.stress import create_stress_scenario


def bottleneck(kind="reliability"):
    return Bottleneck(type=kind, severity="high", description=kind)


def measurement(level):
    return ConcurrencyMeasurement(
        concurrency=level,
        total_time_ms=10.0,
        iterations=10,
        failed_iterations=0,
        throughput=100.0,
        latencies=LatencyStats(),
    )


def suite(scaling=1.0, error_rate=0.0, bottlenecks=0, levels=(1, 2)):
    run = RunResult(name="api", measurements={level: measurement(level) for level in levels})
    analysis = SuiteAnalysis(
        performance={
            "api": BenchmarkPerformance(
                best_throughput=100.0,
                optimal_concurrency=1,
                scaling_efficiency=scaling,
                error_rate=error_rate,
            )
        },
        bottlenecks=[bottleneck() for _ in range(bottlenecks)],
    )
    return SuiteResult(suite_name="s", benchmarks={"api": run}, analysis=analysis)


def load_analysis(error_rate=0.0, bottlenecks=0):
    return LoadAnalysis(
        performance=LoadPerformance(
            avg_throughput=50.0,
            peak_throughput=60.0,
            avg_latency=10.0,
            p95_latency=20.0,
            error_rate=error_rate,
            total_operations=100,
        ),
        stability=LoadStability(throughput_stability=0.1, latency_stability=0.1),
        error_distribution=ErrorDistribution(),
        bottlenecks=[bottleneck() for _ in range(bottlenecks)],
    )


def breaking_point():
    return FailurePoint(type="overload", severity="critical", reason="errors")


class TestComponentScores:
    def test_clean_suite_scores_full(self):
        assert suite_score(suite()) == 100.0

    def test_suite_penalties(self):
        assert suite_score(suite(bottlenecks=2)) == 80.0
        assert suite_score(suite(scaling=0.4)) == 80.0
        assert suite_score(suite(error_rate=12.0)) == 85.0
        assert suite_score(suite(scaling=0.4, error_rate=12.0, bottlenecks=1)) == 55.0

    def test_single_level_scaling_not_penalized(self):
        assert suite_score(suite(scaling=0.0, levels=(1,))) == 100.0

    def test_load_penalties(self):
        assert load_score(load_analysis()) == 100.0
        assert load_score(load_analysis(error_rate=11.0, bottlenecks=1)) == 75.0

    def test_scores_clamped_at_zero(self):
        assert load_score(load_analysis(error_rate=50.0, bottlenecks=12)) == 0.0

    def test_stress_breaking_points(self):
        assert stress_score(StressAnalysis()) == 100.0
        analysis = StressAnalysis(breaking_points=[breaking_point(), breaking_point()])
        assert stress_score(analysis) == 80.0


class TestScoreAssessment:
    def test_nothing_scored_is_perfect(self):
        scores = score_assessment(AssessmentResult(timestamp=0.0))
        assert scores.overall == 100.0
        assert scores.benchmarks is None
        assert assessment_recommendations(AssessmentResult(timestamp=0.0)) == []

    def test_overall_is_mean_of_components(self):
        result = AssessmentResult(
            timestamp=0.0,
            benchmarks=suite(bottlenecks=1),
            load_tests={
                "ok": LoadTestResult(scenario="ok", pattern="ramp", start_time=0.0,
                                     analysis=load_analysis()),
                "broken": LoadTestResult(scenario="broken", pattern="ramp", start_time=0.0,
                                         error="RuntimeError: boom"),
            },
            stress_tests={
                "spike": StressTestResult(
                    scenario="spike",
                    stress_type="overload",
                    intensity="low",
                    start_time=0.0,
                    analysis=StressAnalysis(breaking_points=[breaking_point()] * 4),
                )
            },
        )
        scores = score_assessment(result)
        assert scores.benchmarks == 90.0
        assert scores.load_tests == {"ok": 100.0}
        assert scores.stress_tests == {"spike": 60.0}
        assert scores.overall == pytest.approx((90.0 + 100.0 + 60.0) / 3)

    def test_critical_recommendation(self):
        result = AssessmentResult(timestamp=0.0, benchmarks=suite(scaling=0.2, bottlenecks=2))
        result.scores = score_assessment(result)
        assert result.scores.overall == 60.0
        types = [r.type for r in assessment_recommendations(result)]
        assert types == ["critical_performance", "benchmark_issues"]
        assert assessment_recommendations(result)[0].priority == "high"

    def test_optimization_recommendation(self):
        result = AssessmentResult(timestamp=0.0, benchmarks=suite(scaling=0.3))
        result.scores = score_assessment(result)
        assert result.scores.overall == 80.0
        recommendations = assessment_recommendations(result)
        assert [r.type for r in recommendations] == ["performance_optimization"]
        assert recommendations[0].priority == "medium"


class TestEngineAssess:
    def test_runs_every_phase_in_order(self, clock, make_sampler):
        engine = build_engine(
            BenchmarkConfig(
                concurrency_levels=[1, 2],
                warmup_iterations=4,
                measurement_iterations=4,
                duration_seconds=0,
            ),
            clock=clock,
            sampler=make_sampler(total=100, available=50),
        )
        workload = WorkloadSpec("api", lambda: clock.advance(0.001))
        result = engine.assess(
            [workload],
            [create_scenario("steady", workload, pattern="constant", duration_seconds=3,
                             target_concurrency=2)],
            [create_stress_scenario("disk", workload, stress_type="disk_io", intensity="low",
                                    target_concurrency=4, duration_seconds=6,
                                    recovery_test=False)],
        )

        assert result.error is None
        assert [p.name for p in result.phases] == ["benchmarks", "load_tests", "stress_tests"]
        completed = [p.completed_at for p in result.phases]
        assert completed == sorted(completed)
        assert result.benchmarks.suite_name == "comprehensive"
        assert set(result.load_tests) == {"steady"}
        assert set(result.stress_tests) == {"disk"}
        components = [result.scores.benchmarks, *result.scores.load_tests.values(),
                      *result.scores.stress_tests.values()]
        assert len(components) == 3
        assert result.scores.overall == pytest.approx(sum(components) / 3)
        assert 0.0 <= result.scores.overall <= 100.0

    def test_empty_inputs_skip_phases(self, clock, make_sampler):
        engine = build_engine(clock=clock, sampler=make_sampler())
        result = engine.assess()
        assert result.phases == []
        assert result.benchmarks is None
        assert result.scores.overall == 100.0
        assert result.recommendations == []

    def test_unknown_stress_type_recorded_as_error(self, clock, make_sampler):
        engine = build_engine(clock=clock, sampler=make_sampler())
        workload = WorkloadSpec("api", lambda: clock.advance(0.001))
        result = engine.assess(
            load_scenarios=[create_scenario("steady", workload, pattern="constant",
                                            duration_seconds=2, target_concurrency=1)],
            stress_scenarios=[create_stress_scenario("bad", workload, stress_type="meteor")],
        )
        assert "meteor" in result.error
        assert [p.name for p in result.phases] == ["load_tests"]
        assert set(result.scores.load_tests) == {"steady"}

    def test_stopped_engine_runs_nothing(self, clock, make_sampler):
        engine = build_engine(clock=clock, sampler=make_sampler())
        workload = WorkloadSpec("api", lambda: clock.advance(0.001))
        engine.stop()
        result = engine.assess(
            load_scenarios=[create_scenario("steady", workload, pattern="constant",
                                            duration_seconds=2, target_concurrency=1)],
        )
        assert result.load_tests == {}
        assert result.phases == []
        assert result.scores.overall == 100.0
