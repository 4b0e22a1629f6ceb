"""Tests for benchmark analysis functions."""

import pytest

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
    higher_is_worse,
    history_metrics,
    knee_point,
    performance_score,
    recommend_warmup,
    warmup_effect,
)
from gauntlet.models import (
    ConcurrencyMeasurement,
    HistoryEntry,
    LatencyStats,
    MemorySnapshot,
    RunResult,
    ScalabilityPoint,
)


def measurement(concurrency, throughput, *, failed=0, ok=100, mean_ms=10.0, p95=None):
    percentiles = {"p95": p95 if p95 is not None else mean_ms * 2}
    return ConcurrencyMeasurement(
        concurrency=concurrency,
        total_time_ms=1000.0,
        iterations=ok,
        failed_iterations=failed,
        throughput=throughput,
        latencies=LatencyStats(
            count=ok, min=1.0, max=mean_ms * 3, mean=mean_ms, median=mean_ms, percentiles=percentiles
        ),
    )


def run_result(name, throughputs, **kwargs):
    result = RunResult(
        name=name,
        measurements={c: measurement(c, t, **kwargs) for c, t in throughputs.items()},
    )
    result.summary = compute_summary(result.measurements)
    return result


def entries(metric, values):
    return [HistoryEntry(metrics={metric: v}) for v in values]


def curve(points):
    return [ScalabilityPoint(concurrency=c, throughput=t) for c, t in points]


class TestSummary:
    def test_empty(self):
        summary = compute_summary({})
        assert summary.best_concurrency == 0
        assert summary.total_operations == 0

    def test_best_level_and_scaling(self):
        result = run_result("api", {1: 100.0, 2: 180.0, 4: 200.0})
        summary = result.summary
        assert summary.best_concurrency == 4
        assert summary.optimal_concurrency == 4
        assert summary.best_throughput == 200.0
        assert summary.scaling_efficiency == pytest.approx((80 / 180 + 20 / 200) / 2)
        assert summary.total_operations == 300
        assert summary.avg_latency == 10.0
        assert summary.p95_latency == 20.0

    def test_error_rate_over_all_levels(self):
        result = run_result("api", {1: 50.0, 2: 60.0}, ok=90, failed=10)
        assert result.summary.error_rate == pytest.approx(10.0)
        assert result.summary.total_errors == 20

    def test_zero_throughput_levels_do_not_divide_by_zero(self):
        result = run_result("api", {1: 0.0, 2: 0.0})
        assert result.summary.scaling_efficiency == 0.0

    def test_history_metrics(self):
        result = run_result("api", {1: 100.0, 4: 200.0})
        result.warmup_effect = 0.9
        metrics = history_metrics(result)
        assert metrics["throughput"] == 200.0
        assert metrics["best_concurrency"] == 4.0
        assert metrics["warmup_effect"] == 0.9
        # ideal = 4 workers * 1000ms / 10ms = 400 ops/s
        assert metrics["load_efficiency"] == pytest.approx(0.5)
        assert metrics["total_time_ms"] == 2000.0


class TestRegressions:
    def test_direction_aware(self):
        assert higher_is_worse("p95_latency")
        assert higher_is_worse("error_rate")
        assert higher_is_worse("total_time_ms")
        assert not higher_is_worse("throughput")

    def test_detects_medium_and_high(self):
        baseline = {"throughput": 100.0, "avg_latency": 10.0, "p95_latency": 10.0, "error_rate": 0.0}
        current = {"throughput": 85.0, "avg_latency": 15.0, "p95_latency": 10.5, "error_rate": 4.0}
        found = {r.metric: r for r in detect_regressions(current, baseline)}
        assert set(found) == {"throughput", "avg_latency"}
        assert found["throughput"].severity == "medium"
        assert found["throughput"].change_percent == pytest.approx(-15.0)
        assert found["avg_latency"].severity == "high"

    def test_improvements_are_not_regressions(self):
        baseline = {"throughput": 100.0, "avg_latency": 10.0}
        current = {"throughput": 150.0, "avg_latency": 5.0}
        assert detect_regressions(current, baseline) == []


class TestAnomalies:
    history = entries("throughput", [100.0, 102.0, 98.0, 101.0, 99.0])

    def test_requires_history(self):
        assert detect_anomalies({"throughput": 1000.0}, self.history[:4]) == []

    def test_warning_and_critical(self):
        warning = detect_anomalies({"throughput": 105.0}, self.history)
        assert [a.severity for a in warning] == ["warning"]
        critical = detect_anomalies({"throughput": 110.0}, self.history)
        assert critical[0].severity == "critical"
        assert critical[0].expected_low < 100.0 < critical[0].expected_high

    def test_within_range(self):
        assert detect_anomalies({"throughput": 104.0}, self.history) == []

    def test_constant_series_skipped(self):
        flat = entries("throughput", [100.0] * 6)
        assert detect_anomalies({"throughput": 500.0}, flat) == []


class TestBottlenecks:
    def test_all_kinds(self):
        result = run_result("api", {1: 100.0, 2: 100.0}, ok=80, failed=20)
        snapshot = MemorySnapshot(cpu_percent=95.0, system_total=100, system_available=10)
        types = [b.type for b in detect_bottlenecks(result, snapshot)]
        assert types == ["scalability", "reliability", "cpu", "memory"]

    def test_single_level_is_not_a_scaling_problem(self):
        result = run_result("api", {1: 100.0})
        assert detect_bottlenecks(result, MemorySnapshot()) == []


class TestPredictionsAndComparisons:
    def test_predictions_need_five_runs(self):
        history = entries("throughput", [10.0, 20.0, 30.0, 40.0])
        assert generate_predictions({"throughput": 50.0}, history) == []

    def test_trend(self):
        history = entries("throughput", [10.0, 20.0, 30.0, 40.0, 50.0])
        (prediction,) = generate_predictions({"throughput": 60.0}, history)
        assert prediction.metric == "throughput"
        assert prediction.trend == "increasing"
        assert prediction.predicted_values == pytest.approx([60.0, 70.0, 80.0])
        assert prediction.current_value == 60.0

    def test_score(self):
        assert performance_score({"throughput": 100.0, "avg_latency": 10.0, "error_rate": 1.0}) == (
            pytest.approx(40.0 - 3.0 - 10.0)
        )

    def test_comparisons(self):
        history = entries("throughput", [100.0, 200.0])
        assert compare_performance({"throughput": 100.0}, history[:1]) == []
        best, recent = compare_performance({"throughput": 100.0}, history)
        assert best.type == "historical_best"
        assert best.improvement_percent == pytest.approx(-50.0)
        assert recent.type == "recent_average"
        assert recent.reference_score == pytest.approx(60.0)


class TestWarmup:
    def test_effect(self):
        assert warmup_effect([1.0, 2.0, 3.0]) is None
        assert warmup_effect([20.0, 20.0, 10.0, 10.0, 10.0, 10.0, 5.0, 5.0]) == pytest.approx(0.25)
        assert warmup_effect([5.0, 5.0, 5.0, 50.0]) == 1.0

    def test_recommendation(self):
        warm = entries("warmup_effect", [0.9, 0.95, 0.85])
        cold = entries("warmup_effect", [0.1, 0.2, 0.1])
        assert recommend_warmup(warm, 100) == 70
        assert recommend_warmup(warm, 10) == 10
        assert recommend_warmup(cold, 100) == 150
        assert recommend_warmup(cold, 400) == 500
        assert recommend_warmup(warm[:2], 100) == 100
        assert recommend_warmup(entries("warmup_effect", [0.5] * 3), 100) == 100


class TestAdaptiveLevels:
    def test_unchanged_without_history(self):
        assert adapt_levels([1, 5, 10], entries("load_efficiency", [0.9] * 5), 1000) == [1, 5, 10]

    def test_expands_when_efficient(self):
        history = entries("load_efficiency", [0.9] * 6)
        assert adapt_levels([1, 5, 10], history, 1000) == [1, 5, 10, 20, 40]
        assert adapt_levels([1, 5, 10], history, 30) == [1, 5, 10, 20]

    def test_shrinks_when_inefficient(self):
        history = entries("load_efficiency", [0.2] * 6)
        assert adapt_levels([1, 5, 10], history, 1000) == [1]
        assert adapt_levels([1, 5], history, 1000) == [1, 5]

    def test_never_empty(self):
        assert adapt_levels([50, 100], [], 10) == [10]


class TestSuite:
    def test_knee_needs_three_points(self):
        assert knee_point(curve([(1, 100.0), (2, 200.0)])) is None

    def test_knee(self):
        points = curve([(1, 100.0), (2, 200.0), (4, 220.0), (8, 225.0)])
        assert knee_point(points) == 2

    def test_linear_scaling_has_no_knee(self):
        assert knee_point(curve([(1, 100.0), (2, 200.0), (4, 400.0), (8, 800.0)])) is None

    def test_analyze_and_recommend(self):
        a = run_result("a", {1: 100.0, 2: 200.0, 4: 220.0})
        b = run_result("b", {1: 100.0, 2: 200.0, 4: 220.0}, ok=90, failed=10)
        analysis = analyze_suite({"a": a, "b": b, "empty": RunResult(name="empty")})
        assert set(analysis.performance) == {"a", "b"}
        assert [p.concurrency for p in analysis.scalability_curve] == [1, 2, 4]
        assert analysis.knee_point == 2
        assert analysis.max_sustainable_concurrency == 4
        assert [(x.benchmark, x.type) for x in analysis.bottlenecks] == [
            ("a", "scalability"),
            ("b", "scalability"),
            ("b", "reliability"),
        ]

        recommendations = generate_recommendations(analysis, [1, 2, 4])
        types = [r.type for r in recommendations]
        assert types.count("optimization") == 2
        assert "reliability" in types
        assert types[-2:] == ["scaling", "capacity"]
