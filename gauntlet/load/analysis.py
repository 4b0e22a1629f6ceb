"""Post-run analysis of load test metrics."""
from __future__ import annotations

import math
from typing import Dict, List, Mapping

from gauntlet.models import (
    Bottleneck,
    ErrorDistribution,
    ErrorRecord,
    ErrorWindow,
    LoadAnalysis,
    LoadMetrics,
    LoadPerformance,
    LoadStability,
    LoadTestResult,
    Recommendation,
    ScenarioComparison,
    ScenarioRanking,
)
from gauntlet.stats import dispersion

ERROR_WINDOW_SECONDS = 10.0
BURST_ERRORS_PER_WINDOW = 5


def error_distribution(errors: List[ErrorRecord]) -> ErrorDistribution:
    by_type: Dict[str, int] = {}
    windows: Dict[float, int] = {}
    for record in errors:
        kind = record.error.split(":", 1)[0].strip() or "unknown"
        by_type[kind] = by_type.get(kind, 0) + 1
        start = math.floor(record.timestamp / ERROR_WINDOW_SECONDS) * ERROR_WINDOW_SECONDS
        windows[start] = windows.get(start, 0) + 1
    ordered = [ErrorWindow(start=start, count=count) for start, count in sorted(windows.items())]
    return ErrorDistribution(
        total=len(errors),
        by_type=by_type,
        windows=ordered,
        burst_periods=[w for w in ordered if w.count > BURST_ERRORS_PER_WINDOW],
    )


def analyze_load_test(metrics: LoadMetrics) -> LoadAnalysis:
    stats = metrics.latency_stats
    performance = LoadPerformance(
        avg_throughput=metrics.avg_throughput,
        peak_throughput=max(metrics.throughput, default=0.0),
        avg_latency=stats.mean,
        p95_latency=stats.percentile(95),
        error_rate=metrics.error_rate,
        total_operations=metrics.total_operations,
    )
    stability = LoadStability(
        throughput_stability=dispersion(metrics.throughput),
        latency_stability=dispersion(metrics.latencies),
    )
    distribution = error_distribution(metrics.errors)
    p95 = performance.p95_latency or 0.0

    bottlenecks = []
    if performance.error_rate > 10:
        bottlenecks.append(
            Bottleneck(
                type="reliability",
                severity="high",
                description=f"Error rate {performance.error_rate:.2f}% exceeds 10%",
                value=performance.error_rate,
            )
        )
    if stability.throughput_stability > 0.5:
        bottlenecks.append(
            Bottleneck(
                type="stability",
                severity="medium",
                description="Throughput fluctuates heavily between batches",
                value=stability.throughput_stability,
            )
        )
    if p95 > 1000:
        bottlenecks.append(
            Bottleneck(
                type="latency",
                severity="high",
                description=f"p95 latency {p95:.0f}ms exceeds 1000ms",
                value=p95,
            )
        )

    recommendations = []
    if performance.error_rate > 5:
        recommendations.append(
            Recommendation(
                type="reliability",
                priority="high",
                message="Reduce the error rate under load",
                actions=["Add retries with backoff", "Inspect errors by type"],
            )
        )
    if stability.throughput_stability > 0.3:
        recommendations.append(
            Recommendation(
                type="performance",
                priority="medium",
                message="Throughput is unstable",
                actions=["Check for resource contention", "Smooth load with queuing"],
            )
        )
    if p95 > 500:
        recommendations.append(
            Recommendation(
                type="latency",
                priority="medium",
                message=f"p95 latency is {p95:.0f}ms",
                actions=["Profile slow calls", "Add caching for hot paths"],
            )
        )
    if distribution.burst_periods:
        recommendations.append(
            Recommendation(
                type="error_handling",
                priority="high",
                message=f"{len(distribution.burst_periods)} error burst periods detected",
                actions=["Add circuit breaking", "Rate limit incoming load"],
            )
        )

    return LoadAnalysis(
        performance=performance,
        stability=stability,
        error_distribution=distribution,
        bottlenecks=bottlenecks,
        recommendations=recommendations,
    )


def compare_scenarios(results: Mapping[str, LoadTestResult]) -> ScenarioComparison:
    analyzed = {name: r.analysis for name, r in results.items() if r.analysis is not None}
    if not analyzed:
        return ScenarioComparison()
    throughput = sorted(
        (ScenarioRanking(scenario=n, value=a.performance.avg_throughput) for n, a in analyzed.items()),
        key=lambda r: r.value,
        reverse=True,
    )
    latency = sorted(
        (ScenarioRanking(scenario=n, value=a.performance.avg_latency or 0.0) for n, a in analyzed.items()),
        key=lambda r: r.value,
    )
    stability = sorted(
        (
            ScenarioRanking(scenario=n, value=1 - a.performance.error_rate / 100)
            for n, a in analyzed.items()
        ),
        key=lambda r: r.value,
        reverse=True,
    )
    return ScenarioComparison(
        throughput=throughput,
        latency=latency,
        stability=stability,
        best_performer=throughput[0].scenario,
        worst_performer=throughput[-1].scenario,
    )
