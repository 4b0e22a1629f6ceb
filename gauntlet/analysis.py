"""
Benchmark analysis: summaries, scalability, trends and recommendations.

Everything here is a pure function of results and history so the
orchestrator stays a thin sequencer.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from gauntlet.models import (
    Anomaly,
    BenchmarkPerformance,
    Bottleneck,
    Comparison,
    ConcurrencyMeasurement,
    HistoryEntry,
    MemorySnapshot,
    Prediction,
    Recommendation,
    Regression,
    RunResult,
    ScalabilityPoint,
    SuiteAnalysis,
    Summary,
)
from gauntlet.stats import basic_statistics, mean, predict_series

REGRESSION_THRESHOLD = 0.10
SEVERE_REGRESSION_THRESHOLD = 0.30
PREDICTED_METRICS = ("throughput", "avg_latency", "error_rate")
PREDICTION_PERIODS = 3
MIN_PREDICTION_HISTORY = 5
KNEE_GAIN = 0.10

# Substrings marking metrics where a higher value is worse.
_HIGHER_IS_WORSE = ("latency", "time", "error")


def compute_summary(
    measurements: Mapping[int, ConcurrencyMeasurement],
) -> Summary:
    """Summarize measurements taken in ascending level order."""
    if not measurements:
        return Summary()
    levels = list(measurements)
    best_level = max(levels, key=lambda c: measurements[c].throughput)
    best = measurements[best_level]

    gains = []
    for prev, cur in zip(levels, levels[1:]):
        t_prev = measurements[prev].throughput
        t_cur = measurements[cur].throughput
        gains.append((t_cur - t_prev) / t_cur if t_cur > 0 else 0.0)
    scaling = sum(gains) / max(1, len(levels) - 1)

    succeeded = sum(m.iterations for m in measurements.values())
    failed = sum(m.failed_iterations for m in measurements.values())
    total = succeeded + failed
    return Summary(
        best_concurrency=best_level,
        best_throughput=best.throughput,
        optimal_concurrency=best_level,
        scaling_efficiency=scaling,
        error_rate=failed / total * 100 if total else 0.0,
        total_operations=total,
        total_errors=failed,
        avg_latency=best.latencies.mean or 0.0,
        p95_latency=best.latencies.percentile(95) or 0.0,
    )


def history_metrics(result: RunResult) -> Dict[str, float]:
    """Scalar metrics of a run as stored in history."""
    summary = result.summary
    metrics = {
        "throughput": summary.best_throughput,
        "avg_latency": summary.avg_latency,
        "p95_latency": summary.p95_latency,
        "error_rate": summary.error_rate,
        "scaling_efficiency": summary.scaling_efficiency,
        "best_concurrency": float(summary.best_concurrency),
        "total_time_ms": sum(m.total_time_ms for m in result.measurements.values()),
    }
    if result.warmup_effect is not None:
        metrics["warmup_effect"] = result.warmup_effect
    if summary.best_concurrency > 0 and summary.avg_latency > 0:
        ideal = summary.best_concurrency * 1000 / summary.avg_latency
        metrics["load_efficiency"] = summary.best_throughput / ideal
    return metrics


def higher_is_worse(metric: str) -> bool:
    lowered = metric.lower()
    return any(marker in lowered for marker in _HIGHER_IS_WORSE)


def detect_regressions(
    current: Mapping[str, float],
    baseline: Mapping[str, float],
    threshold: float = REGRESSION_THRESHOLD,
) -> List[Regression]:
    regressions = []
    for metric, value in current.items():
        base = baseline.get(metric)
        if base is None or base == 0:
            continue
        change = (value - base) / abs(base)
        regressed = change > threshold if higher_is_worse(metric) else change < -threshold
        if not regressed:
            continue
        regressions.append(
            Regression(
                metric=metric,
                baseline=base,
                current=value,
                change_percent=change * 100,
                severity="high" if abs(change) > SEVERE_REGRESSION_THRESHOLD else "medium",
            )
        )
    return regressions


def detect_anomalies(
    current: Mapping[str, float],
    history: Sequence[HistoryEntry],
    threshold: float = 3.0,
    min_history: int = 5,
) -> List[Anomaly]:
    if len(history) < min_history:
        return []
    anomalies = []
    for metric, value in current.items():
        series = [
            e.metrics[metric] for e in history if isinstance(e.metrics.get(metric), (int, float))
        ]
        if len(series) < min_history:
            continue
        stats = basic_statistics(series)
        if stats.std_dev == 0:
            continue
        z = abs(value - stats.mean) / stats.std_dev
        if z <= threshold:
            continue
        anomalies.append(
            Anomaly(
                metric=metric,
                value=value,
                expected_low=stats.mean - 2 * stats.std_dev,
                expected_high=stats.mean + 2 * stats.std_dev,
                z_score=z,
                severity="critical" if z > 5 else "warning",
            )
        )
    return anomalies


def detect_bottlenecks(result: RunResult, snapshot: Optional[MemorySnapshot]) -> List[Bottleneck]:
    summary = result.summary
    found = []
    if len(result.measurements) > 1 and summary.scaling_efficiency < 0.5:
        found.append(
            Bottleneck(
                type="scalability",
                severity="high",
                description="Throughput does not grow with concurrency",
                value=summary.scaling_efficiency,
                benchmark=result.name,
            )
        )
    if summary.error_rate > 5:
        found.append(
            Bottleneck(
                type="reliability",
                severity="high",
                description=f"Error rate {summary.error_rate:.1f}% under load",
                value=summary.error_rate,
                benchmark=result.name,
            )
        )
    if snapshot is not None:
        if snapshot.cpu_percent > 90:
            found.append(
                Bottleneck(
                    type="cpu",
                    severity="high",
                    description="Process CPU saturated",
                    value=snapshot.cpu_percent,
                    benchmark=result.name,
                )
            )
        if snapshot.usage_ratio > 0.8:
            found.append(
                Bottleneck(
                    type="memory",
                    severity="medium",
                    description="System memory usage above 80%",
                    value=snapshot.usage_ratio,
                    benchmark=result.name,
                )
            )
    return found


def generate_predictions(
    current: Mapping[str, float],
    history: Sequence[HistoryEntry],
    window: int = 10,
) -> List[Prediction]:
    if len(history) < MIN_PREDICTION_HISTORY:
        return []
    predictions = []
    for metric in PREDICTED_METRICS:
        series = [
            e.metrics[metric] for e in history if isinstance(e.metrics.get(metric), (int, float))
        ]
        if len(series) < MIN_PREDICTION_HISTORY:
            continue
        forecast = predict_series(series[-window:], PREDICTION_PERIODS)
        predictions.append(
            Prediction(
                metric=metric,
                current_value=current.get(metric),
                predicted_values=forecast.values,
                confidence=forecast.confidence,
                trend=forecast.trend,
            )
        )
    return predictions


def performance_score(metrics: Mapping[str, float]) -> float:
    return (
        metrics.get("throughput", 0.0) * 0.4
        - metrics.get("avg_latency", 0.0) * 0.3
        - metrics.get("error_rate", 0.0) * 10
    )


def _improvement(score: float, reference: float) -> float:
    if reference == 0:
        return 0.0
    return (score - reference) / abs(reference) * 100


def compare_performance(
    current: Mapping[str, float],
    history: Sequence[HistoryEntry],
) -> List[Comparison]:
    if len(history) < 2:
        return []
    score = performance_score(current)
    scores = [performance_score(e.metrics) for e in history]
    best = max(scores)
    recent = mean(scores[-5:])
    return [
        Comparison(
            type="historical_best",
            score=score,
            reference_score=best,
            improvement_percent=_improvement(score, best),
        ),
        Comparison(
            type="recent_average",
            score=score,
            reference_score=recent,
            improvement_percent=_improvement(score, recent),
        ),
    ]


def warmup_effect(durations: Sequence[float]) -> Optional[float]:
    """
    Ratio of late to early warmup latency, clamped to [0, 1].

    Near 1 means the workload was warm from the first call; near 0 means the
    first calls were far slower than the last.
    """
    quarter = len(durations) // 4
    if quarter == 0:
        return None
    first = mean(durations[:quarter])
    last = mean(durations[-quarter:])
    if first <= 0:
        return None
    return max(0.0, min(1.0, last / first))


def recommend_warmup(history: Sequence[HistoryEntry], default: int) -> int:
    effects = [
        e.metrics["warmup_effect"] for e in history if "warmup_effect" in e.metrics
    ]
    if len(history) < 3 or not effects:
        return default
    average = mean(effects)
    if average > 0.8:
        return max(10, math.floor(default * 0.7))
    if average < 0.3:
        return min(500, math.floor(default * 1.5))
    return default


def adapt_levels(
    levels: Sequence[int],
    history: Sequence[HistoryEntry],
    max_concurrency: int,
) -> List[int]:
    """Tune the level list of one run from recent load efficiency."""
    tuned = sorted(set(levels))
    if len(history) > 5:
        efficiencies = [
            e.metrics["load_efficiency"] for e in history[-5:] if "load_efficiency" in e.metrics
        ]
        if efficiencies:
            efficiency = mean(efficiencies)
            if efficiency < 0.5 and len(tuned) > 2:
                tuned = tuned[:-2]
            elif efficiency > 0.8:
                top = tuned[-1]
                tuned.extend([top * 2, top * 4])
    bounded = [level for level in tuned if level <= max_concurrency]
    return bounded or [min(min(levels), max_concurrency)]


def scalability_curve(benchmarks: Iterable[RunResult]) -> List[ScalabilityPoint]:
    """Average throughput per concurrency across benchmarks."""
    buckets: Dict[int, List[float]] = {}
    for result in benchmarks:
        for level, measurement in result.measurements.items():
            buckets.setdefault(level, []).append(measurement.throughput)
    return [
        ScalabilityPoint(concurrency=level, throughput=mean(values))
        for level, values in sorted(buckets.items())
    ]


def knee_point(curve: Sequence[ScalabilityPoint]) -> Optional[int]:
    """Concurrency after which throughput gains collapse; None under 3 points."""
    if len(curve) < 3:
        return None
    knee = None
    best_gain = 0.0
    for prev, cur, nxt in zip(curve, curve[1:], curve[2:]):
        if prev.throughput <= 0 or cur.throughput <= 0:
            continue
        gain = (cur.throughput - prev.throughput) / prev.throughput
        next_gain = (nxt.throughput - cur.throughput) / cur.throughput
        if gain > KNEE_GAIN and next_gain < 0.5 * gain and gain > best_gain:
            best_gain = gain
            knee = cur.concurrency
    return knee


def max_sustainable_concurrency(curve: Sequence[ScalabilityPoint]) -> Optional[int]:
    if not curve:
        return None
    return max(curve, key=lambda p: p.throughput).concurrency


def analyze_suite(benchmarks: Mapping[str, RunResult]) -> SuiteAnalysis:
    analysis = SuiteAnalysis()
    for name, result in benchmarks.items():
        if not result.measurements:
            continue
        summary = result.summary
        analysis.performance[name] = BenchmarkPerformance(
            best_throughput=summary.best_throughput,
            optimal_concurrency=summary.optimal_concurrency,
            scaling_efficiency=summary.scaling_efficiency,
            error_rate=summary.error_rate,
        )
        if len(result.measurements) > 1 and summary.scaling_efficiency < 0.5:
            analysis.bottlenecks.append(
                Bottleneck(
                    type="scalability",
                    severity="high",
                    description=f"Poor scaling efficiency: {summary.scaling_efficiency * 100:.1f}%",
                    value=summary.scaling_efficiency,
                    benchmark=name,
                )
            )
        if summary.error_rate > 5:
            analysis.bottlenecks.append(
                Bottleneck(
                    type="reliability",
                    severity="high",
                    description=f"High error rate: {summary.error_rate:.2f}%",
                    value=summary.error_rate,
                    benchmark=name,
                )
            )
    curve = scalability_curve(benchmarks.values())
    analysis.scalability_curve = curve
    analysis.knee_point = knee_point(curve)
    analysis.max_sustainable_concurrency = max_sustainable_concurrency(curve)
    return analysis


def generate_recommendations(
    analysis: SuiteAnalysis,
    configured_levels: Sequence[int],
) -> List[Recommendation]:
    recommendations = []
    smallest = min(configured_levels) if configured_levels else 0
    for name, perf in analysis.performance.items():
        if perf.scaling_efficiency < 0.7:
            recommendations.append(
                Recommendation(
                    type="optimization",
                    priority="high",
                    benchmark=name,
                    message=f"{name} scales poorly ({perf.scaling_efficiency * 100:.1f}% efficiency)",
                    actions=[
                        "Look for lock contention or shared resources",
                        "Profile the workload at its optimal concurrency",
                    ],
                )
            )
        if perf.error_rate > 2:
            recommendations.append(
                Recommendation(
                    type="reliability",
                    priority="high",
                    benchmark=name,
                    message=f"{name} fails {perf.error_rate:.2f}% of operations",
                    actions=["Add retries or backpressure", "Inspect the captured errors"],
                )
            )
        if perf.optimal_concurrency < smallest:
            recommendations.append(
                Recommendation(
                    type="configuration",
                    priority="medium",
                    benchmark=name,
                    message=f"{name} peaks below the smallest tested concurrency",
                    actions=["Add lower concurrency levels to the configuration"],
                )
            )
    if analysis.knee_point is not None:
        recommendations.append(
            Recommendation(
                type="scaling",
                priority="medium",
                message=f"Throughput gains flatten after concurrency {analysis.knee_point}",
                actions=[f"Keep concurrency near {analysis.knee_point} for best efficiency"],
            )
        )
    if analysis.max_sustainable_concurrency is not None:
        recommendations.append(
            Recommendation(
                type="capacity",
                priority="medium",
                message=(
                    f"Peak throughput reached at concurrency "
                    f"{analysis.max_sustainable_concurrency}"
                ),
                actions=["Use this level as the capacity planning ceiling"],
            )
        )
    return recommendations

