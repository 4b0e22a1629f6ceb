"""
Latency statistics and small numeric helpers.

Percentiles use nearest-rank selection on a sorted copy:
index = floor(p / 100 * (n - 1)), no interpolation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from gauntlet.config import DEFAULT_PERCENTILES
from gauntlet.models import LatencyStats, percentile_label


def compute_latency_stats(
    durations: Iterable[float],
    percentiles: Optional[Sequence[float]] = None,
) -> LatencyStats:
    ordered = sorted(durations)
    if not ordered:
        return LatencyStats()
    n = len(ordered)
    ranks = DEFAULT_PERCENTILES if percentiles is None else percentiles
    values = {}
    for p in sorted(ranks):
        index = math.floor(p / 100 * (n - 1))
        values[percentile_label(p)] = ordered[min(max(index, 0), n - 1)]
    return LatencyStats(
        count=n,
        min=ordered[0],
        max=ordered[-1],
        mean=sum(ordered) / n,
        median=ordered[n // 2],
        percentiles=values,
    )


@dataclass(frozen=True)
class BasicStats:
    count: int
    mean: float
    variance: float
    std_dev: float
    min: float
    max: float


def basic_statistics(values: Sequence[float]) -> BasicStats:
    """Population statistics; an empty sequence gives all zeros."""
    if not values:
        return BasicStats(0, 0.0, 0.0, 0.0, 0.0, 0.0)
    n = len(values)
    mean = sum(values) / n
    var = sum((v - mean) ** 2 for v in values) / n
    return BasicStats(n, mean, var, math.sqrt(var), min(values), max(values))


def variance(values: Sequence[float]) -> float:
    return basic_statistics(values).variance


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def dispersion(values: Sequence[float]) -> float:
    """Variance over mean; 0 for empty or zero-mean series."""
    stats = basic_statistics(values)
    if stats.mean == 0:
        return 0.0
    return stats.variance / stats.mean


def linear_regression(values: Sequence[float]) -> Tuple[float, float]:
    """OLS fit of values against their index. Returns (slope, intercept)."""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    if n == 1:
        return 0.0, float(values[0])
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_xx = sum(i * i for i in range(n))
    denom = n * sum_xx - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


@dataclass(frozen=True)
class SeriesForecast:
    values: List[float]
    confidence: float
    trend: str


def predict_series(values: Sequence[float], periods: int = 3) -> SeriesForecast:
    n = len(values)
    if n < 2:
        return SeriesForecast([], 0.0, "insufficient_data")
    slope, intercept = linear_regression(values)
    projected = [intercept + slope * (n + i - 1) for i in range(1, periods + 1)]
    residuals = [v - (intercept + slope * i) for i, v in enumerate(values)]
    mse = sum(r * r for r in residuals) / n
    scale = abs(values[-1]) or 1.0
    confidence = max(0.0, min(1.0, 1 - mse / scale))
    if slope > 0:
        trend = "increasing"
    elif slope < 0:
        trend = "decreasing"
    else:
        trend = "stable"
    return SeriesForecast(projected, confidence, trend)
