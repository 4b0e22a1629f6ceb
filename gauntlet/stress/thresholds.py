"""Failure threshold evaluation for stress batches."""
from __future__ import annotations

from typing import Optional

from gauntlet.config import FailureThresholds
from gauntlet.models import BatchResult, FailurePoint, MemorySnapshot
from gauntlet.stats import compute_latency_stats


def check_failure_thresholds(
    thresholds: FailureThresholds,
    *,
    error_rate: float,
    p95_latency: Optional[float] = None,
    throughput: Optional[float] = None,
    memory_usage: Optional[float] = None,
    concurrency: Optional[int] = None,
    iteration: Optional[int] = None,
    timestamp: Optional[float] = None,
) -> Optional[FailurePoint]:
    """
    Return the first violated threshold, or None.

    Checked in order: error rate, p95 latency, throughput, memory usage.
    Metrics passed as None are unknown and skipped.
    """
    context = {"concurrency": concurrency, "iteration": iteration, "timestamp": timestamp}

    if error_rate > thresholds.max_error_rate:
        return FailurePoint(
            type="error_rate_threshold",
            severity="high",
            reason=(
                f"Error rate {error_rate:.2f}% exceeds threshold "
                f"{thresholds.max_error_rate:g}%"
            ),
            value=error_rate,
            threshold=thresholds.max_error_rate,
            **context,
        )
    if p95_latency is not None and p95_latency > thresholds.max_latency:
        return FailurePoint(
            type="latency_threshold",
            severity="high",
            reason=(
                f"95th percentile latency {p95_latency:.2f}ms exceeds threshold "
                f"{thresholds.max_latency:g}ms"
            ),
            value=p95_latency,
            threshold=thresholds.max_latency,
            **context,
        )
    if throughput is not None and throughput < thresholds.min_throughput:
        return FailurePoint(
            type="throughput_threshold",
            severity="medium",
            reason=(
                f"Throughput {throughput:.2f} ops/sec below threshold "
                f"{thresholds.min_throughput:g} ops/sec"
            ),
            value=throughput,
            threshold=thresholds.min_throughput,
            **context,
        )
    if memory_usage is not None and memory_usage > thresholds.max_memory_usage:
        return FailurePoint(
            type="memory_threshold",
            severity="high",
            reason=(
                f"Memory usage {memory_usage * 100:.1f}% exceeds threshold "
                f"{thresholds.max_memory_usage * 100:g}%"
            ),
            value=memory_usage,
            threshold=thresholds.max_memory_usage,
            **context,
        )
    return None


def check_batch(
    batch: BatchResult,
    thresholds: FailureThresholds,
    memory: Optional[MemorySnapshot] = None,
    *,
    iteration: Optional[int] = None,
    timestamp: Optional[float] = None,
) -> Optional[FailurePoint]:
    """check_failure_thresholds() for one runner batch."""
    p95 = compute_latency_stats(batch.durations, [95]).percentile(95)
    # Zero elapsed time means throughput was not measurable.
    throughput = batch.throughput if batch.elapsed_seconds > 0 else None
    memory_usage = memory.usage_ratio if memory is not None and memory.system_total > 0 else None
    return check_failure_thresholds(
        thresholds,
        error_rate=batch.error_rate,
        p95_latency=p95,
        throughput=throughput,
        memory_usage=memory_usage,
        concurrency=batch.concurrency,
        iteration=iteration,
        timestamp=timestamp if timestamp is not None else batch.started_at,
    )
