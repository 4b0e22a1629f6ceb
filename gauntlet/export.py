"""Suite result export: JSON, CSV and a plain-text report."""
from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from typing import List, Optional

from gauntlet.exceptions import GauntletConfigError
from gauntlet.models import SuiteResult

CSV_HEADER = [
    "Benchmark",
    "Concurrency",
    "Throughput",
    "Latency_p50",
    "Latency_p95",
    "Latency_p99",
    "Errors",
]
FORMATS = ("json", "csv")


@dataclass(frozen=True)
class CsvRow:
    benchmark: str
    concurrency: int
    throughput: float
    latency_p50: Optional[float]
    latency_p95: Optional[float]
    latency_p99: Optional[float]
    errors: int


def export_results(suite: SuiteResult, fmt: str = "json") -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps(suite.model_dump(mode="json"), indent=2)
    if fmt == "csv":
        return to_csv(suite)
    raise GauntletConfigError(
        f"Unsupported export format: {fmt}",
        code="unsupported_format",
        details={"format": fmt, "supported": list(FORMATS)},
    )


def to_csv(suite: SuiteResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for name, result in suite.benchmarks.items():
        for level, m in result.measurements.items():
            writer.writerow(
                [
                    name,
                    level,
                    repr(m.throughput),
                    _cell(m.latencies.percentile(50)),
                    _cell(m.latencies.percentile(95)),
                    _cell(m.latencies.percentile(99)),
                    m.failed_iterations,
                ]
            )
    return buffer.getvalue()


def parse_csv(text: str) -> List[CsvRow]:
    """Read rows written by to_csv back into typed records."""
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header != CSV_HEADER:
        raise GauntletConfigError("Unexpected CSV header", details={"header": header})
    rows = []
    for record in reader:
        if not record:
            continue
        name, level, throughput, p50, p95, p99, errors = record
        rows.append(
            CsvRow(
                benchmark=name,
                concurrency=int(level),
                throughput=float(throughput),
                latency_p50=_parse_cell(p50),
                latency_p95=_parse_cell(p95),
                latency_p99=_parse_cell(p99),
                errors=int(errors),
            )
        )
    return rows


def _cell(value: Optional[float]) -> str:
    return "" if value is None else repr(value)


def _parse_cell(value: str) -> Optional[float]:
    return float(value) if value else None


def _fmt(val: Optional[float], decimals: int = 2) -> str:
    if val is None:
        return "n/a"
    return f"{val:.{decimals}f}"


def format_report(suite: SuiteResult) -> str:
    """Format a suite result as human-readable text."""
    lines = []
    lines.append("=" * 60)
    lines.append(f"SUITE: {suite.suite_name}")
    lines.append("=" * 60)
    if suite.system is not None:
        lines.append(
            f"Host: {suite.system.platform} python={suite.system.python_version} "
            f"cpus={suite.system.cpu_count}"
        )
    if suite.stopped:
        lines.append("Stopped before completion")

    for name, result in suite.benchmarks.items():
        s = result.summary
        lines.append("")
        lines.append(f"--- {name} ---")
        if result.errors:
            for err in result.errors:
                lines.append(f"  FAILED in {err.phase}: {err.type}: {err.error}")
        lines.append(
            f"  Best: concurrency={s.best_concurrency} throughput={_fmt(s.best_throughput)} ops/s"
        )
        lines.append(
            f"  Scaling efficiency: {s.scaling_efficiency:.1%}  Error rate: {_fmt(s.error_rate)}%"
        )
        for level, m in result.measurements.items():
            lines.append(
                f"  c={level:<5} {_fmt(m.throughput):>10} ops/s "
                f"p50={_fmt(m.latencies.percentile(50), 3)}ms "
                f"p95={_fmt(m.latencies.percentile(95), 3)}ms "
                f"p99={_fmt(m.latencies.percentile(99), 3)}ms "
                f"errors={m.failed_iterations}"
            )
        for regression in result.advanced.regressions:
            lines.append(
                f"  Regression: {regression.metric} {regression.change_percent:+.1f}% "
                f"({regression.severity})"
            )
        for anomaly in result.advanced.anomalies:
            lines.append(f"  Anomaly: {anomaly.metric} z={anomaly.z_score:.2f} ({anomaly.severity})")

    analysis = suite.analysis
    lines.append("")
    lines.append("--- Scalability ---")
    lines.append(f"  Knee point: {analysis.knee_point if analysis.knee_point is not None else 'n/a'}")
    lines.append(
        "  Max sustainable concurrency: "
        f"{analysis.max_sustainable_concurrency if analysis.max_sustainable_concurrency is not None else 'n/a'}"
    )
    for bottleneck in analysis.bottlenecks:
        lines.append(f"  Bottleneck [{bottleneck.severity}] {bottleneck.benchmark}: {bottleneck.description}")

    if suite.recommendations:
        lines.append("")
        lines.append("--- Recommendations ---")
        for rec in suite.recommendations:
            lines.append(f"  [{rec.priority}] {rec.type}: {rec.message}")

    lines.append("")
    return "\n".join(lines)
