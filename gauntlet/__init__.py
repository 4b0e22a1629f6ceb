"""
gauntlet: concurrency benchmarking, load patterns and stress testing.

Usage:
    from gauntlet import WorkloadSpec, BenchmarkConfig, build_engine, export_results

    engine = build_engine(BenchmarkConfig(concurrency_levels=[1, 4, 16]))
    suite = engine.orchestrator.run_suite("search", [WorkloadSpec("query", run_query)])
    print(export_results(suite, "csv"))
"""

from gauntlet.analysis import knee_point
from gauntlet.clock import Clock, ManualClock, RunControl, SystemClock, Ticker
from gauntlet.config import (
    BenchmarkConfig,
    FailureThresholds,
    configure_logging,
    get_settings,
    reset_settings,
)
from gauntlet.engine import Engine, build_engine
from gauntlet.events import EventHooks
from gauntlet.exceptions import (
    ConcurrentRunError,
    GauntletConfigError,
    GauntletError,
    InvocationTimeout,
    UnknownPatternError,
    WorkloadError,
)
from gauntlet.export import export_results, format_report, parse_csv
from gauntlet.history import HistoryStore
from gauntlet.load import AdaptiveLoadController, LoadPatternGenerator, create_scenario
from gauntlet.models import (
    AssessmentResult,
    BatchResult,
    LatencyStats,
    RunResult,
    SuiteResult,
    WorkloadSpec,
)
from gauntlet.orchestrator import BenchmarkOrchestrator
from gauntlet.runner import Runner
from gauntlet.stats import compute_latency_stats
from gauntlet.stress import ChaosEngine, StressEngine, create_stress_scenario

__all__ = [
    "knee_point",
    "Clock",
    "ManualClock",
    "RunControl",
    "SystemClock",
    "Ticker",
    "BenchmarkConfig",
    "FailureThresholds",
    "configure_logging",
    "get_settings",
    "reset_settings",
    "Engine",
    "build_engine",
    "EventHooks",
    "ConcurrentRunError",
    "GauntletConfigError",
    "GauntletError",
    "InvocationTimeout",
    "UnknownPatternError",
    "WorkloadError",
    "export_results",
    "format_report",
    "parse_csv",
    "HistoryStore",
    "AdaptiveLoadController",
    "LoadPatternGenerator",
    "create_scenario",
    "AssessmentResult",
    "BatchResult",
    "LatencyStats",
    "RunResult",
    "SuiteResult",
    "WorkloadSpec",
    "BenchmarkOrchestrator",
    "Runner",
    "compute_latency_stats",
    "ChaosEngine",
    "StressEngine",
    "create_stress_scenario",
]
