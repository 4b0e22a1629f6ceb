from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high", "critical"]


class Intensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


@dataclass(frozen=True)
class WorkloadSpec:
    """
    The unit of work being benchmarked.

    Only execute is required. setup/teardown run once per benchmark,
    before_each/after_each wrap every invocation. All hooks are zero-argument
    callables; anything they raise is captured, never propagated.
    """

    name: str
    execute: Callable[[], Any]
    description: str = ""
    setup: Optional[Callable[[], Any]] = None
    teardown: Optional[Callable[[], Any]] = None
    before_each: Optional[Callable[[], Any]] = None
    after_each: Optional[Callable[[], Any]] = None


class MemorySnapshot(BaseModel):
    """Process and system memory at a point in time. Sizes are in bytes."""

    model_config = ConfigDict(extra="forbid")

    rss: int = 0
    vms: int = 0
    system_total: int = 0
    system_available: int = 0
    cpu_percent: float = 0.0

    @property
    def usage_ratio(self) -> float:
        if self.system_total <= 0:
            return 0.0
        return 1.0 - self.system_available / self.system_total

    @property
    def free_ratio(self) -> float:
        if self.system_total <= 0:
            return 0.0
        return self.system_available / self.system_total


class MemoryDelta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rss: int = 0
    vms: int = 0


class LatencyStats(BaseModel):
    """
    Order statistics over a set of latencies in milliseconds.

    An empty sample yields every field None and no percentiles.
    """

    model_config = ConfigDict(extra="forbid")

    count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    percentiles: Dict[str, float] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def percentile(self, p: float) -> Optional[float]:
        return self.percentiles.get(percentile_label(p))


def percentile_label(p: float) -> str:
    return f"p{float(p):g}"


class IterationError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker: int
    iteration: int
    error: str
    error_type: str
    timestamp: float


@dataclass
class BatchResult:
    """Outcome of one fan-out/fan-in batch of workers."""

    concurrency: int
    iterations: int
    durations: List[float] = field(default_factory=list)
    errors: List[IterationError] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    started_at: float = 0.0

    @property
    def successful_operations(self) -> int:
        return len(self.durations)

    @property
    def failed_operations(self) -> int:
        return len(self.errors)

    @property
    def total_operations(self) -> int:
        return self.successful_operations + self.failed_operations

    @property
    def error_rate(self) -> float:
        total = self.total_operations
        if total == 0:
            return 0.0
        return self.failed_operations / total * 100

    @property
    def throughput(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.successful_operations / self.elapsed_seconds

    @property
    def avg_latency(self) -> float:
        if not self.durations:
            return 0.0
        return sum(self.durations) / len(self.durations)


class ConcurrencyMeasurement(BaseModel):
    model_config = ConfigDict(extra="forbid")

    concurrency: int
    total_time_ms: float
    iterations: int
    failed_iterations: int
    throughput: float
    latencies: LatencyStats
    errors: List[IterationError] = Field(default_factory=list)
    memory: MemorySnapshot = Field(default_factory=MemorySnapshot)

    @property
    def error_rate(self) -> float:
        total = self.iterations + self.failed_iterations
        return self.failed_iterations / total * 100 if total else 0.0


class PhaseOutcome(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration_ms: float
    memory_delta: MemoryDelta = Field(default_factory=MemoryDelta)
    error: Optional[str] = None
    iterations: Optional[int] = None


class ConcurrencyProfile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_concurrency: int
    ramp_up_seconds: float
    steady_state_seconds: float


class StressPhaseResult(BaseModel):
    """The orchestrator's duration-bounded ramp-and-hold run."""

    model_config = ConfigDict(extra="forbid")

    duration_ms: float
    total_operations: int
    successful_operations: int
    failed_operations: int
    throughput: float
    avg_latency: float
    latencies: LatencyStats
    errors: List[IterationError] = Field(default_factory=list)
    concurrency_profile: ConcurrencyProfile
    batches: int = 0


class Summary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    best_concurrency: int = 0
    best_throughput: float = 0.0
    optimal_concurrency: int = 0
    scaling_efficiency: float = 0.0
    error_rate: float = 0.0
    total_operations: int = 0
    total_errors: int = 0
    avg_latency: float = 0.0
    p95_latency: float = 0.0


class Regression(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metric: str
    baseline: float
    current: float
    change_percent: float
    severity: Severity
    timestamp: datetime = Field(default_factory=utc_now)


class Anomaly(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metric: str
    value: float
    expected_low: float
    expected_high: float
    z_score: float
    severity: Literal["warning", "critical"]


class Bottleneck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    severity: Severity
    description: str
    value: Optional[float] = None
    benchmark: Optional[str] = None


class Prediction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metric: str
    current_value: Optional[float] = None
    predicted_values: List[float] = Field(default_factory=list)
    confidence: float = 0.0
    trend: Literal["increasing", "decreasing", "stable", "insufficient_data"]


class Comparison(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["historical_best", "recent_average"]
    score: float
    reference_score: float
    improvement_percent: float


class AdvancedAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regressions: List[Regression] = Field(default_factory=list)
    anomalies: List[Anomaly] = Field(default_factory=list)
    bottlenecks: List[Bottleneck] = Field(default_factory=list)
    predictions: List[Prediction] = Field(default_factory=list)
    comparisons: List[Comparison] = Field(default_factory=list)


class PhaseError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    phase: str
    error: str
    type: str


class RunResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    phases: Dict[str, Any] = Field(default_factory=dict)
    measurements: Dict[int, ConcurrencyMeasurement] = Field(default_factory=dict)
    summary: Summary = Field(default_factory=Summary)
    errors: List[PhaseError] = Field(default_factory=list)
    advanced: AdvancedAnalysis = Field(default_factory=AdvancedAnalysis)
    warmup_iterations: int = 0
    warmup_effect: Optional[float] = None
    concurrency_levels: List[int] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors


class HistoryEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: datetime = Field(default_factory=utc_now)
    metrics: Dict[str, float] = Field(default_factory=dict)


class Recommendation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    priority: Literal["low", "medium", "high"]
    message: str
    actions: List[str] = Field(default_factory=list)
    benchmark: Optional[str] = None


class ScalabilityPoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    concurrency: int
    throughput: float


class BenchmarkPerformance(BaseModel):
    model_config = ConfigDict(extra="forbid")

    best_throughput: float
    optimal_concurrency: int
    scaling_efficiency: float
    error_rate: float


class SuiteAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    performance: Dict[str, BenchmarkPerformance] = Field(default_factory=dict)
    bottlenecks: List[Bottleneck] = Field(default_factory=list)
    scalability_curve: List[ScalabilityPoint] = Field(default_factory=list)
    knee_point: Optional[int] = None
    max_sustainable_concurrency: Optional[int] = None


class SystemInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    platform: str
    python_version: str
    cpu_count: int
    memory_total: int


class SuiteResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    suite_name: str
    timestamp: datetime = Field(default_factory=utc_now)
    system: Optional[SystemInfo] = None
    benchmarks: Dict[str, RunResult] = Field(default_factory=dict)
    analysis: SuiteAnalysis = Field(default_factory=SuiteAnalysis)
    recommendations: List[Recommendation] = Field(default_factory=list)
    stopped: bool = False


class FailurePoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str
    severity: Literal["medium", "high", "critical"]
    reason: str
    value: Optional[float] = None
    threshold: Optional[float] = None
    concurrency: Optional[int] = None
    iteration: Optional[int] = None
    timestamp: Optional[float] = None


# Load pattern results


class ErrorRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: float
    error: str


class LoadMetrics(BaseModel):
    """Accumulated counters and traces for one load test."""

    model_config = ConfigDict(extra="forbid")

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    throughput: List[float] = Field(default_factory=list)
    latencies: List[float] = Field(default_factory=list)
    concurrency: List[int] = Field(default_factory=list)
    timestamps: List[float] = Field(default_factory=list)
    errors: List[ErrorRecord] = Field(default_factory=list)
    memory: List[MemorySnapshot] = Field(default_factory=list)
    load_levels: List[float] = Field(default_factory=list)
    avg_throughput: float = 0.0
    error_rate: float = 0.0
    latency_stats: LatencyStats = Field(default_factory=LatencyStats)


class LoadPerformance(BaseModel):
    model_config = ConfigDict(extra="forbid")

    avg_throughput: float
    peak_throughput: float
    avg_latency: Optional[float]
    p95_latency: Optional[float]
    error_rate: float
    total_operations: int


class LoadStability(BaseModel):
    model_config = ConfigDict(extra="forbid")

    throughput_stability: float
    latency_stability: float


class ErrorWindow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: float
    count: int


class ErrorDistribution(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    windows: List[ErrorWindow] = Field(default_factory=list)
    burst_periods: List[ErrorWindow] = Field(default_factory=list)


class LoadAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    performance: LoadPerformance
    stability: LoadStability
    error_distribution: ErrorDistribution
    bottlenecks: List[Bottleneck] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


class LoadTestResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenario: str
    pattern: str
    start_time: float
    end_time: Optional[float] = None
    phases: Dict[str, PhaseOutcome] = Field(default_factory=dict)
    metrics: LoadMetrics = Field(default_factory=LoadMetrics)
    analysis: Optional[LoadAnalysis] = None
    error: Optional[str] = None


class ScenarioRanking(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenario: str
    value: float


class ScenarioComparison(BaseModel):
    model_config = ConfigDict(extra="forbid")

    throughput: List[ScenarioRanking] = Field(default_factory=list)
    latency: List[ScenarioRanking] = Field(default_factory=list)
    stability: List[ScenarioRanking] = Field(default_factory=list)
    best_performer: Optional[str] = None
    worst_performer: Optional[str] = None


class MultiScenarioResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: float
    scenarios: Dict[str, LoadTestResult] = Field(default_factory=dict)
    comparison: ScenarioComparison = Field(default_factory=ScenarioComparison)


# Stress results


class BatchSample(BaseModel):
    """Compact per-tick record kept in stress traces."""

    model_config = ConfigDict(extra="forbid")

    timestamp: float
    concurrency: int
    error_rate: float
    throughput: float
    avg_latency: float
    p95_latency: Optional[float] = None


class MemoryLeak(BaseModel):
    model_config = ConfigDict(extra="forbid")

    iteration: int
    growth_bytes: int
    timestamp: float


class StressMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pattern: str
    duration_seconds: float = 0.0
    breaking_point: Optional[FailurePoint] = None
    samples: List[BatchSample] = Field(default_factory=list)
    error_spikes: List[BatchSample] = Field(default_factory=list)
    memory_growth: List[int] = Field(default_factory=list)
    memory_leaks: List[MemoryLeak] = Field(default_factory=list)
    io_operations: List[BatchSample] = Field(default_factory=list)
    slow_operations: List[BatchSample] = Field(default_factory=list)
    timeout_errors: int = 0
    connection_errors: int = 0
    resource_usage: Dict[str, List[BatchSample]] = Field(default_factory=dict)
    contention_points: List[BatchSample] = Field(default_factory=list)
    failure_count: int = 0
    failure_chain: List[BatchSample] = Field(default_factory=list)


class StressPhase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration_ms: float
    metrics: Dict[str, Any] = Field(default_factory=dict)
    failure_points: List[FailurePoint] = Field(default_factory=list)
    error: Optional[str] = None


class RecoveryStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    load_ratio: float
    concurrency: int
    error_rate: float
    avg_latency: float
    throughput: float
    timestamp: float


class RecoveryResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recovery_time_seconds: float
    steps: List[RecoveryStep] = Field(default_factory=list)
    success: bool = False
    final_error_rate: Optional[float] = None
    final_avg_latency: Optional[float] = None


class RecoveryCapability(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recovery_time_seconds: float
    success: bool
    final_error_rate: Optional[float] = None
    final_avg_latency: Optional[float] = None
    degradation_percent: Optional[float] = None


class SystemLimits(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_safe_concurrency: Optional[int] = None
    memory_leak_threshold: Literal["detected", "none"] = "none"


class StressAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    breaking_points: List[FailurePoint] = Field(default_factory=list)
    recovery_capability: Optional[RecoveryCapability] = None
    system_limits: SystemLimits = Field(default_factory=SystemLimits)
    recommendations: List[Recommendation] = Field(default_factory=list)


class StressTestResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenario: str
    stress_type: str
    intensity: str
    start_time: float
    end_time: Optional[float] = None
    phases: Dict[str, Any] = Field(default_factory=dict)
    failure_points: List[FailurePoint] = Field(default_factory=list)
    recovery: Optional[RecoveryResult] = None
    analysis: Optional[StressAnalysis] = None
    error: Optional[str] = None


# Chaos results


class ChaosExperiment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    type: str
    duration_seconds: float = Field(gt=0)
    intensity: float = Field(ge=0, le=1)
    rollback_strategy: str = "immediate"
    created_at: float = 0.0


class HealthSnapshot(BaseModel):
    """Point-in-time health signal consumed by chaos safety checks."""

    model_config = ConfigDict(extra="forbid")

    error_rate: float = 0.0
    avg_latency: float = 0.0
    throughput: float = 0.0
    memory_usage: float = 0.0
    memory_available: int = 0
    memory_total: int = 0


class SafetyCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    safe: bool
    reason: Optional[str] = None


class SafetyReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    safe: bool
    checks: List[SafetyCheck] = Field(default_factory=list)

    @property
    def reasons(self) -> List[str]:
        return [c.reason for c in self.checks if not c.safe and c.reason]


class HealthAssessment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "warning", "critical"]
    issues: List[str] = Field(default_factory=list)
    timestamp: float = 0.0


class RecoveryAction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: str
    pressure: Optional[float] = None
    timestamp: float


class ChaosReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    experiment: ChaosExperiment
    status: Literal["skipped", "completed", "emergency_recovered", "stopped", "failed"]
    safety: SafetyReport
    health_checks: List[HealthAssessment] = Field(default_factory=list)
    recovery: List[RecoveryAction] = Field(default_factory=list)
    pressure: float = 1.0
    fault_injection_enabled: bool = False
    error: Optional[str] = None


# Comprehensive assessment


class AssessmentPhase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Literal["benchmarks", "load_tests", "stress_tests"]
    completed_at: float


class AssessmentScores(BaseModel):
    """Scores in [0, 100]; overall is the mean of every scored component."""

    model_config = ConfigDict(extra="forbid")

    overall: float = 100.0
    benchmarks: Optional[float] = None
    load_tests: Dict[str, float] = Field(default_factory=dict)
    stress_tests: Dict[str, float] = Field(default_factory=dict)


class AssessmentResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: float
    phases: List[AssessmentPhase] = Field(default_factory=list)
    benchmarks: Optional[SuiteResult] = None
    load_tests: Dict[str, LoadTestResult] = Field(default_factory=dict)
    stress_tests: Dict[str, StressTestResult] = Field(default_factory=dict)
    scores: AssessmentScores = Field(default_factory=AssessmentScores)
    recommendations: List[Recommendation] = Field(default_factory=list)
    error: Optional[str] = None
