"""Tests for stress patterns, thresholds, fault injection and the stress engine."""

import pytest

from gauntlet.clock import RunControl
from gauntlet.config import FailureThresholds
from gauntlet.exceptions import UnknownPatternError
from gauntlet.models import BatchResult, MemorySnapshot, WorkloadSpec
from gauntlet.runner import Runner
from gauntlet.stress import (
    INTENSITY_PROFILES,
    STRESS_TYPES,
    FaultInjector,
    FaultPlan,
    StressEngine,
    StressPatterns,
    create_stress_scenario,
    faults,
    inject_faults,
    intensity_profile,
    rules,
)
from gauntlet.stress.thresholds import check_batch, check_failure_thresholds

MB = 1024 * 1024


@pytest.fixture
def patterns(clock, make_sampler):
    return StressPatterns(Runner(clock), clock, RunControl(), make_sampler())


@pytest.fixture
def engine(clock, make_sampler):
    return StressEngine(Runner(clock), sampler=make_sampler(), clock=clock)


def always_failing(name="down"):
    return WorkloadSpec(name, faults.failing(faults.service_error))


class TestThresholds:
    def test_checked_in_order(self):
        limits = FailureThresholds(max_error_rate=20, max_latency=5000, min_throughput=10)
        point = check_failure_thresholds(
            limits, error_rate=50.0, p95_latency=9000.0, throughput=1.0
        )
        assert point.type == "error_rate_threshold"
        point = check_failure_thresholds(limits, error_rate=0.0, p95_latency=9000.0, throughput=1.0)
        assert point.type == "latency_threshold"
        point = check_failure_thresholds(limits, error_rate=0.0, p95_latency=10.0, throughput=1.0)
        assert point.type == "throughput_threshold"
        assert point.severity == "medium"
        point = check_failure_thresholds(
            limits, error_rate=0.0, throughput=100.0, memory_usage=0.95
        )
        assert point.type == "memory_threshold"
        assert check_failure_thresholds(limits, error_rate=20.0, throughput=10.0) is None

    def test_unknown_metrics_skipped(self):
        limits = FailureThresholds(min_throughput=10)
        batch = BatchResult(concurrency=2, iterations=1, durations=[1.0, 1.0], elapsed_seconds=0.0)
        assert check_batch(batch, limits, MemorySnapshot()) is None

    def test_memory_usage_from_snapshot(self):
        limits = FailureThresholds(max_memory_usage=0.85)
        batch = BatchResult(concurrency=1, iterations=1, durations=[1.0], elapsed_seconds=1.0)
        snapshot = MemorySnapshot(system_total=100, system_available=10)
        point = check_batch(batch, limits, snapshot, iteration=7)
        assert point.type == "memory_threshold"
        assert point.value == pytest.approx(0.9)
        assert point.iteration == 7

    def test_deterministic_error_fraction(self, clock):
        plan = FaultPlan("flaky", [rules.every_nth(7, 20, faults.timeout)])
        workload = inject_faults(WorkloadSpec("api", lambda: None), plan, clock=clock)
        scenario = create_stress_scenario("api", workload)

        batch = Runner(clock).run_batch(20, workload, 1)
        point = check_batch(batch, scenario.failure_thresholds, MemorySnapshot())

        assert batch.failed_operations == 7
        assert point.type == "error_rate_threshold"
        assert point.value == pytest.approx(35.0)
        assert point.threshold == 20.0
        assert point.concurrency == 20


class TestScenario:
    def test_defaults(self):
        scenario = create_stress_scenario("api", WorkloadSpec("api", lambda: None))
        assert scenario.stress_type == "overload"
        assert scenario.intensity == "high"
        assert scenario.target_concurrency == 100
        assert scenario.recovery_test
        assert scenario.failure_thresholds == FailureThresholds(
            max_error_rate=20, max_latency=5000, max_memory_usage=0.85, min_throughput=10
        )

    def test_threshold_override(self):
        scenario = create_stress_scenario(
            "api",
            WorkloadSpec("api", lambda: None),
            failure_thresholds={"max_error_rate": 50},
            intensity="low",
        )
        assert scenario.failure_thresholds.max_error_rate == 50
        assert scenario.failure_thresholds.max_latency == 5000
        assert scenario.intensity == "low"

    def test_intensity_fallback(self):
        assert intensity_profile("bogus") == INTENSITY_PROFILES["medium"]
        assert intensity_profile("extreme").multiplier == 5.0


class TestPatterns:
    def test_registry(self, patterns):
        assert patterns.available == list(STRESS_TYPES)

    def test_overload_finds_breaking_point(self, patterns):
        scenario = create_stress_scenario(
            "api", always_failing(), intensity="low", target_concurrency=4
        )
        metrics, points = patterns.run(scenario)
        assert len(points) == 3
        assert [p.severity for p in points] == ["high", "high", "critical"]
        assert metrics.breaking_point == points[-1]
        assert metrics.breaking_point.concurrency == 4
        assert len(metrics.error_spikes) == 2
        assert metrics.duration_seconds == 60.0

    def test_overload_ramps_to_peak(self, patterns, clock):
        seen = []
        scenario = create_stress_scenario(
            "api",
            WorkloadSpec("api", lambda: seen.append(1)),
            intensity="low",
            target_concurrency=4,
            duration_seconds=15,
        )
        metrics, points = patterns.run(scenario)
        concurrency = [s.concurrency for s in metrics.error_spikes]
        assert concurrency[0] == 4
        assert concurrency[-1] == 6
        assert concurrency == sorted(concurrency)
        assert points == []
        assert clock.now() == pytest.approx(15.0)

    def test_memory_pressure_detects_leak(self, clock, make_sampler):
        patterns = StressPatterns(
            Runner(clock), clock, RunControl(), make_sampler(growth={13: 15 * MB})
        )
        scenario = create_stress_scenario(
            "api", WorkloadSpec("api", lambda: None), stress_type="memory_pressure", intensity="low"
        )
        metrics, points = patterns.run(scenario)
        assert len(metrics.memory_growth) == 30
        assert [leak.iteration for leak in metrics.memory_leaks] == [12]
        assert metrics.memory_leaks[0].growth_bytes == 15 * MB
        assert points == []

    def test_early_growth_is_not_a_leak(self, clock, make_sampler):
        patterns = StressPatterns(
            Runner(clock), clock, RunControl(), make_sampler(growth={5: 15 * MB})
        )
        scenario = create_stress_scenario(
            "api", WorkloadSpec("api", lambda: None), stress_type="memory_pressure", intensity="low"
        )
        metrics, _ = patterns.run(scenario)
        assert metrics.memory_leaks == []

    def test_disk_io_slow_operations(self, patterns, clock):
        scenario = create_stress_scenario(
            "disk",
            WorkloadSpec("disk", lambda: clock.advance(6.0)),
            stress_type="disk_io",
            target_concurrency=1,
            duration_seconds=3,
        )
        metrics, points = patterns.run(scenario)
        assert len(metrics.io_operations) == 1
        assert metrics.slow_operations[0].p95_latency == pytest.approx(6000.0)
        assert points[0].type == "latency_threshold"

    def test_network_error_classification(self, patterns, clock):
        plan = FaultPlan(
            "net",
            [
                rules.nth_call({1}, faults.connection_refused),
                rules.nth_call({2}, faults.host_not_found),
                rules.nth_call({3}, faults.timeout),
                rules.nth_call({4}, faults.service_error),
            ],
        )
        workload = inject_faults(WorkloadSpec("net", lambda: None), plan, clock=clock)
        scenario = create_stress_scenario(
            "net",
            workload,
            stress_type="network_saturation",
            target_concurrency=6,
            duration_seconds=1,
        )
        metrics, points = patterns.run(scenario)
        assert metrics.samples[0].concurrency == 4
        assert metrics.connection_errors == 2
        assert metrics.timeout_errors == 1
        assert points[0].value == 100.0

    def test_mixed_workload_contention(self, patterns):
        plan = FaultPlan("half", [rules.every_nth(1, 2, faults.service_error)])
        workload = inject_faults(WorkloadSpec("mixed", lambda: None), plan)
        scenario = create_stress_scenario(
            "mixed",
            workload,
            stress_type="mixed_workload",
            target_concurrency=8,
            duration_seconds=5,
        )
        metrics, points = patterns.run(scenario)
        assert {k: len(v) for k, v in metrics.resource_usage.items()} == {
            "cpu": 1,
            "memory": 1,
            "io": 1,
            "network": 1,
        }
        assert metrics.contention_points[0].error_rate == 50.0
        assert points[0].type == "error_rate_threshold"
        assert points[0].concurrency == 8

    def test_cascading_failure(self, patterns):
        scenario = create_stress_scenario(
            "chain",
            always_failing(),
            stress_type="cascading_failure",
            intensity="low",
            target_concurrency=2,
        )
        metrics, points = patterns.run(scenario)
        assert metrics.failure_count == 4
        assert len(metrics.failure_chain) == 4
        assert points[-1].type == "cascading_failure"
        assert points[-1].severity == "critical"
        assert metrics.breaking_point == points[-1]
        assert [p.type for p in points[:-1]] == ["error_rate_threshold"] * 3

    def test_healthy_cascade_counter_stays_zero(self, patterns):
        scenario = create_stress_scenario(
            "chain",
            WorkloadSpec("ok", lambda: None),
            stress_type="cascading_failure",
            intensity="low",
            target_concurrency=2,
        )
        metrics, _ = patterns.run(scenario)
        assert metrics.failure_count == 0
        assert metrics.breaking_point is None

    def test_stop_ends_pattern(self, clock, make_sampler):
        control = RunControl()
        patterns = StressPatterns(Runner(clock), clock, control, make_sampler())

        def execute():
            control.stop()

        scenario = create_stress_scenario(
            "api", WorkloadSpec("api", execute), stress_type="disk_io", target_concurrency=1
        )
        metrics, _ = patterns.run(scenario)
        assert len(metrics.io_operations) == 1


class TestStressEngine:
    def test_unknown_stress_type(self, engine):
        scenario = create_stress_scenario(
            "api", WorkloadSpec("api", lambda: None), stress_type="meltdown"
        )
        with pytest.raises(UnknownPatternError) as info:
            engine.run_stress_test(scenario)
        assert info.value.message == "Unknown stress pattern: meltdown"

    def test_healthy_run(self, engine, clock):
        calls = []
        workload = WorkloadSpec(
            "api",
            execute=lambda: None,
            setup=lambda: calls.append("setup"),
            teardown=lambda: calls.append("teardown"),
        )
        scenario = create_stress_scenario("api", workload, intensity="low", target_concurrency=4)
        result = engine.run_stress_test(scenario)

        assert result.error is None
        assert calls == ["setup", "teardown"]
        assert list(result.phases) == ["baseline", "stress", "recovery"]
        assert result.phases["baseline"].metrics.concurrency == [1] * 30
        assert result.failure_points == []
        assert [s.concurrency for s in result.recovery.steps] == [3, 2, 1, 1, 1]
        assert result.recovery.recovery_time_seconds == pytest.approx(25.0)
        assert result.recovery.success
        analysis = result.analysis
        assert analysis.breaking_points == []
        assert analysis.recovery_capability.success
        assert analysis.system_limits.max_safe_concurrency is None
        assert analysis.system_limits.memory_leak_threshold == "none"
        assert analysis.recommendations == []

    def test_breaking_system(self, engine):
        scenario = create_stress_scenario(
            "down", always_failing(), intensity="low", target_concurrency=4
        )
        result = engine.run_stress_test(scenario)
        assert result.error is None
        assert [p.severity for p in result.failure_points] == ["high", "high", "critical"]
        assert result.phases["stress"].failure_points == result.failure_points
        assert result.recovery.success is False
        assert result.recovery.final_error_rate == 100.0
        analysis = result.analysis
        assert analysis.system_limits.max_safe_concurrency == 4
        assert [r.type for r in analysis.recommendations] == ["capacity_planning", "resilience"]

    def test_recovery_can_be_skipped(self, engine):
        scenario = create_stress_scenario(
            "api",
            WorkloadSpec("api", lambda: None),
            stress_type="cascading_failure",
            intensity="low",
            target_concurrency=2,
            recovery_test=False,
        )
        result = engine.run_stress_test(scenario)
        assert result.recovery is None
        assert "recovery" not in result.phases
        assert result.analysis.recovery_capability is None

    def test_setup_failure_recorded(self, engine):
        torn_down = []

        def setup():
            raise OSError("no disk")

        workload = WorkloadSpec(
            "api", lambda: None, setup=setup, teardown=lambda: torn_down.append(True)
        )
        result = engine.run_stress_test(create_stress_scenario("api", workload, intensity="low"))
        assert result.error == "OSError: no disk"
        assert result.phases == {}
        assert torn_down == [True]


class TestFaults:
    def test_burst_and_nth(self):
        injector = FaultInjector(
            FaultPlan("p", [rules.burst(2, 2, faults.service_error)])
            + FaultPlan("q", [rules.nth_call({5}, faults.timeout)])
        )
        outcomes = []
        for _ in range(6):
            try:
                injector.inject()
                outcomes.append("ok")
            except Exception as exc:
                outcomes.append(type(exc).__name__)
        assert outcomes == ["ok", "ServiceUnavailable", "ServiceUnavailable", "ok", "TimeoutError", "ok"]
        assert injector.call_count == 6

    def test_plan_names_combine(self):
        assert (FaultPlan("a") + FaultPlan("b")).name == "a+b"

    def test_latency_uses_clock(self, clock):
        injector = FaultInjector(FaultPlan("slow", [rules.latency(1.0, 2.0)]), clock=clock)
        injector.inject()
        assert clock.now() == 2.0

    def test_slow_failure(self, clock):
        injector = FaultInjector(
            FaultPlan("slow", [rules.slow_failure(1.0, 0.5, faults.connection_refused)]), clock=clock
        )
        with pytest.raises(ConnectionRefusedError):
            injector.inject()
        assert clock.now() == 0.5

    def test_error_rate_is_seeded(self):
        def run(seed):
            injector = FaultInjector(FaultPlan("r", [rules.error_rate(0.5, faults.timeout)]), seed=seed)
            outcome = []
            for _ in range(20):
                try:
                    injector.inject()
                    outcome.append(True)
                except TimeoutError:
                    outcome.append(False)
            return outcome

        assert run(3) == run(3)
        assert False in run(3) and True in run(3)

    def test_cycle_requires_positive_period(self):
        with pytest.raises(ValueError):
            rules.every_nth(1, 0, faults.timeout)

    def test_disabled_injector(self):
        injector = FaultInjector(FaultPlan("all", [rules.error_rate(1.0, faults.timeout)]))
        injector.enabled = False
        injector.inject()
        assert injector.call_count == 0
