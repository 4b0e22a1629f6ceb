"""
Simulated chaos experiments.

The protocol is design -> safety checks -> execute -> monitor -> recover.
Execution handlers only log what they would do; no real faults are applied
outside the process. Health comes from a caller-supplied probe, and an
experiment never starts without one.
"""
from __future__ import annotations

import logging
import random
import string
from typing import Callable, Dict, Optional

from gauntlet import telemetry
from gauntlet.clock import Clock, RunControl, SystemClock
from gauntlet.models import (
    ChaosExperiment,
    ChaosReport,
    HealthAssessment,
    HealthSnapshot,
    LoadMetrics,
    MemorySnapshot,
    RecoveryAction,
    SafetyCheck,
    SafetyReport,
)
from gauntlet.resources import PsutilSampler, ResourceSampler
from gauntlet.runner import describe_error

logger = logging.getLogger(__name__)

EXPERIMENT_TYPES = (
    "network_partition",
    "resource_exhaustion",
    "dependency_failure",
    "configuration_change",
    "load_spike",
)

HealthProbe = Callable[[], Optional[HealthSnapshot]]

MONITOR_INTERVAL_SECONDS = 5.0
MONITOR_GRACE_SECONDS = 30.0
EMERGENCY_PRESSURE = 0.1
EMERGENCY_COOLDOWN_SECONDS = 30.0
PLANNED_RECOVERY_STEPS = 5
MIN_FREE_MEMORY_RATIO = 0.1


def risk_level(experiment: ChaosExperiment) -> str:
    intensity = experiment.intensity
    if experiment.type == "network_partition":
        return "high" if intensity > 0.7 else "medium"
    if experiment.type == "resource_exhaustion":
        return "high" if intensity > 0.5 else "medium"
    if experiment.type == "dependency_failure":
        return "high"
    if experiment.type == "configuration_change":
        return "high" if intensity > 0.8 else "low"
    if experiment.type == "load_spike":
        return "medium" if intensity > 0.6 else "low"
    return "medium"


def check_system_health(snapshot: Optional[HealthSnapshot]) -> SafetyCheck:
    if snapshot is None:
        return SafetyCheck(name="system_health", safe=False, reason="System metrics unavailable")
    violations = []
    if snapshot.error_rate > 50:
        violations.append("error_rate")
    if snapshot.avg_latency > 10000:
        violations.append("latency")
    if snapshot.memory_usage > 0.95:
        violations.append("memory")
    if snapshot.throughput < 1:
        violations.append("throughput")
    if violations:
        return SafetyCheck(
            name="system_health",
            safe=False,
            reason=f"Thresholds violated: {', '.join(violations)}",
        )
    return SafetyCheck(name="system_health", safe=True)


def check_resources(memory: MemorySnapshot) -> SafetyCheck:
    if memory.system_total <= 0 or memory.free_ratio <= MIN_FREE_MEMORY_RATIO:
        return SafetyCheck(
            name="resource_availability", safe=False, reason="Insufficient free memory"
        )
    return SafetyCheck(name="resource_availability", safe=True)


def check_experiment_risk(experiment: ChaosExperiment) -> SafetyCheck:
    level = risk_level(experiment)
    if level == "high":
        return SafetyCheck(
            name="experiment_safety",
            safe=False,
            reason=f"Experiment risk level too high: {experiment.type} at {experiment.intensity:.2f}",
        )
    return SafetyCheck(name="experiment_safety", safe=True)


def check_fault_injection(enabled: bool) -> SafetyCheck:
    if not enabled:
        return SafetyCheck(
            name="fault_injection",
            safe=False,
            reason="Fault injection disabled after emergency recovery",
        )
    return SafetyCheck(name="fault_injection", safe=True)


def assess_health(snapshot: Optional[HealthSnapshot], timestamp: float = 0.0) -> HealthAssessment:
    """Classify a health sample as healthy, warning or critical."""
    if snapshot is None:
        return HealthAssessment(status="warning", issues=["metrics_unavailable"], timestamp=timestamp)
    critical = []
    warnings = []
    if snapshot.error_rate > 80:
        critical.append("error_rate")
    elif snapshot.error_rate > 30:
        warnings.append("error_rate")
    if snapshot.avg_latency > 20000:
        critical.append("latency")
    elif snapshot.avg_latency > 5000:
        warnings.append("latency")
    if snapshot.memory_usage > 0.98:
        critical.append("memory")
    elif snapshot.memory_usage > 0.9:
        warnings.append("memory")
    if snapshot.throughput < 0.1:
        critical.append("throughput")
    elif snapshot.throughput < 5:
        warnings.append("throughput")
    if critical:
        return HealthAssessment(status="critical", issues=critical, timestamp=timestamp)
    if warnings:
        return HealthAssessment(status="warning", issues=warnings, timestamp=timestamp)
    return HealthAssessment(status="healthy", timestamp=timestamp)


def health_from_load_metrics(
    metrics: LoadMetrics, memory: Optional[MemorySnapshot] = None
) -> HealthSnapshot:
    """Build a health sample from the metrics of a load test."""
    memory = memory or MemorySnapshot()
    return HealthSnapshot(
        error_rate=metrics.error_rate,
        avg_latency=metrics.latency_stats.mean or 0.0,
        throughput=metrics.avg_throughput,
        memory_usage=memory.usage_ratio,
        memory_available=memory.system_available,
        memory_total=memory.system_total,
    )


class ChaosEngine:
    def __init__(
        self,
        probe: Optional[HealthProbe] = None,
        *,
        clock: Optional[Clock] = None,
        control: Optional[RunControl] = None,
        sampler: Optional[ResourceSampler] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.probe = probe
        self.clock = clock or SystemClock()
        self.control = control or RunControl()
        self.sampler = sampler or PsutilSampler()
        self.rng = random.Random(seed)
        self.pressure = 1.0
        self.fault_injection_enabled = True
        self._handlers: Dict[str, Callable[[ChaosExperiment], None]] = {
            "network_partition": self._simulate_network_partition,
            "resource_exhaustion": self._simulate_resource_exhaustion,
            "dependency_failure": self._simulate_dependency_failure,
            "configuration_change": self._simulate_configuration_change,
            "load_spike": self._simulate_load_spike,
        }

    def _health(self) -> Optional[HealthSnapshot]:
        if self.probe is None:
            return None
        return self.probe()

    def design_experiment(self) -> ChaosExperiment:
        suffix = "".join(self.rng.choices(string.ascii_lowercase + string.digits, k=9))
        now = self.clock.time()
        return ChaosExperiment(
            id=f"chaos_{int(now * 1000)}_{suffix}",
            type=self.rng.choice(EXPERIMENT_TYPES),
            duration_seconds=30.0 + self.rng.random() * 60.0,
            intensity=self.rng.random(),
            rollback_strategy="immediate",
            created_at=now,
        )

    def perform_safety_checks(self, experiment: ChaosExperiment) -> SafetyReport:
        checks = [
            check_fault_injection(self.fault_injection_enabled),
            check_system_health(self._health()),
            check_resources(self.sampler.snapshot()),
            check_experiment_risk(experiment),
        ]
        return SafetyReport(safe=all(c.safe for c in checks), checks=checks)

    def execute_experiment(self, experiment: ChaosExperiment) -> None:
        logger.info("Executing chaos experiment %s (%s)", experiment.id, experiment.type)
        handler = self._handlers.get(experiment.type)
        if handler is None:
            raise ValueError(f"Unknown chaos experiment type: {experiment.type}")
        handler(experiment)

    def monitor_and_recover(self, experiment: ChaosExperiment, report: ChaosReport) -> None:
        window = experiment.duration_seconds + MONITOR_GRACE_SECONDS
        start = self.clock.now()
        while self.clock.now() - start < window:
            if not self.control.running:
                self.rollback(experiment, report)
                return
            assessment = assess_health(self._health(), self.clock.time())
            report.health_checks.append(assessment)
            if assessment.status == "critical":
                logger.warning(
                    "Critical health during %s: %s", experiment.id, ", ".join(assessment.issues)
                )
                self.emergency_recovery(experiment, report)
                report.status = "emergency_recovered"
                return
            self.clock.sleep(MONITOR_INTERVAL_SECONDS)
        self.planned_recovery(experiment, report)

    def rollback(self, experiment: ChaosExperiment, report: ChaosReport) -> None:
        """Restore full pressure at once, skipping the staged ramp."""
        logger.info("Chaos experiment %s stopped, rolling back", experiment.id)
        self.pressure = 1.0
        report.recovery.append(
            RecoveryAction(action="rollback", pressure=self.pressure, timestamp=self.clock.time())
        )
        report.status = "stopped"

    def emergency_recovery(self, experiment: ChaosExperiment, report: ChaosReport) -> None:
        logger.warning("Emergency recovery for %s", experiment.id)
        self.pressure = EMERGENCY_PRESSURE
        self.fault_injection_enabled = False
        report.recovery.append(
            RecoveryAction(action="reset_pressure", pressure=self.pressure, timestamp=self.clock.time())
        )
        report.recovery.append(
            RecoveryAction(action="disable_fault_injection", timestamp=self.clock.time())
        )
        self.clock.sleep(EMERGENCY_COOLDOWN_SECONDS)
        report.recovery.append(RecoveryAction(action="stabilized", timestamp=self.clock.time()))

    def planned_recovery(self, experiment: ChaosExperiment, report: ChaosReport) -> None:
        logger.info("Planned recovery for %s", experiment.id)
        step_delay = experiment.duration_seconds / PLANNED_RECOVERY_STEPS
        for step in range(1, PLANNED_RECOVERY_STEPS + 1):
            if not self.control.running:
                self.rollback(experiment, report)
                return
            self.clock.sleep(step_delay)
            self.pressure = round(step / PLANNED_RECOVERY_STEPS, 10)
            report.recovery.append(
                RecoveryAction(action=f"step_{step}", pressure=self.pressure, timestamp=self.clock.time())
            )
            logger.debug("Recovery step %d pressure %.1f", step, self.pressure)

    def enable_fault_injection(self) -> None:
        """Re-arm experiments after an emergency recovery."""
        logger.info("Chaos fault injection re-enabled")
        self.fault_injection_enabled = True
        self.pressure = 1.0

    def run_experiment(self, experiment: Optional[ChaosExperiment] = None) -> ChaosReport:
        experiment = experiment or self.design_experiment()
        safety = self.perform_safety_checks(experiment)
        report = ChaosReport(
            experiment=experiment,
            status="skipped",
            safety=safety,
            pressure=self.pressure,
            fault_injection_enabled=self.fault_injection_enabled,
        )
        if not safety.safe:
            logger.warning(
                "Chaos experiment %s cancelled: %s", experiment.id, "; ".join(safety.reasons)
            )
            return report

        with telemetry.span("gauntlet.chaos", experiment=experiment.id, type=experiment.type):
            try:
                self.execute_experiment(experiment)
            except Exception as exc:
                report.error = describe_error(exc)
                report.status = "failed"
                logger.error("Chaos experiment %s failed: %s", experiment.id, report.error)
                self.emergency_recovery(experiment, report)
            else:
                report.status = "completed"
                self.monitor_and_recover(experiment, report)
        report.pressure = self.pressure
        report.fault_injection_enabled = self.fault_injection_enabled
        logger.info("Chaos experiment %s finished: %s", experiment.id, report.status)
        return report

    def _simulate_network_partition(self, experiment: ChaosExperiment) -> None:
        logger.info("Simulating network partition (%s)", experiment.id)

    def _simulate_resource_exhaustion(self, experiment: ChaosExperiment) -> None:
        logger.info("Simulating resource exhaustion (%s)", experiment.id)

    def _simulate_dependency_failure(self, experiment: ChaosExperiment) -> None:
        logger.info("Simulating dependency failure (%s)", experiment.id)

    def _simulate_configuration_change(self, experiment: ChaosExperiment) -> None:
        logger.info("Simulating configuration change (%s)", experiment.id)

    def _simulate_load_spike(self, experiment: ChaosExperiment) -> None:
        logger.info("Simulating load spike (%s)", experiment.id)
