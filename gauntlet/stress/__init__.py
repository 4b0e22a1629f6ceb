"""
Stress patterns, failure thresholds and simulated chaos experiments.

Usage:
    from gauntlet.stress import StressEngine, create_stress_scenario, rules, faults

    flaky = faults.inject_faults(
        workload, faults.FaultPlan("flaky", [rules.error_rate(0.3, faults.timeout)])
    )
    result = StressEngine(runner).run_stress_test(
        create_stress_scenario("flaky", flaky, stress_type="network_saturation")
    )
"""

from gauntlet.stress import faults, rules
from gauntlet.stress.chaos import ChaosEngine, assess_health, health_from_load_metrics, risk_level
from gauntlet.stress.faults import Fault, FaultInjector, FaultPlan, FaultRule, inject_faults
from gauntlet.stress.patterns import StressPatterns
from gauntlet.stress.scenario import (
    INTENSITY_PROFILES,
    STRESS_TYPES,
    IntensityProfile,
    StressScenario,
    create_stress_scenario,
    intensity_profile,
)
from gauntlet.stress.tester import StressEngine, stress_recommendations
from gauntlet.stress.thresholds import check_batch, check_failure_thresholds

__all__ = [
    "ChaosEngine",
    "assess_health",
    "health_from_load_metrics",
    "risk_level",
    "Fault",
    "FaultInjector",
    "FaultPlan",
    "FaultRule",
    "inject_faults",
    "StressPatterns",
    "INTENSITY_PROFILES",
    "STRESS_TYPES",
    "IntensityProfile",
    "StressScenario",
    "create_stress_scenario",
    "intensity_profile",
    "StressEngine",
    "stress_recommendations",
    "check_batch",
    "check_failure_thresholds",
    "faults",
    "rules",
]
