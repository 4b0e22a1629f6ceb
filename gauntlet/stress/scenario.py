"""
Stress scenario definitions and intensity profiles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from gauntlet.config import FailureThresholds
from gauntlet.models import Intensity, WorkloadSpec

logger = logging.getLogger(__name__)

STRESS_TYPES = (
    "overload",
    "memory_pressure",
    "disk_io",
    "network_saturation",
    "mixed_workload",
    "cascading_failure",
)


@dataclass(frozen=True)
class IntensityProfile:
    """
    How hard and how long a stress pattern pushes.

    Attributes:
        multiplier: Peak load as a multiple of the target concurrency (overload).
        duration_seconds: Length of the stress phase.
        ramp_up_seconds: Time to reach peak load (overload).
    """

    multiplier: float
    duration_seconds: float
    ramp_up_seconds: float


INTENSITY_PROFILES: Dict[str, IntensityProfile] = {
    Intensity.LOW.value: IntensityProfile(1.5, 60.0, 10.0),
    Intensity.MEDIUM.value: IntensityProfile(2.0, 120.0, 20.0),
    Intensity.HIGH.value: IntensityProfile(3.0, 180.0, 30.0),
    Intensity.EXTREME.value: IntensityProfile(5.0, 300.0, 60.0),
}


def intensity_profile(intensity: str) -> IntensityProfile:
    """Look up an intensity; unknown names fall back to medium."""
    profile = INTENSITY_PROFILES.get(str(intensity))
    if profile is None:
        logger.warning("Unknown intensity %r, using medium", intensity)
        return INTENSITY_PROFILES[Intensity.MEDIUM.value]
    return profile


@dataclass(frozen=True)
class StressScenario:
    name: str
    workload: WorkloadSpec
    stress_type: str = "overload"
    intensity: str = Intensity.HIGH.value
    recovery_test: bool = True
    failure_thresholds: FailureThresholds = field(default_factory=FailureThresholds)
    target_concurrency: int = 100
    description: str = ""
    # Overrides the intensity duration when set.
    duration_seconds: Optional[float] = None


def create_stress_scenario(
    name: str,
    workload: WorkloadSpec,
    *,
    failure_thresholds: Optional[Dict[str, Any]] = None,
    **overrides: Any,
) -> StressScenario:
    """
    Build a StressScenario with stricter thresholds than the engine defaults:
    20% errors, 5000ms p95, 85% memory, 10 ops/s.
    """
    thresholds = FailureThresholds(
        **{
            "max_error_rate": 20.0,
            "max_latency": 5000.0,
            "max_memory_usage": 0.85,
            "min_throughput": 10.0,
            **(failure_thresholds or {}),
        }
    )
    scenario = StressScenario(
        name=name,
        workload=workload,
        description=f"Stress test for {name}",
        failure_thresholds=thresholds,
    )
    return replace(scenario, **overrides)
