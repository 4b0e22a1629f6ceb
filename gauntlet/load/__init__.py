"""
Load patterns: drive a workload with time-varying concurrency.

Usage:
    from gauntlet.load import LoadPatternGenerator, create_scenario

    result = LoadPatternGenerator(runner).run_load_test(
        create_scenario("browse", workload, pattern="sinusoidal", duration_seconds=60)
    )
"""

from gauntlet.load.controller import AdaptiveLoadController, ControllerGains
from gauntlet.load.generator import LoadPatternGenerator, LoadScenario, create_scenario
from gauntlet.load.shapes import (
    BUILTIN_SHAPES,
    ConstantShape,
    LoadShape,
    RampShape,
    RandomShape,
    SinusoidalShape,
    SpikeShape,
    StepShape,
    get_shape,
)

__all__ = [
    "AdaptiveLoadController",
    "ControllerGains",
    "LoadPatternGenerator",
    "LoadScenario",
    "create_scenario",
    "BUILTIN_SHAPES",
    "LoadShape",
    "ConstantShape",
    "RampShape",
    "StepShape",
    "SpikeShape",
    "RandomShape",
    "SinusoidalShape",
    "get_shape",
]
