"""
Benchmark configuration.

Two layers:
- Settings: process-wide defaults read from GAUNTLET_* environment variables.
- BenchmarkConfig / FailureThresholds: validated per-run options.

Usage:
    from gauntlet.config import BenchmarkConfig, get_settings

    config = BenchmarkConfig(concurrency_levels=[1, 4, 16], duration_seconds=0)
    print(get_settings().log_level)
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONCURRENCY_LEVELS = [1, 5, 10, 25, 50, 100]
DEFAULT_PERCENTILES = [50.0, 90.0, 95.0, 99.0, 99.9]


class Settings:
    """Process configuration loaded from environment variables."""

    def __init__(self) -> None:
        self.log_level: str = os.getenv("GAUNTLET_LOG_LEVEL", "INFO").upper()
        self.history_size: int = int(os.getenv("GAUNTLET_HISTORY_SIZE", "50"))
        # Upper bound on worker threads for one batch; 0 means one thread per worker.
        self.max_workers: int = int(os.getenv("GAUNTLET_MAX_WORKERS", "0"))

        timeout = os.getenv("GAUNTLET_CALL_TIMEOUT_SECONDS")
        self.call_timeout_seconds: Optional[float] = (
            float(timeout) if timeout else None
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear settings cache. For testing only."""
    get_settings.cache_clear()


def configure_logging(level: Optional[str] = None) -> None:
    """Install a root handler at GAUNTLET_LOG_LEVEL unless one is already set."""
    name = (level or get_settings().log_level).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("gauntlet").setLevel(numeric)


class FailureThresholds(BaseModel):
    """
    Limits that turn a stress batch into a failure point.

    Attributes:
        max_error_rate: Error rate percentage above which a batch fails.
        max_latency: p95 latency in milliseconds above which a batch fails.
        max_memory_usage: System memory usage ratio (0..1) above which a batch fails.
        min_throughput: Operations per second below which a batch fails.
    """

    model_config = ConfigDict(extra="forbid")

    max_error_rate: float = Field(default=50.0, ge=0, le=100)
    max_latency: float = Field(default=30000.0, gt=0)
    max_memory_usage: float = Field(default=0.9, gt=0, le=1)
    min_throughput: float = Field(default=0.0, ge=0)


class BenchmarkConfig(BaseModel):
    """
    Options for a benchmark suite.

    Durations are in seconds. A duration_seconds of 0 disables the
    orchestrator's stress phase.
    """

    model_config = ConfigDict(extra="forbid")

    warmup_iterations: int = Field(default=100, ge=0)
    measurement_iterations: int = Field(default=1000, ge=1)
    concurrency_levels: List[int] = Field(
        default_factory=lambda: list(DEFAULT_CONCURRENCY_LEVELS)
    )
    duration_seconds: float = Field(default=30.0, ge=0)
    ramp_up_seconds: float = Field(default=5.0, ge=0)
    cool_down_seconds: float = Field(default=2.0, ge=0)
    percentiles: List[float] = Field(default_factory=lambda: list(DEFAULT_PERCENTILES))

    regression_detection: bool = True
    anomaly_detection: bool = True
    bottleneck_analysis: bool = True
    predictive_modeling: bool = True
    comparative_analysis: bool = True
    adaptive_load_generation: bool = True
    intelligent_warmup: bool = True

    anomaly_threshold: float = Field(default=3.0, gt=0)
    anomaly_min_history: int = Field(default=5, ge=2)
    prediction_window: int = Field(default=10, ge=2)
    history_size: int = Field(default_factory=lambda: get_settings().history_size, ge=1)
    max_concurrency: int = Field(default=1000, ge=1)
    call_timeout_seconds: Optional[float] = Field(
        default_factory=lambda: get_settings().call_timeout_seconds, gt=0
    )

    failure_thresholds: FailureThresholds = Field(default_factory=FailureThresholds)

    @field_validator("concurrency_levels")
    @classmethod
    def _positive_levels(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("concurrency_levels must not be empty")
        if any(level <= 0 for level in value):
            raise ValueError("concurrency_levels must be positive")
        return value

    @field_validator("percentiles")
    @classmethod
    def _valid_percentiles(cls, value: List[float]) -> List[float]:
        if any(p <= 0 or p > 100 for p in value):
            raise ValueError("percentiles must be in (0, 100]")
        return sorted(value)
