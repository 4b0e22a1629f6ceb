"""Pytest configuration: import path, quiet telemetry and shared fakes."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in sys.path for proper imports with pytest-xdist
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from gauntlet.clock import ManualClock  # noqa: E402
from gauntlet.config import reset_settings  # noqa: E402
from gauntlet.models import MemorySnapshot  # noqa: E402

MB = 1024 * 1024


class FakeSampler:
    """Deterministic resource sampler.

    growth maps a 1-based snapshot call number to extra rss bytes that
    appear from that call on.
    """

    def __init__(self, rss=100 * MB, total=0, available=0, growth=None, cpu=0.0):
        self.rss = rss
        self.total = total
        self.available = available
        self.growth = growth or {}
        self.cpu = cpu
        self.calls = 0

    def snapshot(self):
        self.calls += 1
        self.rss += self.growth.get(self.calls, 0)
        return MemorySnapshot(
            rss=self.rss,
            vms=self.rss * 2,
            system_total=self.total,
            system_available=self.available,
            cpu_percent=self.cpu,
        )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.setenv("GAUNTLET_LOGFIRE", "0")
    monkeypatch.delenv("GAUNTLET_TELEMETRY_STDERR", raising=False)
    monkeypatch.delenv("GAUNTLET_CALL_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("GAUNTLET_MAX_WORKERS", raising=False)
    monkeypatch.delenv("GAUNTLET_HISTORY_SIZE", raising=False)
    monkeypatch.delenv("GAUNTLET_LOG_LEVEL", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def make_sampler():
    return FakeSampler
