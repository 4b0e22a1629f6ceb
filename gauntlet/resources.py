"""Process and host resource sampling backed by psutil."""
from __future__ import annotations

import logging
import os
import platform
import sys
from typing import Optional, Protocol

import psutil

from gauntlet.models import MemoryDelta, MemorySnapshot, SystemInfo

logger = logging.getLogger(__name__)


class ResourceSampler(Protocol):
    def snapshot(self) -> MemorySnapshot:
        ...


class PsutilSampler:
    """Samples the current process and the host through psutil."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self._process = psutil.Process(pid or os.getpid())

    def snapshot(self) -> MemorySnapshot:
        try:
            info = self._process.memory_info()
            system = psutil.virtual_memory()
            cpu = self._process.cpu_percent(interval=None)
        except (psutil.Error, OSError) as exc:
            logger.warning("Resource sampling failed: %s", exc)
            return MemorySnapshot()
        return MemorySnapshot(
            rss=info.rss,
            vms=info.vms,
            system_total=system.total,
            system_available=system.available,
            cpu_percent=cpu,
        )


def memory_delta(before: MemorySnapshot, after: MemorySnapshot) -> MemoryDelta:
    return MemoryDelta(rss=after.rss - before.rss, vms=after.vms - before.vms)


def system_info() -> SystemInfo:
    return SystemInfo(
        platform=platform.platform(),
        python_version=sys.version.split()[0],
        cpu_count=psutil.cpu_count() or 1,
        memory_total=psutil.virtual_memory().total,
    )
