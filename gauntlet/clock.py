"""
Time sources for duration-bounded loops.

Every loop in the engine reads time and sleeps through a Clock so tests can
swap in ManualClock and run a five minute stress pattern instantly.
"""

from __future__ import annotations

import threading
import time
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Monotonic seconds."""
        ...

    def time(self) -> float:
        """Wall-clock epoch seconds."""
        ...

    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    def now(self) -> float:
        return time.perf_counter()

    def time(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class ManualClock:
    """
    Virtual clock where sleep() advances time instead of blocking.

    Safe to share between worker threads; advance() can also be called from a
    workload to simulate call latency.
    """

    def __init__(self, start: float = 0.0, epoch: float = 1_700_000_000.0) -> None:
        self._now = start
        self._epoch = epoch - start
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def time(self) -> float:
        with self._lock:
            return self._epoch + self._now

    def sleep(self, seconds: float) -> None:
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        if seconds <= 0:
            return
        with self._lock:
            self._now += seconds


class RunControl:
    """Shared cooperative stop flag for every layer of one engine."""

    def __init__(self) -> None:
        self._running = threading.Event()
        self._running.set()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def stop(self) -> None:
        self._running.clear()

    def reset(self) -> None:
        self._running.set()


class Ticker:
    """
    Duration-bounded loop driver.

    Iterating yields the elapsed seconds at each tick until the duration is
    spent or the run control is stopped. The caller sleeps between ticks via
    pause() so each pattern can choose its own interval.
    """

    def __init__(
        self,
        clock: Clock,
        duration: float,
        control: Optional[RunControl] = None,
    ) -> None:
        self.clock = clock
        self.duration = duration
        self.control = control
        self.started = clock.now()
        self.ticks = 0

    @property
    def elapsed(self) -> float:
        return self.clock.now() - self.started

    def active(self) -> bool:
        if self.control is not None and not self.control.running:
            return False
        return self.elapsed < self.duration

    def pause(self, seconds: float) -> None:
        self.clock.sleep(seconds)

    def __iter__(self):
        while self.active():
            self.ticks += 1
            yield self.elapsed
