"""
Per-workload trend store.

Holds a bounded ring of HistoryEntry per workload name, the baseline metrics
recorded on the first run, and regression events. The caller owns the store:
pass one to several orchestrators to share trends, or give each its own.
"""
from __future__ import annotations

import threading
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Deque, Dict, Iterator, List, Optional, Set

from gauntlet.exceptions import ConcurrentRunError
from gauntlet.models import HistoryEntry, Regression, utc_now

DEFAULT_HISTORY_SIZE = 50
REGRESSION_HISTORY_LIMIT = 50
REGRESSION_TREND_WINDOW = timedelta(days=7)


class HistoryStore:
    """Thread-safe history, baselines and in-flight run tracking."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._history: Dict[str, Deque[HistoryEntry]] = {}
        self._baselines: Dict[str, Dict[str, float]] = {}
        self._regressions: Dict[str, List[Regression]] = {}
        self._running: Set[str] = set()

    def append(self, name: str, entry: HistoryEntry) -> None:
        with self._lock:
            ring = self._history.get(name)
            if ring is None:
                ring = deque(maxlen=self.max_entries)
                self._history[name] = ring
            ring.append(entry)

    def entries(self, name: str) -> List[HistoryEntry]:
        with self._lock:
            return list(self._history.get(name, ()))

    def metric_series(self, name: str, metric: str) -> List[float]:
        return [
            e.metrics[metric]
            for e in self.entries(name)
            if isinstance(e.metrics.get(metric), (int, float))
        ]

    def baseline(self, name: str) -> Optional[Dict[str, float]]:
        with self._lock:
            found = self._baselines.get(name)
            return dict(found) if found is not None else None

    def set_baseline(self, name: str, metrics: Dict[str, float]) -> bool:
        """Record a baseline unless one exists. Returns True if recorded."""
        with self._lock:
            if name in self._baselines:
                return False
            self._baselines[name] = dict(metrics)
            return True

    def record_regressions(self, name: str, regressions: List[Regression]) -> None:
        if not regressions:
            return
        with self._lock:
            events = self._regressions.setdefault(name, [])
            events.extend(regressions)
            if len(events) > REGRESSION_HISTORY_LIMIT:
                del events[: len(events) - REGRESSION_HISTORY_LIMIT // 2]

    def regressions(self, name: Optional[str] = None) -> List[Regression]:
        with self._lock:
            if name is not None:
                return list(self._regressions.get(name, ()))
            return [r for events in self._regressions.values() for r in events]

    @contextmanager
    def run_lock(self, name: str) -> Iterator[None]:
        """Claim the workload name for one run; a second claim raises."""
        with self._lock:
            if name in self._running:
                raise ConcurrentRunError(name)
            self._running.add(name)
        try:
            yield
        finally:
            with self._lock:
                self._running.discard(name)

    def regression_trend(self, now: Optional[datetime] = None) -> str:
        """Compare regression counts of the last week against the week before."""
        events = self.regressions()
        if len(events) < 2:
            return "insufficient_data"
        now = now or utc_now()
        recent = sum(1 for r in events if now - r.timestamp <= REGRESSION_TREND_WINDOW)
        older = sum(
            1
            for r in events
            if REGRESSION_TREND_WINDOW < now - r.timestamp <= 2 * REGRESSION_TREND_WINDOW
        )
        if recent > older:
            return "increasing"
        if recent < older:
            return "decreasing"
        return "stable"

    def advanced_stats(self) -> Dict[str, object]:
        with self._lock:
            total_runs = sum(len(ring) for ring in self._history.values())
            with_history = len(self._history)
            with_baseline = len(self._baselines)
            total_regressions = sum(len(v) for v in self._regressions.values())
        return {
            "total_historical_runs": total_runs,
            "benchmarks_with_history": with_history,
            "benchmarks_with_baseline": with_baseline,
            "total_regressions": total_regressions,
            "regression_trend": self.regression_trend(),
        }

    def clear(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name is None:
                self._history.clear()
                self._baselines.clear()
                self._regressions.clear()
            else:
                self._history.pop(name, None)
                self._baselines.pop(name, None)
                self._regressions.pop(name, None)
