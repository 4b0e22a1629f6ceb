"""Explicit callback registration for engine lifecycle events."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

BENCHMARK_COMPLETE = "benchmark_complete"
CONCURRENCY_COMPLETE = "concurrency_complete"
STOPPED = "stopped"

EVENTS = (BENCHMARK_COMPLETE, CONCURRENCY_COMPLETE, STOPPED)


class EventHooks:
    """
    Registry of listeners keyed by event name.

    benchmark_complete(name, result), concurrency_complete(name, concurrency,
    measurement) and stopped() are the supported events. A failing listener
    is logged and skipped; it never interrupts a run.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Callable[..., Any]]] = {e: [] for e in EVENTS}

    def subscribe(self, event: str, callback: Callable[..., Any]) -> Callable[[], None]:
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        with self._lock:
            self._listeners[event].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners[event]:
                    self._listeners[event].remove(callback)

        return unsubscribe

    def emit(self, event: str, *args: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        for callback in listeners:
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener for %s failed", event)
