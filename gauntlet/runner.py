"""
Concurrency runner: fan-out/fan-in batches of workload invocations.

A batch starts N workers at once on a thread pool. Each worker performs its
iterations sequentially (before_each -> execute -> after_each), timing the
whole sequence. run_batch() returns once every invocation has settled, or once the
optional per-invocation deadline budget for the batch is spent.

Usage:
    from gauntlet.runner import Runner

    runner = Runner()
    batch = runner.run_batch(10, workload, iterations=100)
    print(batch.throughput, batch.error_rate)
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional

from gauntlet.clock import Clock, SystemClock
from gauntlet.config import get_settings
from gauntlet.exceptions import InvocationTimeout
from gauntlet.models import BatchResult, IterationError, WorkloadSpec

logger = logging.getLogger(__name__)


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


@dataclass
class RunnerStats:
    """Snapshot of runner activity."""
    active_workers: int
    total_batches: int
    total_invocations: int
    total_failures: int
    total_timeouts: int


class _BatchState:
    """Result sink shared by the workers of one batch."""

    def __init__(self, concurrency: int) -> None:
        self.lock = threading.Lock()
        self.durations: List[float] = []
        self.errors: List[IterationError] = []
        self.completed = [0] * concurrency
        self.closed = False

    def success(self, worker: int, duration_ms: float) -> None:
        with self.lock:
            if self.closed:
                return
            self.durations.append(duration_ms)
            self.completed[worker] += 1

    def failure(self, error: IterationError) -> None:
        with self.lock:
            if self.closed:
                return
            self.errors.append(error)
            self.completed[error.worker] += 1


class Runner:
    """
    Runs batches of concurrent workload invocations.

    Threads are the unit of concurrency: a batch of N uses N pool threads
    unless GAUNTLET_MAX_WORKERS caps it, in which case excess workers queue.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        *,
        call_timeout_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.clock = clock or SystemClock()
        self.call_timeout_seconds = (
            call_timeout_seconds
            if call_timeout_seconds is not None
            else settings.call_timeout_seconds
        )
        self.max_workers = max_workers if max_workers is not None else settings.max_workers

        self._stats_lock = threading.Lock()
        self._active = 0
        self._total_batches = 0
        self._total_invocations = 0
        self._total_failures = 0
        self._total_timeouts = 0

    def run_batch(
        self,
        concurrency: int,
        workload: WorkloadSpec,
        iterations: int = 1,
        *,
        call_timeout_seconds: Optional[float] = None,
    ) -> BatchResult:
        if concurrency <= 0 or iterations <= 0:
            return BatchResult(concurrency=max(concurrency, 0), iterations=max(iterations, 0))

        timeout = call_timeout_seconds or self.call_timeout_seconds
        state = _BatchState(concurrency)
        started_at = self.clock.time()
        start = self.clock.now()

        pool_size = concurrency
        if self.max_workers and self.max_workers > 0:
            pool_size = min(concurrency, self.max_workers)

        with self._stats_lock:
            self._active += concurrency
            self._total_batches += 1

        executor = ThreadPoolExecutor(
            max_workers=pool_size, thread_name_prefix=f"gauntlet-{workload.name}"
        )
        try:
            futures = [
                executor.submit(self._worker, worker, workload, iterations, state, timeout)
                for worker in range(concurrency)
            ]
            # Every worker runs its calls back to back; workers beyond the pool
            # size wait for a free thread, one wave after another.
            waves = math.ceil(concurrency / pool_size)
            budget = timeout * iterations * waves if timeout else None
            _, pending = wait(futures, timeout=budget)
            if pending:
                self._expire(state, iterations, timeout)
                for future in pending:
                    future.cancel()
        finally:
            executor.shutdown(wait=not state.closed, cancel_futures=state.closed)
            with self._stats_lock:
                self._active -= concurrency

        elapsed = self.clock.now() - start
        with state.lock:
            state.closed = True
            durations = list(state.durations)
            errors = list(state.errors)

        result = BatchResult(
            concurrency=concurrency,
            iterations=iterations,
            durations=durations,
            errors=errors,
            elapsed_seconds=elapsed,
            started_at=started_at,
        )
        with self._stats_lock:
            self._total_invocations += result.total_operations
            self._total_failures += result.failed_operations
        logger.debug(
            "Batch %s concurrency=%d ops=%d errors=%d elapsed=%.4fs",
            workload.name,
            concurrency,
            result.total_operations,
            result.failed_operations,
            elapsed,
        )
        return result

    def _worker(
        self,
        worker: int,
        workload: WorkloadSpec,
        iterations: int,
        state: _BatchState,
        timeout: Optional[float],
    ) -> None:
        for iteration in range(iterations):
            if state.closed:
                return
            try:
                begin = self.clock.now()
                if workload.before_each is not None:
                    workload.before_each()
                workload.execute()
                if workload.after_each is not None:
                    workload.after_each()
                took = self.clock.now() - begin
                if timeout and took > timeout:
                    raise InvocationTimeout(timeout)
            except Exception as exc:
                if isinstance(exc, InvocationTimeout):
                    self._count_timeout()
                state.failure(
                    IterationError(
                        worker=worker,
                        iteration=iteration,
                        error=describe_error(exc),
                        error_type=type(exc).__name__,
                        timestamp=self.clock.time(),
                    )
                )
            else:
                state.success(worker, took * 1000)

    def _expire(self, state: _BatchState, iterations: int, timeout: float) -> None:
        """Record every unsettled invocation as timed out and close the batch."""
        now = self.clock.time()
        message = describe_error(InvocationTimeout(timeout))
        with state.lock:
            for worker, done in enumerate(state.completed):
                for iteration in range(done, iterations):
                    state.errors.append(
                        IterationError(
                            worker=worker,
                            iteration=iteration,
                            error=message,
                            error_type="InvocationTimeout",
                            timestamp=now,
                        )
                    )
                    self._count_timeout()
            state.closed = True
        logger.warning("Batch deadline exceeded after %.3fs per call", timeout)

    def _count_timeout(self) -> None:
        with self._stats_lock:
            self._total_timeouts += 1

    def stats(self) -> RunnerStats:
        with self._stats_lock:
            return RunnerStats(
                active_workers=self._active,
                total_batches=self._total_batches,
                total_invocations=self._total_invocations,
                total_failures=self._total_failures,
                total_timeouts=self._total_timeouts,
            )
