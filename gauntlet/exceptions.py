"""
Typed exceptions for gauntlet.

Provides structured error handling with:
- GauntletError: Base exception for all gauntlet errors
- GauntletConfigError: Configuration and validation errors
- WorkloadError: A workload lifecycle phase failed
- UnknownPatternError: Load or stress pattern name is not registered
- ConcurrentRunError: Same workload name is already being benchmarked
- InvocationTimeout: A single workload call exceeded its deadline

All exceptions include structured attributes for programmatic handling.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GauntletError(Exception):
    """Base exception for all gauntlet errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging or result records."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class GauntletConfigError(GauntletError):
    """Configuration or validation error.

    Raised when:
    - Invalid parameter values (empty level list, non-positive iterations)
    - Unsupported export format
    - Incompatible configuration combinations

    Examples:
        GauntletConfigError("Unsupported format", details={"format": "xml"})
    """

    pass


class WorkloadError(GauntletError):
    """A workload lifecycle phase failed.

    Raised when:
    - setup or teardown raises
    - warmup or measurement cannot complete

    Attributes:
        workload: Name of the workload
        phase: Phase that failed (setup, warmup, measurement, stress, teardown)
    """

    def __init__(
        self,
        message: str,
        *,
        workload: Optional[str] = None,
        phase: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if workload:
            details["workload"] = workload
        if phase:
            details["phase"] = phase
        self.workload = workload
        self.phase = phase
        super().__init__(message, code=code, details=details)


class UnknownPatternError(GauntletError):
    """Requested load or stress pattern is not registered.

    Attributes:
        pattern: Name that was requested
        available: Names that are registered
    """

    def __init__(
        self,
        pattern: str,
        available: Optional[List[str]] = None,
        *,
        kind: str = "pattern",
    ) -> None:
        self.pattern = pattern
        self.available = sorted(available or [])
        super().__init__(
            f"Unknown {kind}: {pattern}",
            code="unknown_pattern",
            details={"pattern": pattern, "available": self.available},
        )


class ConcurrentRunError(GauntletError):
    """Another run for the same workload name is still in flight.

    History and baselines are keyed by workload name, so two simultaneous
    runs of one name would interleave their trend data.
    """

    def __init__(self, workload: str) -> None:
        self.workload = workload
        super().__init__(
            f"Benchmark already running for workload '{workload}'",
            code="concurrent_run",
            details={"workload": workload},
        )


class InvocationTimeout(GauntletError):
    """A workload invocation did not settle before its deadline.

    Attributes:
        timeout_seconds: Deadline that was exceeded
    """

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"timeout: invocation exceeded {timeout_seconds:.3f}s",
            code="invocation_timeout",
            details={"timeout_seconds": timeout_seconds},
        )
