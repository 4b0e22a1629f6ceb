"""
Optional Logfire tracing for benchmark runs.

Spans wrap suites, benchmarks, load tests, stress tests and chaos
experiments; log() emits one structured event per finished run. Nothing is
sent unless GAUNTLET_LOGFIRE is truthy and logfire imports. Telemetry
failures never reach the run being measured.

Environment:
    GAUNTLET_LOGFIRE: enable logfire spans and events.
    GAUNTLET_LOGFIRE_CONSOLE: force logfire console output on or off.
    GAUNTLET_TELEMETRY_STDERR: echo events to stderr.
"""
from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}

_state = {"module": None, "loaded": False, "configured": False}


def _flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUTHY


def _logfire() -> Any:
    """Import logfire once; None when it is unavailable."""
    if not _state["loaded"]:
        _state["loaded"] = True
        try:
            import logfire
        except Exception as exc:
            logger.debug("logfire unavailable: %s", exc)
        else:
            _state["module"] = logfire
    return _state["module"]


def enabled() -> bool:
    return bool(_flag("GAUNTLET_LOGFIRE")) and _logfire() is not None


def configure() -> bool:
    """Configure logfire on first use. Returns False if telemetry is off."""
    if not enabled():
        return False
    if _state["configured"]:
        return True
    console = _flag("GAUNTLET_LOGFIRE_CONSOLE")
    try:
        _logfire().configure(console=None if console in (None, True) else False)
    except Exception as exc:
        logger.warning("logfire configuration failed: %s", exc)
        return False
    _state["configured"] = True
    return True


@contextmanager
def span(name: str, **attrs: Any) -> Iterator[None]:
    """Trace the enclosed block; a no-op when telemetry is off."""
    if not configure():
        yield
        return
    try:
        ctx = _logfire().span(name, **attrs)
        ctx.__enter__()
    except Exception as exc:
        logger.debug("Could not open span %s: %s", name, exc)
        yield
        return
    exc_info = (None, None, None)
    try:
        yield
    except BaseException as exc:
        exc_info = (type(exc), exc, exc.__traceback__)
        raise
    finally:
        try:
            ctx.__exit__(*exc_info)
        except Exception as exc:
            logger.debug("Could not close span %s: %s", name, exc)


def log(level: str, message: str, **attrs: Any) -> None:
    """Emit a structured event at level (info, warn, error...)."""
    if configure():
        module = _logfire()
        emit = getattr(module, level, None) or module.info
        try:
            emit(message, **attrs)
        except Exception as exc:
            logger.debug("logfire event %s dropped: %s", message, exc)
    if _flag("GAUNTLET_TELEMETRY_STDERR"):
        print(f"[telemetry] {message} {attrs}", file=sys.stderr)
