"""
Follow-Through Tracer

Step-by-step request tracing for following a message from the route,
through the access check, into the communication log and back out.
Silent unless FOLLOW_THROUGH=true.
"""
import inspect
import functools
import logging
from typing import Any, Callable
from datetime import datetime

from .config import settings

# Dedicated logger so traces can be routed apart from normal logs
tracer = logging.getLogger("followthrough")


def _preview(data: Any, max_len: int = 60) -> str:
    """Short single-line preview of a value."""
    if data is None:
        return "<None>"
    text = str(data).replace("\n", " ")
    if len(text) > max_len:
        return f"{text[:max_len]}..."
    return text


def _emit(icon: str, module: str, label: str, detail: str = "") -> None:
    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"[{stamp}] {icon} [{module}] {label}"
    if detail:
        line = f"{line}: {detail}"
    tracer.info(line)


def trace_input(module: str, name: str, value: Any):
    """Trace a value entering a module."""
    if settings.follow_through:
        _emit("→", module, f"INPUT {name}", _preview(value))


def trace_output(module: str, name: str, value: Any):
    """Trace a value leaving a module."""
    if settings.follow_through:
        _emit("←", module, f"OUTPUT {name}", _preview(value))


def trace_step(module: str, description: str):
    if settings.follow_through:
        _emit("•", module, "STEP", description)


def trace_section(title: str):
    """Divider between request phases."""
    if not settings.follow_through:
        return
    bar = "─" * 40
    tracer.info(bar)
    tracer.info(f"  {title.upper()}")
    tracer.info(bar)


def traced(module: str):
    """
    Trace entry into and exit from a coroutine function.

    Usage:
        @traced("communication.log")
        async def append(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@traced expects a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.follow_through:
                return await func(*args, **kwargs)

            _emit("▶", module, "CALL", f"{func.__name__}()")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _emit("◀", module, "RESULT", f"{func.__name__}() ✗ FAILED => {_preview(e)}")
                raise
            _emit("◀", module, "RESULT", f"{func.__name__}() ✓ => {_preview(result)}")
            return result

        return wrapper

    return decorator


def setup_follow_through_logging():
    """Attach a bare stream handler to the tracer when tracing is on."""
    if not settings.follow_through:
        return
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("%(message)s"))

    tracer.addHandler(handler)
    tracer.setLevel(logging.INFO)
    tracer.propagate = False

    tracer.info("=" * 50)
    tracer.info("  FOLLOW-THROUGH MODE ENABLED")
    tracer.info("=" * 50)
