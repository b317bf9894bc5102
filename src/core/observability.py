"""Observability: Langfuse tracing plus an injectable event sink.

When LANGFUSE_PUBLIC_KEY is not set, provides a no-op `observe` decorator
so the rest of the codebase doesn't need conditional imports.

Pure heuristics (classifier, router, text extractor) report through an
``ObservabilitySink`` passed in by the caller instead of a module logger, so
they stay free of process-wide logging state.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Protocol

from src.core.config import settings

logger = logging.getLogger(__name__)

# Suppress Langfuse SDK's repeated WARNING about missing keys
logging.getLogger("langfuse").setLevel(logging.ERROR)


if settings.langfuse_public_key:
    from langfuse import observe
else:

    def observe(name: str = "", **kwargs) -> Callable:  # type: ignore[misc]
        """No-op decorator when Langfuse is not configured."""

        def decorator(fn: Callable) -> Callable:
            if _is_coroutine(fn):

                @wraps(fn)
                async def async_wrapper(*args, **kw):
                    return await fn(*args, **kw)

                return async_wrapper
            else:

                @wraps(fn)
                def sync_wrapper(*args, **kw):
                    return fn(*args, **kw)

                return sync_wrapper

        return decorator


def _is_coroutine(fn: Callable) -> bool:
    """Check if a function is a coroutine function."""
    import inspect

    return inspect.iscoroutinefunction(fn)


class ObservabilitySink(Protocol):
    """Receives structured diagnostic events from pipeline components."""

    def event(self, name: str, **fields: Any) -> None: ...


class NullSink:
    """Discards every event."""

    def event(self, name: str, **fields: Any) -> None:
        pass


class LoggingSink:
    """Forwards events to a stdlib logger as ``name key=value ...`` lines."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def event(self, name: str, **fields: Any) -> None:
        if fields:
            parts = ", ".join(f"{k}={v}" for k, v in fields.items())
            self.log.log(self.level, "%s [%s]", name, parts)
        else:
            self.log.log(self.level, "%s", name)


@dataclass
class RecordingSink:
    """Keeps events in memory, used by tests and debugging tools."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def event(self, name: str, **fields: Any) -> None:
        self.events.append((name, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def last(self, name: str) -> dict[str, Any] | None:
        for event_name, fields in reversed(self.events):
            if event_name == name:
                return fields
        return None


NULL_SINK = NullSink()


__all__ = [
    "LoggingSink",
    "NULL_SINK",
    "NullSink",
    "ObservabilitySink",
    "RecordingSink",
    "observe",
]
