"""``contextvars``-backed structured logging context.

Values bound here are attached to every record emitted on the same thread or
task, so per-request fields (trace id, family, entity id) do not have to be
repeated at each call site.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_LOG_CONTEXT: ContextVar[dict[str, str]] = ContextVar("pbx_log_context", default={})


def get_context() -> dict[str, str]:
    """Return a copy of the bound context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Bind stringified values; ``None`` values are skipped."""
    if not values:
        return
    current = _LOG_CONTEXT.get().copy()
    for key, value in values.items():
        if value is None:
            continue
        current[str(key)] = str(value)
    _LOG_CONTEXT.set(current)


def clear_context(*keys: str) -> None:
    """Drop the given keys, or everything when called without keys."""
    if not keys:
        _LOG_CONTEXT.set({})
        return
    current = _LOG_CONTEXT.get().copy()
    for key in keys:
        current.pop(key, None)
    _LOG_CONTEXT.set(current)


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind ``values`` for the duration of the block only."""
    token = _LOG_CONTEXT.set(_LOG_CONTEXT.get().copy())
    try:
        bind_context(**{str(key): value for key, value in values.items()})
        yield
    finally:
        _LOG_CONTEXT.reset(token)
