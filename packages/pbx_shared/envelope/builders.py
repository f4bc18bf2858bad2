"""Builders for success and failure envelopes."""

from __future__ import annotations

from typing import Iterable, TypeVar

from packages.pbx_shared.errors import ErrorDetail

from .envelope import Envelope, Payload
from .meta import EnvelopeMeta


T = TypeVar("T")


def success(*, meta: EnvelopeMeta, payload: T) -> Envelope[T]:
    """Envelope with a payload and no errors."""
    return Envelope[T](metadata=meta, payload=Payload[T](value=payload), errors=[])


def failure(
    *,
    meta: EnvelopeMeta,
    errors: Iterable[ErrorDetail],
    payload: T | None = None,
) -> Envelope[T]:
    """Envelope with at least one error and an optional partial payload."""
    wrapped = None if payload is None else Payload[T](value=payload)
    collected = list(errors)
    if not collected:
        raise ValueError("failure envelopes require at least one error")
    return Envelope[T](metadata=meta, payload=wrapped, errors=collected)
