"""Envelope-friendly wrapper around PBX provisioning calls."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from packages.pbx_shared.errors import ErrorDetail, codes, dependency_error
from packages.pbx_shared.logging import get_logger
from resources.adapters.pbx.adapter import (
    PbxAdapterError,
    PbxAdapterRejectedError,
)

_LOGGER = get_logger(__name__)

T = TypeVar("T")


def call_pbx(
    action: str, operation: Callable[[], T]
) -> tuple[T | None, list[ErrorDetail]]:
    """Run one PBX call; adapter failures become dependency errors.

    A rejection is not retryable; an unreachable PBX is.
    """
    try:
        return operation(), []
    except PbxAdapterError as exc:
        rejected = isinstance(exc, PbxAdapterRejectedError)
        _LOGGER.warning("PBX %s failed: %s", action, exc)
        message = f"pbx {'rejected' if rejected else 'unavailable for'} {action}"
        return None, [
            dependency_error(
                message,
                code=codes.EXTERNAL_CAPABILITY_FAILURE,
                retryable=not rejected,
                metadata={"action": action},
            )
        ]
