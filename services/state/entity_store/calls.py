"""Envelope-friendly wrapper around Entity Store calls."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from packages.pbx_shared.errors import ErrorDetail
from packages.pbx_shared.logging import fields, get_logger, log_context
from services.state.entity_store.errors import (
    BackendError,
    NameCollision,
    StoreError,
    store_error_detail,
)

_LOGGER = get_logger(__name__)

T = TypeVar("T")


def call_store(operation: Callable[[], T]) -> tuple[T | None, list[ErrorDetail]]:
    """Run one store call; typed store failures become public error details."""
    try:
        return operation(), []
    except StoreError as exc:
        with log_context({fields.FAMILY: exc.family}):
            if isinstance(exc, (BackendError, NameCollision)):
                _LOGGER.warning("Entity store call failed: %s", exc)
            else:
                _LOGGER.info("Entity store call refused: %s", exc)
        return None, [store_error_detail(exc)]
