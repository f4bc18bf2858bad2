"""Fallback mapping from arbitrary Python exceptions to ``ErrorDetail``."""

from __future__ import annotations

from . import codes
from .factories import (
    dependency_error,
    internal_error,
    not_found_error,
    policy_error,
    validation_error,
)
from .types import ErrorDetail


def exception_to_error(exc: Exception) -> ErrorDetail:
    """Map one exception onto the shared taxonomy.

    Components with typed exceptions (entity store, PBX adapter) normalize
    those first; this is the last resort for everything else.
    """
    metadata = {"exception_type": type(exc).__name__}

    if isinstance(exc, (ValueError, TypeError)):
        return validation_error(str(exc), code=codes.INVALID_ARGUMENT, metadata=metadata)
    if isinstance(exc, LookupError):
        return not_found_error(
            str(exc) or "resource not found",
            code=codes.RESOURCE_NOT_FOUND,
            metadata=metadata,
        )
    if isinstance(exc, PermissionError):
        return policy_error(str(exc), code=codes.PERMISSION_DENIED, metadata=metadata)
    if isinstance(exc, TimeoutError):
        return dependency_error(
            str(exc) or "dependency timeout",
            code=codes.DEPENDENCY_TIMEOUT,
            metadata=metadata,
        )
    if isinstance(exc, ConnectionError):
        return dependency_error(
            str(exc) or "dependency unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )
    return internal_error(
        "unexpected exception",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
