"""Constructors for ``ErrorDetail`` values, one per category."""

from __future__ import annotations

from typing import Mapping

from . import codes
from .types import ErrorCategory, ErrorDetail


def validation_error(
    message: str,
    *,
    code: str = codes.VALIDATION_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Caller sent malformed or incomplete input."""
    return _detail(message, code, ErrorCategory.VALIDATION, False, metadata)


def not_found_error(
    message: str,
    *,
    code: str = codes.NOT_FOUND,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Referenced entity does not exist or is not live."""
    return _detail(message, code, ErrorCategory.NOT_FOUND, False, metadata)


def conflict_error(
    message: str,
    *,
    code: str = codes.CONFLICT,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Request collides with a uniqueness or referential invariant."""
    return _detail(message, code, ErrorCategory.CONFLICT, False, metadata)


def policy_error(
    message: str,
    *,
    code: str = codes.POLICY_VIOLATION,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Caller identity is not allowed to perform the request."""
    return _detail(message, code, ErrorCategory.POLICY, False, metadata)


def dependency_error(
    message: str,
    *,
    code: str = codes.DEPENDENCY_FAILURE,
    retryable: bool = True,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Storage, delivery or PBX capability failed underneath the request."""
    return _detail(message, code, ErrorCategory.DEPENDENCY, retryable, metadata)


def internal_error(
    message: str,
    *,
    code: str = codes.INTERNAL_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Unexpected failure inside this process."""
    return _detail(message, code, ErrorCategory.INTERNAL, False, metadata)


def _detail(
    message: str,
    code: str,
    category: ErrorCategory,
    retryable: bool,
    metadata: Mapping[str, str] | None,
) -> ErrorDetail:
    return ErrorDetail(
        code=code,
        message=message,
        category=category,
        retryable=retryable,
        metadata={} if metadata is None else dict(metadata),
    )
