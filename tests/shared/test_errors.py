"""Tests for error factories and exception normalization."""

from __future__ import annotations

import pytest

from packages.pbx_shared.errors import (
    ErrorCategory,
    codes,
    conflict_error,
    dependency_error,
    exception_to_error,
    internal_error,
    not_found_error,
    policy_error,
    validation_error,
)


@pytest.mark.parametrize(
    ("factory", "category", "code"),
    [
        (validation_error, ErrorCategory.VALIDATION, codes.VALIDATION_ERROR),
        (not_found_error, ErrorCategory.NOT_FOUND, codes.NOT_FOUND),
        (conflict_error, ErrorCategory.CONFLICT, codes.CONFLICT),
        (policy_error, ErrorCategory.POLICY, codes.POLICY_VIOLATION),
        (internal_error, ErrorCategory.INTERNAL, codes.INTERNAL_ERROR),
    ],
)
def test_factories_set_category_and_default_code(factory, category, code) -> None:
    error = factory("boom")

    assert error.category == category
    assert error.code == code
    assert error.retryable is False
    assert error.metadata == {}


def test_dependency_errors_are_retryable_unless_told_otherwise() -> None:
    assert dependency_error("down").retryable is True
    assert dependency_error("rejected", retryable=False).retryable is False


def test_metadata_is_copied() -> None:
    source = {"field": "name"}
    error = validation_error("bad", metadata=source)
    source["field"] = "other"

    assert error.metadata == {"field": "name"}


@pytest.mark.parametrize(
    ("exc", "category", "code"),
    [
        (ValueError("bad"), ErrorCategory.VALIDATION, codes.INVALID_ARGUMENT),
        (KeyError("k"), ErrorCategory.NOT_FOUND, codes.RESOURCE_NOT_FOUND),
        (PermissionError("no"), ErrorCategory.POLICY, codes.PERMISSION_DENIED),
        (TimeoutError(), ErrorCategory.DEPENDENCY, codes.DEPENDENCY_TIMEOUT),
        (ConnectionRefusedError(), ErrorCategory.DEPENDENCY, codes.DEPENDENCY_UNAVAILABLE),
        (RuntimeError("secret detail"), ErrorCategory.INTERNAL, codes.UNEXPECTED_EXCEPTION),
    ],
)
def test_exception_to_error_maps_builtin_exceptions(exc, category, code) -> None:
    error = exception_to_error(exc)

    assert error.category == category
    assert error.code == code
    assert error.metadata["exception_type"] == type(exc).__name__


def test_unexpected_exception_message_is_generic() -> None:
    error = exception_to_error(RuntimeError("password=hunter2"))

    assert "hunter2" not in error.message
