"""Request validation helpers shared by lifecycle services."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from packages.pbx_shared.envelope import EnvelopeMeta, validate_meta
from packages.pbx_shared.errors import ErrorDetail, codes, validation_error

PROTECTED_FIELDS = frozenset(
    {"id", "liveness", "created_at", "updated_at", "retired_at"}
)

TRequest = TypeVar("TRequest", bound=BaseModel)


def strip_protected_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-copy caller input without identity, liveness or timestamp keys."""
    return {
        key: deepcopy(value)
        for key, value in payload.items()
        if key not in PROTECTED_FIELDS
    }


def validate_request(
    *,
    meta: EnvelopeMeta,
    model: type[TRequest],
    payload: Mapping[str, Any],
) -> tuple[TRequest | None, list[ErrorDetail]]:
    """Validate envelope metadata and one request payload.

    Returns the parsed request or the list of validation errors; never both.
    """
    try:
        validate_meta(meta)
    except ValueError as exc:
        return None, [
            validation_error(str(exc), code=codes.MISSING_REQUIRED_FIELD)
        ]

    try:
        return model.model_validate(payload), []
    except ValidationError as exc:
        return None, [_pydantic_error_detail(item) for item in exc.errors()]


def _pydantic_error_detail(item: Mapping[str, Any]) -> ErrorDetail:
    location = ".".join(str(part) for part in item.get("loc", ()))
    message = str(item.get("msg", "invalid value"))
    kind = str(item.get("type", ""))
    code = (
        codes.MISSING_REQUIRED_FIELD if kind == "missing" else codes.INVALID_ARGUMENT
    )
    text = f"{location}: {message}" if location else message
    return validation_error(text, code=code, metadata={"field": location})
