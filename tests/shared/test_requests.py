"""Tests for shared request validation helpers."""

from __future__ import annotations

from dataclasses import replace

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.envelope import EnvelopeKind, new_meta
from packages.pbx_shared.errors import ErrorCategory, codes
from packages.pbx_shared.requests import strip_protected_fields, validate_request


class _StepRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dpma_id: str
    sequence: int = Field(ge=0)
    command: str = ""


def _meta():
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


def test_protected_fields_are_dropped_and_values_copied() -> None:
    nested = {"tags": ["a"]}
    payload = {
        "id": "forged",
        "liveness": "retired",
        "created_at": "x",
        "updated_at": "y",
        "retired_at": "z",
        "name": "ivr",
        "extra": nested,
    }

    cleaned = strip_protected_fields(payload)
    nested["tags"].append("b")

    assert cleaned == {"name": "ivr", "extra": {"tags": ["a"]}}


def test_valid_payload_parses() -> None:
    request, errors = validate_request(
        meta=_meta(),
        model=_StepRequest,
        payload={"dpma_id": "m", "sequence": 1, "command": "Answer"},
    )

    assert errors == []
    assert request == _StepRequest(dpma_id="m", sequence=1, command="Answer")


def test_missing_and_invalid_fields_are_reported_separately() -> None:
    request, errors = validate_request(
        meta=_meta(), model=_StepRequest, payload={"sequence": -1}
    )

    assert request is None
    by_field = {error.metadata["field"]: error for error in errors}
    assert by_field["dpma_id"].code == codes.MISSING_REQUIRED_FIELD
    assert by_field["sequence"].code == codes.INVALID_ARGUMENT
    assert {error.category for error in errors} == {ErrorCategory.VALIDATION}


def test_incomplete_metadata_fails_before_payload_validation() -> None:
    request, errors = validate_request(
        meta=replace(_meta(), principal=""), model=_StepRequest, payload={}
    )

    assert request is None
    assert [error.message for error in errors] == ["metadata.principal is required"]
