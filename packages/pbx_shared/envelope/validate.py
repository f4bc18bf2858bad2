"""Envelope metadata validation."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .meta import EnvelopeKind, EnvelopeMeta

_REQUIRED_FIELDS = frozenset(
    {"envelope_id", "trace_id", "timestamp", "source", "principal"}
)


class _MetaShape(BaseModel):
    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)

    @model_validator(mode="after")
    def _require_kind(self) -> "_MetaShape":
        if self.kind == EnvelopeKind.UNSPECIFIED:
            raise ValueError("metadata.kind must be specified")
        return self


def validate_meta(meta: EnvelopeMeta) -> None:
    """Raise ``ValueError`` with a stable message when metadata is incomplete."""
    if not isinstance(meta, EnvelopeMeta):
        raise ValueError("metadata is required")
    try:
        _MetaShape.model_validate(asdict(meta))
    except ValidationError as exc:
        raise ValueError(_describe(exc)) from None


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = first.get("loc", ())
    if location and str(location[0]) in _REQUIRED_FIELDS:
        return f"metadata.{location[0]} is required"
    if location and str(location[0]) == "kind":
        return "metadata.kind must be specified"
    return str(first.get("msg", "invalid metadata"))
