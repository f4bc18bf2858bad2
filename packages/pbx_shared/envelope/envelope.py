"""Typed result envelope returned by every public service method."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.errors import ErrorCategory, ErrorDetail

from .meta import EnvelopeMeta


T = TypeVar("T")


class Payload(BaseModel, Generic[T]):
    """Wrapper so an absent payload and a ``None`` value stay distinguishable."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: T


class Envelope(BaseModel, Generic[T]):
    """Metadata, optional payload, and zero or more errors."""

    model_config = ConfigDict(frozen=True)

    metadata: EnvelopeMeta
    payload: Payload[T] | None
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """``True`` when the call carried no errors."""
        return len(self.errors) == 0

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    @property
    def first_category(self) -> ErrorCategory | None:
        """Category of the first error, used for outcome mapping."""
        if not self.errors:
            return None
        return self.errors[0].category
