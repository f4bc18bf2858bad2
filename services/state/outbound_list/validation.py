"""Request validation models for the outbound list service."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CreateDialListMasterRequest(BaseModel):
    """Master create payload; omitted optional fields take template defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    detail: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)


class UpdateDialListMasterRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    detail: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)


class _EntryFields(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    detail: str | None = None
    number_1: str | None = None
    number_2: str | None = None
    number_3: str | None = None
    number_4: str | None = None
    number_5: str | None = None
    number_6: str | None = None
    number_7: str | None = None
    number_8: str | None = None
    email: str | None = None


class CreateDialListEntryRequest(_EntryFields):
    dlma_id: str = Field(min_length=1)
    variables: dict[str, Any] = Field(default_factory=dict)


class UpdateDialListEntryRequest(_EntryFields):
    """Entry update payload; entries cannot move between masters."""

    variables: dict[str, Any] = Field(default_factory=dict)
