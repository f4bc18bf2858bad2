"""Request validation models for the dialplan service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_text(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


class CreateDialplanMasterRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    detail: str | None = None


class UpdateDialplanMasterRequest(CreateDialplanMasterRequest):
    pass


class CreateDialplanStepRequest(BaseModel):
    """One step; ``sequence`` orders execution within the master."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dpma_id: str = Field(min_length=1)
    sequence: int = Field(gt=0)
    name: str | None = None
    detail: str | None = None
    command: str = Field(min_length=1)

    @field_validator("command", mode="before")
    @classmethod
    def _strip_command(cls, value: object) -> object:
        return _strip_text(value)


class UpdateDialplanStepRequest(BaseModel):
    """Step update; steps stay under the master they were created in."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sequence: int | None = Field(default=None, gt=0)
    name: str | None = None
    detail: str | None = None
    command: str | None = Field(default=None, min_length=1)

    @field_validator("command", mode="before")
    @classmethod
    def _strip_command(cls, value: object) -> object:
        return _strip_text(value)
