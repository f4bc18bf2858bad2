"""Request validation models for the trunk service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CreateTrunkRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    server_uri: str = Field(min_length=1)
    client_uri: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    contact: str | None = None
    context: str = Field(min_length=1)
    hostname: str | None = None


class UpdateTrunkRequest(BaseModel):
    """The name identifies the trunk on the PBX and cannot change."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    server_uri: str | None = Field(default=None, min_length=1)
    client_uri: str | None = Field(default=None, min_length=1)
    username: str | None = Field(default=None, min_length=1)
    password: str | None = Field(default=None, min_length=1)
    contact: str | None = None
    context: str | None = Field(default=None, min_length=1)
    hostname: str | None = None
