"""Request validation models for the account service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.state.entity_store.domain import ContactType


def _permission_names(value: object) -> object:
    """Accept ``["admin"]`` as well as ``[{"permission": "admin"}]``."""
    if not isinstance(value, list):
        return value
    names: list[object] = []
    for item in value:
        if isinstance(item, dict) and set(item) == {"permission"}:
            names.append(item["permission"])
        else:
            names.append(item)
    return names


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(value.strip() for value in values))


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    name: str = ""
    context: str = Field(min_length=1)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("permissions", mode="before")
    @classmethod
    def _normalize_permissions(cls, value: object) -> object:
        return _permission_names(value)

    @field_validator("permissions")
    @classmethod
    def _unique_permissions(cls, value: list[str]) -> list[str]:
        names = _dedupe(value)
        if any(not name for name in names):
            raise ValueError("permission names must not be empty")
        return names


class UpdateUserRequest(BaseModel):
    """Username is fixed at creation; ``permissions`` replaces the whole set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    password: str | None = Field(default=None, min_length=1)
    context: str | None = Field(default=None, min_length=1)
    permissions: list[str] | None = None

    @field_validator("permissions", mode="before")
    @classmethod
    def _normalize_permissions(cls, value: object) -> object:
        return _permission_names(value)

    @field_validator("permissions")
    @classmethod
    def _unique_permissions(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        names = _dedupe(value)
        if any(not name for name in names):
            raise ValueError("permission names must not be empty")
        return names


class PermissionRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str = Field(min_length=1)
    permission: str = Field(min_length=1)


class CreateContactRequest(BaseModel):
    """Contact pointing a user at an endpoint the PBX already knows."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str = Field(min_length=1)
    type: ContactType
    target: str = Field(min_length=1)
    name: str | None = None
    detail: str | None = None
