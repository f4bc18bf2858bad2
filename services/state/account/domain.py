"""Manager-facing account contracts.

Stored ``User`` rows carry the password; everything this service returns or
publishes uses ``UserInfo`` instead, which never does.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from services.state.entity_store.domain import Contact, Liveness, Permission, User


class UserInfo(BaseModel):
    """User record joined with its live permissions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    username: str
    name: str
    context: str
    permissions: list[str]
    liveness: Liveness
    created_at: datetime
    updated_at: datetime | None = None
    retired_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User, permissions: list[Permission]) -> UserInfo:
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            context=user.context,
            permissions=[item.permission for item in permissions],
            liveness=user.liveness,
            created_at=user.created_at,
            updated_at=user.updated_at,
            retired_at=user.retired_at,
        )


class UserRetirement(BaseModel):
    """A retired user and the rows retired with it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user: UserInfo
    permissions: list[Permission]
    contacts: list[Contact]


__all__ = ["Contact", "Permission", "User", "UserInfo", "UserRetirement"]
