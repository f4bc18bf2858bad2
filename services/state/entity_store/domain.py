"""Typed entity records and store result contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Family(str, Enum):
    """Named entity classes persisted by the store."""

    DIAL_LIST_MASTER = "dial_list_master"
    DIAL_LIST_ENTRY = "dial_list_entry"
    DIALPLAN_MASTER = "dialplan_master"
    DIALPLAN_STEP = "dialplan_step"
    USER = "user"
    PERMISSION = "permission"
    CONTACT = "contact"
    TRUNK = "trunk"


class Liveness(str, Enum):
    """``ACTIVE -> RETIRED``; retired is terminal."""

    ACTIVE = "active"
    RETIRED = "retired"


class LivenessFilter(str, Enum):
    """Which liveness states a read includes."""

    ACTIVE = "active"
    RETIRED = "retired"
    ANY = "any"


ContactType = Literal["pjsip_endpoint", "sip_peer"]


class EntityBase(BaseModel):
    """Fields every family shares; all server-assigned."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    liveness: Liveness
    created_at: datetime
    updated_at: datetime | None = None
    retired_at: datetime | None = None

    @property
    def version_stamp(self) -> datetime:
        """Value compared by compare-and-swap updates."""
        return self.updated_at or self.created_at


class DialListMaster(EntityBase):
    name: str | None = None
    detail: str | None = None
    dl_table: str = ""
    variables: dict[str, Any] = Field(default_factory=dict)


class DialListEntry(EntityBase):
    dlma_id: str
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
    variables: dict[str, Any] = Field(default_factory=dict)


class DialplanMaster(EntityBase):
    name: str | None = None
    detail: str | None = None


class DialplanStep(EntityBase):
    dpma_id: str
    sequence: int = Field(gt=0)
    name: str | None = None
    detail: str | None = None
    command: str = Field(min_length=1)


class User(EntityBase):
    username: str = Field(min_length=1)
    password: str
    name: str = ""
    context: str = ""


class Permission(EntityBase):
    user_id: str
    permission: str = Field(min_length=1)


class Contact(EntityBase):
    user_id: str
    type: ContactType
    target: str = Field(min_length=1)
    name: str | None = None
    detail: str | None = None


class Trunk(EntityBase):
    name: str = Field(min_length=1)
    server_uri: str
    client_uri: str
    username: str
    password: str
    contact: str | None = None
    context: str
    hostname: str | None = None
    status: str = "Unregistered"


@dataclass(frozen=True)
class CreateResult:
    """Row returned by a keyed create; ``created`` is false on a replay."""

    entity: EntityBase
    created: bool


@dataclass(frozen=True)
class CascadeResult:
    """Parent and children retired by one cascading retire."""

    parent: EntityBase
    children: tuple[EntityBase, ...]


@dataclass(frozen=True)
class ViewInfo:
    """One discovered parent-scoped view."""

    view_name: str
    parent_id: str
