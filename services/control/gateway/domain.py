"""Inbound request and response contracts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.errors import ErrorCategory
from services.state.entity_store.domain import Family


class Operation(str, Enum):
    CREATE = "create"
    GET = "get"
    LIST = "list"
    UPDATE = "update"
    DELETE = "delete"


class Outcome(str, Enum):
    """What a transport adapter turns into a status code."""

    OK = "ok"
    BAD_INPUT = "bad_input"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    SERVER_ERROR = "server_error"

    @classmethod
    def for_category(cls, category: ErrorCategory | None) -> Outcome:
        return _CATEGORY_OUTCOMES.get(category, cls.SERVER_ERROR)


_CATEGORY_OUTCOMES = {
    ErrorCategory.VALIDATION: Outcome.BAD_INPUT,
    ErrorCategory.NOT_FOUND: Outcome.NOT_FOUND,
    ErrorCategory.CONFLICT: Outcome.CONFLICT,
    ErrorCategory.POLICY: Outcome.FORBIDDEN,
}


class Identity(BaseModel):
    """Authenticated caller and the permissions it holds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    principal: str = Field(min_length=1)
    permissions: frozenset[str] = frozenset()

    def has(self, permission: str) -> bool:
        return permission in self.permissions


class InboundRequest(BaseModel):
    """One parsed call from the transport layer.

    ``id`` names the entity for get/update/delete and the parent for ``list``
    on child families (entries, steps, permissions, contacts).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    operation: Operation
    family: Family
    id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    force: bool = False
    include_retired: bool = False
    expected_updated_at: datetime | None = None


class PublicError(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    message: str
    field: str | None = None


class GatewayResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: Outcome
    entity: Any = None
    errors: list[PublicError] = Field(default_factory=list)
