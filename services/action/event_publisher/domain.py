"""Change-event contracts delivered to subscribers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """One entity mutation as seen by subscribers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_id: str
    topic: str
    category: str
    mutation_kind: MutationKind
    entity_id: str
    occurred_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)


class PublishReceipt(BaseModel):
    """Delivery outcome for one event.

    ``queued`` receipts come from the background publisher; their delivery
    counts are unknown at return time and stay zero.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_id: str
    queued: bool = False
    delivered: int = 0
    failed: tuple[str, ...] = ()
