"""Request validation models for the Event Publisher."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from services.action.event_publisher.domain import MutationKind


class PublishRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    topic: str = Field(min_length=1)
    category: str = Field(min_length=1)
    mutation_kind: MutationKind
    entity_id: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
