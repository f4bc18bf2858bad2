"""Pydantic settings for change-event delivery."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.action.event_publisher.component import SERVICE_COMPONENT_ID


class EventPublisherSettings(BaseModel):
    """Delivery mode, queue bounds and the Redis channel namespace."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    asynchronous: bool = True
    queue_capacity: int = Field(default=10_000, gt=0)
    flush_timeout_seconds: float = Field(default=5.0, gt=0)
    redis_enabled: bool = True
    channel_prefix: str = Field(default="pbx.events", min_length=1)


def resolve_event_publisher_settings(settings: PbxSettings) -> EventPublisherSettings:
    """Resolve settings from ``components.service.event_publisher``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=EventPublisherSettings,
    )
