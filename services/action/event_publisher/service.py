"""Authoritative in-process Python API for the Event Publisher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from resources.substrates.redis import RedisSubstrate
from services.action.event_publisher.domain import MutationKind, PublishReceipt
from services.action.event_publisher.interfaces import Subscriber


class EventPublisher(ABC):
    """Public API for announcing entity mutations."""

    @abstractmethod
    def publish(
        self,
        *,
        meta: EnvelopeMeta,
        topic: str,
        category: str,
        mutation_kind: MutationKind,
        entity_id: str,
        payload: Mapping[str, Any],
    ) -> Envelope[PublishReceipt]:
        """Deliver one change event to every current subscriber."""

    @abstractmethod
    def subscribe(self, subscriber: Subscriber) -> str:
        """Register a subscriber and return its subscription id."""

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription; ``False`` when the id is unknown."""

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending deliveries; synchronous publishers have none."""
        del timeout
        return True

    def close(self) -> None:
        """Release delivery resources."""


def build_event_publisher(
    *,
    settings: PbxSettings,
    redis: RedisSubstrate | None = None,
) -> EventPublisher:
    """Build the configured publisher, wiring the Redis channel subscriber."""
    from resources.substrates.redis import (
        RedisClientSubstrate,
        resolve_redis_settings,
    )
    from services.action.event_publisher.config import (
        resolve_event_publisher_settings,
    )
    from services.action.event_publisher.implementation import (
        DefaultEventPublisher,
        QueuedEventPublisher,
    )
    from services.action.event_publisher.redis_subscriber import (
        RedisChannelSubscriber,
    )

    publisher_settings = resolve_event_publisher_settings(settings)
    publisher = DefaultEventPublisher()
    if publisher_settings.redis_enabled:
        publisher.subscribe(
            RedisChannelSubscriber(
                redis=redis
                or RedisClientSubstrate(settings=resolve_redis_settings(settings)),
                channel_prefix=publisher_settings.channel_prefix,
            )
        )
    if not publisher_settings.asynchronous:
        return publisher
    return QueuedEventPublisher(
        inner=publisher,
        capacity=publisher_settings.queue_capacity,
    )
