"""Subscriber that forwards change events to Redis pub/sub channels."""

from __future__ import annotations

from resources.substrates.redis import RedisSubstrate
from services.action.event_publisher.domain import ChangeEvent


class RedisChannelSubscriber:
    """Publish each event as JSON on ``<channel_prefix>.<topic>``."""

    name = "redis"

    def __init__(self, *, redis: RedisSubstrate, channel_prefix: str) -> None:
        self._redis = redis
        self._channel_prefix = channel_prefix.rstrip(".")

    def channel_for(self, topic: str) -> str:
        return f"{self._channel_prefix}.{topic}"

    def deliver(self, event: ChangeEvent) -> None:
        self._redis.publish_message(
            channel=self.channel_for(event.topic),
            message=event.model_dump_json(),
        )
