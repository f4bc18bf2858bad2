"""redis-py backed substrate implementation."""

from __future__ import annotations

from redis.exceptions import RedisError

from resources.substrates.redis.client import create_redis_client
from resources.substrates.redis.config import RedisSettings
from resources.substrates.redis.substrate import RedisHealthStatus, RedisSubstrate


class RedisClientSubstrate(RedisSubstrate):
    """Concrete Redis substrate; ``RedisError`` propagates to callers."""

    def __init__(self, *, settings: RedisSettings) -> None:
        self._client = create_redis_client(settings)
        self._health_client = create_redis_client(
            settings, timeout_seconds=settings.health_timeout_seconds
        )

    def publish_message(self, *, channel: str, message: str) -> int:
        return int(self._client.publish(channel, message))

    def ping(self) -> bool:
        return bool(self._health_client.ping())

    def health(self) -> RedisHealthStatus:
        try:
            ready = self.ping()
        except (RedisError, OSError) as exc:
            return RedisHealthStatus(
                ready=False,
                detail=f"redis ping failed: {type(exc).__name__}",
            )
        return RedisHealthStatus(
            ready=ready,
            detail="ok" if ready else "redis ping returned false",
        )
