"""Redis client construction."""

from __future__ import annotations

from redis import Redis

from resources.substrates.redis.config import RedisSettings


def create_redis_client(
    settings: RedisSettings,
    *,
    timeout_seconds: float | None = None,
) -> Redis:
    """Client with the configured timeouts, or one uniform override for probes."""
    if timeout_seconds is None:
        connect, socket = settings.connect_timeout_seconds, settings.socket_timeout_seconds
    else:
        connect = socket = timeout_seconds
    return Redis.from_url(
        settings.url,
        socket_connect_timeout=connect,
        socket_timeout=socket,
        max_connections=settings.max_connections,
        client_name=settings.client_name,
        decode_responses=True,
    )
