"""Redis substrate used for out-of-process change-event delivery."""

from resources.substrates.redis.component import RESOURCE_COMPONENT_ID
from resources.substrates.redis.config import RedisSettings, resolve_redis_settings
from resources.substrates.redis.redis_substrate import RedisClientSubstrate
from resources.substrates.redis.substrate import RedisHealthStatus, RedisSubstrate

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "RedisClientSubstrate",
    "RedisHealthStatus",
    "RedisSettings",
    "RedisSubstrate",
    "resolve_redis_settings",
]
