"""Settings model for the Redis substrate used by event delivery."""

from __future__ import annotations

from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from resources.substrates.redis.component import RESOURCE_COMPONENT_ID


class RedisSettings(BaseModel):
    """Redis connectivity for change-event pub/sub.

    ``dsn`` wins when set; otherwise ``url`` is assembled from the split
    host/port/db/password values.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    dsn: str = ""
    host: str = "redis"
    port: int = Field(default=6379, gt=0)
    db: int = Field(default=0, ge=0)
    password: str = ""
    tls: bool = False
    client_name: str = "pbx-control"
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    socket_timeout_seconds: float = Field(default=5.0, gt=0)
    health_timeout_seconds: float = Field(default=1.0, gt=0)
    max_connections: int = Field(default=20, gt=0)

    @model_validator(mode="after")
    def _require_location(self) -> "RedisSettings":
        if not self.dsn.strip() and not self.host.strip():
            raise ValueError("host is required when dsn is unset")
        return self

    @property
    def url(self) -> str:
        if self.dsn.strip():
            return self.dsn.strip()
        scheme = "rediss" if self.tls else "redis"
        auth = f":{quote_plus(self.password)}@" if self.password else ""
        return f"{scheme}://{auth}{self.host.strip()}:{self.port}/{self.db}"


def resolve_redis_settings(settings: PbxSettings) -> RedisSettings:
    """Resolve settings from ``components.substrate.redis``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=RedisSettings,
    )
