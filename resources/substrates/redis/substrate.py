"""Substrate contract for Redis-backed pub/sub delivery."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class RedisHealthStatus(BaseModel):
    """Redis substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class RedisSubstrate(Protocol):
    """Operations the event publisher needs from Redis."""

    def publish_message(self, *, channel: str, message: str) -> int:
        """Publish one message and return the number of receiving clients."""

    def ping(self) -> bool:
        """Return liveness from Redis ``PING``."""

    def health(self) -> RedisHealthStatus:
        """Probe readiness with a short timeout."""
