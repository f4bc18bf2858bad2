"""Unit tests for the Redis client substrate wrapper."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

import resources.substrates.redis.redis_substrate as redis_substrate_module
from resources.substrates.redis.config import RedisSettings
from resources.substrates.redis.redis_substrate import RedisClientSubstrate


@dataclass
class _FakeRedisClient:
    """In-memory fake implementing the Redis calls the substrate uses."""

    published: list[tuple[str, str]] = field(default_factory=list)
    subscribers: int = 1
    ping_error: Exception | None = None

    def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return self.subscribers

    def ping(self) -> bool:
        if self.ping_error is not None:
            raise self.ping_error
        return True


def _substrate(
    monkeypatch: pytest.MonkeyPatch, fake_client: _FakeRedisClient
) -> RedisClientSubstrate:
    monkeypatch.setattr(
        redis_substrate_module,
        "create_redis_client",
        lambda settings, timeout_seconds=None: fake_client,
    )
    return RedisClientSubstrate(settings=RedisSettings())


def test_publish_message_returns_receiver_count(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Publish should pass channel and message through unchanged."""
    fake_client = _FakeRedisClient(subscribers=3)
    substrate = _substrate(monkeypatch, fake_client)

    receivers = substrate.publish_message(channel="pbx.outbound", message="{}")

    assert receivers == 3
    assert fake_client.published == [("pbx.outbound", "{}")]


def test_health_reports_ready_when_ping_succeeds(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Health should report ready with an ``ok`` detail."""
    substrate = _substrate(monkeypatch, _FakeRedisClient())

    status = substrate.health()

    assert status.ready is True
    assert status.detail == "ok"


def test_health_degrades_when_ping_raises(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Health should never raise on connection failures."""
    substrate = _substrate(
        monkeypatch, _FakeRedisClient(ping_error=RedisConnectionError("down"))
    )

    status = substrate.health()

    assert status.ready is False
    assert "ConnectionError" in status.detail
