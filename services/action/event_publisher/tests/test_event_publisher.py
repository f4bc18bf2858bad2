"""Behavior tests for change-event fan-out and queued delivery."""

from __future__ import annotations

import json
import threading

from pydantic import BaseModel

from packages.pbx_shared.envelope import EnvelopeKind, new_meta
from packages.pbx_shared.errors import ErrorCategory, codes
from services.action.event_publisher.announce import announce_change
from services.action.event_publisher.domain import ChangeEvent, MutationKind
from services.action.event_publisher.implementation import (
    DefaultEventPublisher,
    QueuedEventPublisher,
)
from services.action.event_publisher.redis_subscriber import RedisChannelSubscriber


def _meta():
    return new_meta(kind=EnvelopeKind.EVENT, source="test", principal="operator")


class _Recorder:
    def __init__(self, name: str = "recorder") -> None:
        self.name = name
        self.events: list[ChangeEvent] = []

    def deliver(self, event: ChangeEvent) -> None:
        self.events.append(event)


class _Exploding:
    name = "exploding"

    def deliver(self, event: ChangeEvent) -> None:
        raise RuntimeError("subscriber down")


class _FakeRedis:
    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    def publish_message(self, *, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1


class _Entity(BaseModel):
    id: str
    username: str
    password: str


def _publish(publisher, *, entity_id: str = "e-1", kind: MutationKind = MutationKind.CREATE):
    return publisher.publish(
        meta=_meta(),
        topic="dialplan",
        category="dp.dpma",
        mutation_kind=kind,
        entity_id=entity_id,
        payload={"id": entity_id},
    )


def test_publish_delivers_to_every_subscriber_in_order() -> None:
    publisher = DefaultEventPublisher()
    first, second = _Recorder("first"), _Recorder("second")
    publisher.subscribe(first)
    publisher.subscribe(second)

    result = _publish(publisher)

    assert result.ok
    assert result.payload.value.delivered == 2
    assert first.events[0].event_id == second.events[0].event_id
    assert first.events[0].mutation_kind == MutationKind.CREATE


def test_failing_subscriber_does_not_block_others_and_reports_delivery_error() -> None:
    publisher = DefaultEventPublisher()
    publisher.subscribe(_Exploding())
    survivor = _Recorder()
    publisher.subscribe(survivor)

    result = _publish(publisher)

    assert not result.ok
    assert result.errors[0].category == ErrorCategory.DEPENDENCY
    assert result.errors[0].code == codes.DELIVERY_FAILURE
    assert result.payload.value.failed == ("exploding",)
    assert len(survivor.events) == 1


def test_unsubscribe_stops_delivery() -> None:
    publisher = DefaultEventPublisher()
    recorder = _Recorder()
    subscription_id = publisher.subscribe(recorder)

    assert publisher.unsubscribe(subscription_id) is True
    assert publisher.unsubscribe(subscription_id) is False
    _publish(publisher)

    assert recorder.events == []


def test_publish_rejects_invalid_requests() -> None:
    publisher = DefaultEventPublisher()

    result = publisher.publish(
        meta=_meta(),
        topic="",
        category="dp.dpma",
        mutation_kind=MutationKind.UPDATE,
        entity_id="e-1",
        payload={},
    )

    assert not result.ok
    assert result.errors[0].category == ErrorCategory.VALIDATION


def test_queued_publisher_preserves_per_entity_order() -> None:
    inner = DefaultEventPublisher()
    recorder = _Recorder()
    inner.subscribe(recorder)
    publisher = QueuedEventPublisher(inner=inner)

    for kind in (MutationKind.CREATE, MutationKind.UPDATE, MutationKind.DELETE):
        assert _publish(publisher, kind=kind).payload.value.queued

    assert publisher.flush(timeout=5.0)
    publisher.close(timeout=5.0)
    assert [event.mutation_kind for event in recorder.events] == [
        MutationKind.CREATE,
        MutationKind.UPDATE,
        MutationKind.DELETE,
    ]


def test_queued_publisher_refuses_events_when_full_or_closed() -> None:
    release = threading.Event()

    class _Blocking:
        name = "blocking"

        def deliver(self, event: ChangeEvent) -> None:
            release.wait(5.0)

    inner = DefaultEventPublisher()
    inner.subscribe(_Blocking())
    publisher = QueuedEventPublisher(inner=inner, capacity=1)

    _publish(publisher, entity_id="a")
    outcomes = [_publish(publisher, entity_id=f"b{index}").ok for index in range(3)]
    release.set()
    publisher.close(timeout=5.0)

    assert False in outcomes
    closed = _publish(publisher, entity_id="c")
    assert not closed.ok
    assert closed.errors[0].message == "event publisher is closed"


def test_redis_subscriber_publishes_json_on_topic_channel() -> None:
    redis = _FakeRedis()
    publisher = DefaultEventPublisher()
    publisher.subscribe(RedisChannelSubscriber(redis=redis, channel_prefix="pbx.events."))

    _publish(publisher, entity_id="e-9")

    channel, message = redis.published[0]
    assert channel == "pbx.events.dialplan"
    assert json.loads(message)["entity_id"] == "e-9"


def test_announce_change_strips_passwords_and_swallows_failures() -> None:
    publisher = DefaultEventPublisher()
    recorder = _Recorder()
    publisher.subscribe(recorder)
    entity = _Entity(id="u-1", username="alice", password="secret")

    assert announce_change(
        publisher,
        meta=_meta(),
        topic="manager",
        category="manager.user",
        mutation_kind=MutationKind.CREATE,
        entity=entity,
    )
    assert recorder.events[0].payload == {"id": "u-1", "username": "alice"}

    publisher.subscribe(_Exploding())
    assert not announce_change(
        publisher,
        meta=_meta(),
        topic="manager",
        category="manager.user",
        mutation_kind=MutationKind.UPDATE,
        entity=entity,
    )
