"""Concrete Event Publisher implementations.

``DefaultEventPublisher`` delivers synchronously, in subscription order.
``QueuedEventPublisher`` hands events to one background worker draining a FIFO
queue, so events for the same entity reach subscribers in publish order even
though delivery no longer blocks the caller.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from packages.pbx_shared.envelope import Envelope, EnvelopeMeta, failure, success
from packages.pbx_shared.errors import ErrorDetail, codes, dependency_error
from packages.pbx_shared.logging import fields, get_logger, log_context, public_api_instrumented
from packages.pbx_shared.requests import validate_request
from services.action.event_publisher.component import SERVICE_COMPONENT_ID
from services.action.event_publisher.domain import (
    ChangeEvent,
    MutationKind,
    PublishReceipt,
)
from services.action.event_publisher.interfaces import Subscriber
from services.action.event_publisher.service import EventPublisher
from services.action.event_publisher.validation import PublishRequest

_LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _event_context(event: ChangeEvent) -> dict[str, object]:
    return {
        fields.TOPIC: event.topic,
        fields.CATEGORY: event.category,
        fields.MUTATION_KIND: event.mutation_kind.value,
        fields.ENTITY_ID: event.entity_id,
        "event_id": event.event_id,
    }


def _delivery_error(receipt: PublishReceipt) -> ErrorDetail:
    return dependency_error(
        "event delivery failed",
        code=codes.DELIVERY_FAILURE,
        metadata={"event_id": receipt.event_id, "failed": ",".join(receipt.failed)},
    )


class DefaultEventPublisher(EventPublisher):
    """Synchronous fan-out to an explicit list of subscribers."""

    def __init__(self, *, clock: Clock = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._subscriptions: dict[str, Subscriber] = {}

    def subscribe(self, subscriber: Subscriber) -> str:
        subscription_id = uuid4().hex
        with self._lock:
            self._subscriptions[subscription_id] = subscriber
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(subscription_id, None) is not None

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("topic", "category", "entity_id"),
    )
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
        event, errors = self.prepare_event(
            meta=meta,
            topic=topic,
            category=category,
            mutation_kind=mutation_kind,
            entity_id=entity_id,
            payload=payload,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert event is not None

        receipt = self.deliver(event)
        if receipt.failed:
            return failure(meta=meta, errors=[_delivery_error(receipt)], payload=receipt)
        return success(meta=meta, payload=receipt)

    def prepare_event(
        self,
        *,
        meta: EnvelopeMeta,
        topic: str,
        category: str,
        mutation_kind: MutationKind,
        entity_id: str,
        payload: Mapping[str, Any],
    ) -> tuple[ChangeEvent | None, list[ErrorDetail]]:
        """Validate one publish request and stamp a new event."""
        request, errors = validate_request(
            meta=meta,
            model=PublishRequest,
            payload={
                "topic": topic,
                "category": category,
                "mutation_kind": mutation_kind,
                "entity_id": entity_id,
                "payload": dict(payload),
            },
        )
        if errors:
            return None, errors
        assert request is not None
        return (
            ChangeEvent(
                event_id=uuid4().hex,
                topic=request.topic,
                category=request.category,
                mutation_kind=request.mutation_kind,
                entity_id=request.entity_id,
                occurred_at=self._clock(),
                payload=request.payload,
            ),
            [],
        )

    def deliver(self, event: ChangeEvent) -> PublishReceipt:
        """Hand ``event`` to every subscriber; failures are logged, never raised."""
        with self._lock:
            subscribers = list(self._subscriptions.values())

        delivered = 0
        failed: list[str] = []
        for subscriber in subscribers:
            name = getattr(subscriber, "name", type(subscriber).__name__)
            try:
                subscriber.deliver(event)
            except Exception:  # noqa: BLE001
                failed.append(name)
                with log_context({**_event_context(event), "subscriber": name}):
                    _LOGGER.exception("Change event delivery failed")
                continue
            delivered += 1
        return PublishReceipt(
            event_id=event.event_id, delivered=delivered, failed=tuple(failed)
        )


class QueuedEventPublisher(EventPublisher):
    """Background single-worker delivery on top of a ``DefaultEventPublisher``."""

    def __init__(self, *, inner: DefaultEventPublisher, capacity: int = 10_000) -> None:
        self._inner = inner
        self._capacity = capacity
        self._pending: deque[ChangeEvent] = deque()
        self._in_flight = 0
        self._closed = False
        self._condition = threading.Condition()
        self._worker = threading.Thread(
            target=self._drain, name="pbx-event-publisher", daemon=True
        )
        self._worker.start()

    def subscribe(self, subscriber: Subscriber) -> str:
        return self._inner.subscribe(subscriber)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._inner.unsubscribe(subscription_id)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("topic", "category", "entity_id"),
    )
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
        event, errors = self._inner.prepare_event(
            meta=meta,
            topic=topic,
            category=category,
            mutation_kind=mutation_kind,
            entity_id=entity_id,
            payload=payload,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert event is not None

        with self._condition:
            if self._closed:
                reason = "event publisher is closed"
            elif len(self._pending) >= self._capacity:
                reason = "event queue is full"
            else:
                self._pending.append(event)
                self._condition.notify_all()
                return success(
                    meta=meta,
                    payload=PublishReceipt(event_id=event.event_id, queued=True),
                )

        with log_context(_event_context(event)):
            _LOGGER.warning("Change event dropped: %s", reason)
        return failure(
            meta=meta,
            errors=[
                dependency_error(
                    reason,
                    code=codes.DELIVERY_FAILURE,
                    metadata={"event_id": event.event_id},
                )
            ],
        )

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every queued event was handed to subscribers."""
        with self._condition:
            return self._condition.wait_for(
                lambda: not self._pending and self._in_flight == 0,
                timeout=timeout,
            )

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting events, drain what is queued, then stop the worker."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()
        self._worker.join(timeout)

    def _drain(self) -> None:
        while True:
            with self._condition:
                while not self._pending and not self._closed:
                    self._condition.wait()
                if not self._pending:
                    return
                event = self._pending.popleft()
                self._in_flight += 1
            try:
                self._inner.deliver(event)
            finally:
                with self._condition:
                    self._in_flight -= 1
                    self._condition.notify_all()
