"""Fire-and-forget publication used by lifecycle services after a commit."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel

from packages.pbx_shared.envelope import EnvelopeMeta
from packages.pbx_shared.logging import fields, get_logger, log_context
from services.action.event_publisher.domain import MutationKind
from services.action.event_publisher.service import EventPublisher

_LOGGER = get_logger(__name__)

SENSITIVE_FIELDS = frozenset({"password"})


def announce_change(
    publisher: EventPublisher,
    *,
    meta: EnvelopeMeta,
    topic: str,
    category: str,
    mutation_kind: MutationKind,
    entity: BaseModel,
    entity_id: str | None = None,
    redact: Iterable[str] = SENSITIVE_FIELDS,
) -> bool:
    """Publish one change for ``entity``; failures are logged and swallowed.

    The storage mutation is already committed when this runs, so a delivery
    failure must not reach the caller's result.
    """
    hidden = frozenset(redact)
    payload = {
        key: value
        for key, value in entity.model_dump(mode="json").items()
        if key not in hidden
    }
    resolved_id = entity_id or str(payload.get("id", ""))
    context = {
        fields.TOPIC: topic,
        fields.CATEGORY: category,
        fields.MUTATION_KIND: mutation_kind.value,
        fields.ENTITY_ID: resolved_id,
    }
    try:
        result = publisher.publish(
            meta=meta,
            topic=topic,
            category=category,
            mutation_kind=mutation_kind,
            entity_id=resolved_id,
            payload=payload,
        )
    except Exception:  # noqa: BLE001
        with log_context(context):
            _LOGGER.exception("Change event publish raised")
        return False

    if not result.ok:
        with log_context({**context, fields.ERRORS: [e.message for e in result.errors]}):
            _LOGGER.warning("Change event publish failed")
        return False
    return True
