"""Envelope metadata carried by every service call and result."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4


class EnvelopeKind(str, Enum):
    """Intent of the envelope that carries the metadata."""

    UNSPECIFIED = "unspecified"
    COMMAND = "command"
    EVENT = "event"
    RESULT = "result"


@dataclass(frozen=True)
class EnvelopeMeta:
    """Correlation and attribution fields for one call."""

    envelope_id: str
    trace_id: str
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str
    principal: str


def new_meta(
    *,
    kind: EnvelopeKind,
    source: str,
    principal: str,
    trace_id: str | None = None,
    parent_id: str = "",
    envelope_id: str | None = None,
    timestamp: datetime | None = None,
) -> EnvelopeMeta:
    """Build metadata, generating ids and a UTC timestamp when omitted."""
    if timestamp is None:
        stamp = datetime.now(UTC)
    elif timestamp.tzinfo is None:
        stamp = timestamp.replace(tzinfo=UTC)
    else:
        stamp = timestamp.astimezone(UTC)
    return EnvelopeMeta(
        envelope_id=envelope_id or uuid4().hex,
        trace_id=trace_id or uuid4().hex,
        parent_id=parent_id,
        timestamp=stamp,
        kind=kind,
        source=source,
        principal=principal,
    )


def child_meta(parent: EnvelopeMeta, *, source: str) -> EnvelopeMeta:
    """Derive metadata for a downstream call that stays on the same trace."""
    return new_meta(
        kind=parent.kind,
        source=source,
        principal=parent.principal,
        trace_id=parent.trace_id,
        parent_id=parent.envelope_id,
    )
