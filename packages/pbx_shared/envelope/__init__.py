"""Typed envelopes for in-process service calls."""

from .builders import failure, success
from .envelope import Envelope, Payload
from .meta import EnvelopeKind, EnvelopeMeta, child_meta, new_meta
from .validate import validate_meta

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "child_meta",
    "failure",
    "new_meta",
    "success",
    "validate_meta",
]
