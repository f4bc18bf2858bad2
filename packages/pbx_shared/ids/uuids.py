"""Entity identifier helpers.

Entity ids are canonical lowercase UUID4 strings (36 chars, hyphenated). The
hyphenated text form matters: view names and PBX endpoint names are derived
from it.
"""

from __future__ import annotations

from uuid import UUID, uuid4

ENTITY_ID_LENGTH = 36


def generate_entity_id() -> str:
    """Return a new random entity id."""
    return str(uuid4())


def normalize_entity_id(value: str) -> str:
    """Return the canonical form of ``value`` or raise ``ValueError``."""
    candidate = value.strip()
    if candidate == "":
        raise ValueError("entity id is required")
    try:
        parsed = UUID(candidate)
    except ValueError:
        raise ValueError(f"entity id must be a UUID: {candidate!r}") from None
    return str(parsed)


def is_entity_id(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        normalize_entity_id(value)
    except ValueError:
        return False
    return True
