"""Entity identifier primitives."""

from packages.pbx_shared.ids.sqlalchemy import (
    entity_id_primary_key_column,
    entity_id_reference_column,
)
from packages.pbx_shared.ids.uuids import (
    ENTITY_ID_LENGTH,
    generate_entity_id,
    is_entity_id,
    normalize_entity_id,
)

__all__ = [
    "ENTITY_ID_LENGTH",
    "entity_id_primary_key_column",
    "entity_id_reference_column",
    "generate_entity_id",
    "is_entity_id",
    "normalize_entity_id",
]
