"""SQLAlchemy column helpers for entity ids."""

from __future__ import annotations

from sqlalchemy import Column, String

from packages.pbx_shared.ids.uuids import ENTITY_ID_LENGTH


def entity_id_primary_key_column(name: str = "id") -> Column[str]:
    """Primary key holding a canonical UUID string assigned by the application."""
    return Column(name, String(ENTITY_ID_LENGTH), primary_key=True, nullable=False)


def entity_id_reference_column(name: str, *, nullable: bool = False) -> Column[str]:
    """Column referencing another entity's id.

    No foreign key; the entity store enforces parent liveness and live-child
    counts itself.
    """
    return Column(name, String(ENTITY_ID_LENGTH), nullable=nullable, index=True)
