"""Pre-migration bootstrap of service-owned schemas."""

from __future__ import annotations

from sqlalchemy import Engine, text


def ensure_schema(engine: Engine, schema: str) -> bool:
    """Create ``schema`` when missing; returns ``False`` for schema-less dialects."""
    if engine.dialect.name != "postgresql":
        return False
    if not schema.replace("_", "").isalnum():
        raise ValueError("postgres schema must be alphanumeric/underscore")
    with engine.begin() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
    return True
