"""Data-layer exports for the Entity Store."""

from services.state.entity_store.data.repository import SqlEntityStore
from services.state.entity_store.data.runtime import (
    EntityStorePostgresRuntime,
    entity_store_postgres_schema,
)
from services.state.entity_store.data.schema import metadata
from services.state.entity_store.data.views import ViewSynthesizer, derive_view_name

__all__ = [
    "EntityStorePostgresRuntime",
    "SqlEntityStore",
    "ViewSynthesizer",
    "derive_view_name",
    "entity_store_postgres_schema",
    "metadata",
]
