"""Construction entry point for the Entity Store."""

from __future__ import annotations

from packages.pbx_shared.config import PbxSettings
from resources.substrates.postgres import SharedPostgresSubstrate
from services.state.entity_store.interfaces import EntityStore


def build_entity_store(
    *,
    settings: PbxSettings,
    substrate: SharedPostgresSubstrate | None = None,
) -> EntityStore:
    """Build the default SQL-backed Entity Store from typed settings."""
    from services.state.entity_store.config import resolve_entity_store_settings
    from services.state.entity_store.data import (
        EntityStorePostgresRuntime,
        SqlEntityStore,
        ViewSynthesizer,
    )

    runtime = (
        EntityStorePostgresRuntime.from_substrate(substrate)
        if substrate is not None
        else EntityStorePostgresRuntime.from_settings(settings)
    )
    store_settings = resolve_entity_store_settings(settings)
    return SqlEntityStore(
        sessions=runtime.schema_sessions,
        views=ViewSynthesizer(),
        max_list_limit=store_settings.max_list_limit,
    )
