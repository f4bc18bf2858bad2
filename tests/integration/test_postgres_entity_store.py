"""Real-Postgres checks for migrations, view synthesis and cascading retire."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import inspect, text

from packages.pbx_core.migrations import run_startup_migrations
from packages.pbx_core.runtime import PbxRuntime, build_runtime
from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import EnvelopeKind, new_meta
from resources.substrates.postgres import (
    SharedPostgresSubstrate,
    resolve_postgres_settings,
)
from services.state.entity_store.component import ENTITY_STORE_SCHEMA


@pytest.fixture(scope="module")
def migrated(env_settings, postgres_engine):
    return run_startup_migrations(settings=env_settings, engine=postgres_engine)


@pytest.fixture
def runtime(env_settings, postgres_engine, migrated, pbx) -> Iterator[PbxRuntime]:
    data = env_settings.model_dump()
    data["components"]["service"].setdefault("event_publisher", {}).update(
        redis_enabled=False, asynchronous=False
    )
    settings = PbxSettings.model_validate(data)
    substrate = SharedPostgresSubstrate(
        settings=resolve_postgres_settings(settings), engine=postgres_engine
    )
    yield build_runtime(settings=settings, substrate=substrate, pbx=pbx)


def _meta():
    return new_meta(kind=EnvelopeKind.COMMAND, source="integration", principal="ops")


def test_migrations_reach_head_and_are_repeatable(
    env_settings, postgres_engine, migrated
) -> None:
    again = run_startup_migrations(settings=env_settings, engine=postgres_engine)

    assert migrated.upgraded == ("services.state.entity_store",)
    assert again.upgraded == migrated.upgraded
    tables = set(inspect(postgres_engine).get_table_names(schema=ENTITY_STORE_SCHEMA))
    assert {"dial_list_masters", "dial_list_entries", "users", "trunks"} <= tables


def test_master_create_materializes_a_filtered_view(runtime, postgres_engine) -> None:
    meta = _meta()
    master = runtime.outbound.create_dial_list_master(
        meta=meta, payload={"name": "integration"}
    ).payload.value
    runtime.outbound.create_dial_list_entry(
        meta=meta, payload={"dlma_id": master.id, "number_1": "5551000"}
    )
    other = runtime.outbound.create_dial_list_master(meta=meta, payload={}).payload.value
    runtime.outbound.create_dial_list_entry(
        meta=meta, payload={"dlma_id": other.id, "number_1": "5552000"}
    )

    views = set(inspect(postgres_engine).get_view_names(schema=ENTITY_STORE_SCHEMA))
    with postgres_engine.connect() as conn:
        numbers = conn.execute(
            text(f'SELECT number_1 FROM {ENTITY_STORE_SCHEMA}."{master.dl_table}"')
        ).scalars().all()

    assert master.dl_table in views
    assert numbers == ["5551000"]


def test_forced_delete_retires_entries_and_keeps_the_view(runtime, postgres_engine) -> None:
    meta = _meta()
    master = runtime.outbound.create_dial_list_master(meta=meta, payload={}).payload.value
    runtime.outbound.create_dial_list_entry(meta=meta, payload={"dlma_id": master.id})

    refused = runtime.outbound.delete_dial_list_master(meta=meta, dlma_id=master.id)
    forced = runtime.outbound.delete_dial_list_master(
        meta=meta, dlma_id=master.id, force=True
    )

    assert not refused.ok
    assert forced.ok
    assert [entry.liveness.value for entry in forced.payload.value.entries] == ["retired"]
    views = set(inspect(postgres_engine).get_view_names(schema=ENTITY_STORE_SCHEMA))
    assert master.dl_table in views
