"""Tests for composition-root wiring and startup steps."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from packages.pbx_core.migrations import MigrationRunResult
from packages.pbx_core.runtime import PbxRuntime, build_runtime
from packages.pbx_shared.config import PbxSettings
from resources.substrates.postgres import PostgresSettings, SharedPostgresSubstrate
from services.control.gateway.domain import InboundRequest, Outcome
from services.state.entity_store.data import metadata
from services.state.entity_store.domain import Family


class StaticIdentities:
    def __init__(self, identity) -> None:
        self.identity = identity

    def resolve(self, token: str):
        return self.identity if token == "token" else None


def _settings(**startup: bool) -> PbxSettings:
    return PbxSettings(
        components={
            "startup": startup,
            "service": {
                "event_publisher": {"redis_enabled": False, "asynchronous": False}
            },
        }
    )


def _substrate() -> SharedPostgresSubstrate:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    return SharedPostgresSubstrate(settings=PostgresSettings(), engine=engine)


@pytest.fixture
def runtime(pbx) -> PbxRuntime:
    runtime = build_runtime(settings=_settings(), substrate=_substrate(), pbx=pbx)
    yield runtime
    runtime.close()


def _no_migrations(**_: object) -> MigrationRunResult:
    return MigrationRunResult(provisioned_schemas=(), upgraded=())


def test_start_bootstraps_one_admin(runtime) -> None:
    first = runtime.start(migration_runner=_no_migrations)
    second = runtime.start(migration_runner=_no_migrations)

    assert first.bootstrap_admin is not None
    assert first.bootstrap_admin == second.bootstrap_admin
    users = runtime.store.list(family=Family.USER)
    assert [user.username for user in users] == ["admin"]


def test_start_passes_the_shared_engine_to_migrations(runtime) -> None:
    seen: dict[str, object] = {}

    def runner(**kwargs: object) -> MigrationRunResult:
        seen.update(kwargs)
        return _no_migrations()

    result = runtime.start(migration_runner=runner)

    assert seen["engine"] is runtime.substrate.engine
    assert result.migrations == MigrationRunResult(provisioned_schemas=(), upgraded=())


def test_disabled_startup_steps_are_skipped(pbx) -> None:
    settings = _settings(
        run_migrations_on_startup=False,
        rebuild_missing_views_on_startup=False,
        bootstrap_admin_on_startup=False,
    )
    runtime = build_runtime(settings=settings, substrate=_substrate(), pbx=pbx)

    def runner(**_: object) -> MigrationRunResult:
        raise AssertionError("migrations should not run")

    result = runtime.start(migration_runner=runner)
    runtime.close()

    assert result.migrations is None
    assert result.bootstrap_admin is None


def test_services_share_one_store(runtime, meta) -> None:
    created = runtime.dialplan.create_dialplan_master(meta=meta, payload={"name": "ivr"})

    fetched = runtime.store.get(
        family=Family.DIALPLAN_MASTER, entity_id=created.payload.value.id
    )

    assert fetched.name == "ivr"


def test_gateway_reaches_the_lifecycle_services(pbx) -> None:
    from services.control.gateway.domain import Identity

    runtime = build_runtime(
        settings=_settings(),
        substrate=_substrate(),
        pbx=pbx,
        identities=StaticIdentities(
            Identity(principal="root", permissions=frozenset({"admin"}))
        ),
    )

    response = runtime.gateway.handle(
        token="token", request=InboundRequest(operation="list", family="trunk")
    )
    runtime.close()

    assert response.outcome == Outcome.OK
    assert response.entity == []


def test_health_aggregates_components(runtime) -> None:
    health = runtime.health()

    assert health.ready
    assert set(health.components) == {"substrate_postgres", "adapter_pbx"}
