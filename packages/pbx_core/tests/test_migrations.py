"""Tests for startup migration orchestration."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine

from packages.pbx_core.migrations import (
    SERVICE_MIGRATIONS,
    MigrationExecutionError,
    ServiceMigrations,
    alembic_config,
    run_startup_migrations,
)
from packages.pbx_shared.config import PbxSettings


class RecordingUpgrade:
    def __init__(self, fail_for: str | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_for = fail_for

    def __call__(self, config, revision: str) -> None:
        location = config.get_main_option("script_location")
        self.calls.append((location, revision))
        if self.fail_for and self.fail_for in location:
            raise RuntimeError("boom")


def test_entity_store_migrations_ship_with_the_package() -> None:
    [entity_store] = SERVICE_MIGRATIONS

    location = entity_store.script_location()

    assert location == Path(location).resolve()
    assert (location / "env.py").is_file()
    assert any((location / "versions").glob("*.py"))


def test_alembic_config_escapes_percent_in_dsn() -> None:
    config = alembic_config(
        migrations=SERVICE_MIGRATIONS[0],
        dsn="postgresql+psycopg://pbx:p%40ss@db/pbx",
    )

    assert config.get_main_option("sqlalchemy.url") == (
        "postgresql+psycopg://pbx:p%40ss@db/pbx"
    )


def test_every_service_is_upgraded_to_head() -> None:
    upgrade = RecordingUpgrade()
    engine = create_engine("sqlite+pysqlite:///:memory:")

    result = run_startup_migrations(
        settings=PbxSettings(), engine=engine, upgrade_fn=upgrade
    )

    assert result.upgraded == ("services.state.entity_store",)
    assert result.provisioned_schemas == ()
    assert [revision for _, revision in upgrade.calls] == ["head"]


def test_failure_names_the_service_and_stops() -> None:
    upgrade = RecordingUpgrade(fail_for="entity_store")
    services = (
        SERVICE_MIGRATIONS[0],
        ServiceMigrations(package="services.state.entity_store", schema="other"),
    )

    with pytest.raises(MigrationExecutionError, match="services.state.entity_store"):
        run_startup_migrations(
            settings=PbxSettings(),
            engine=create_engine("sqlite+pysqlite:///:memory:"),
            services=services,
            upgrade_fn=upgrade,
        )

    assert len(upgrade.calls) == 1
