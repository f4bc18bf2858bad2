"""Core-managed startup migrations for service-owned schemas."""

from __future__ import annotations

import importlib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.logging import get_logger
from resources.substrates.postgres import (
    create_postgres_engine,
    ensure_schema,
    resolve_postgres_settings,
)
from services.state.entity_store.component import ENTITY_STORE_SCHEMA

_LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ServiceMigrations:
    """Where one service keeps its alembic scripts and which schema they own."""

    package: str
    schema: str

    def script_location(self) -> Path:
        module = importlib.import_module(self.package)
        assert module.__file__ is not None
        return Path(module.__file__).resolve().parent / "migrations"


SERVICE_MIGRATIONS: tuple[ServiceMigrations, ...] = (
    ServiceMigrations(
        package="services.state.entity_store", schema=ENTITY_STORE_SCHEMA
    ),
)


class MigrationExecutionError(RuntimeError):
    """Raised when startup migration execution fails."""


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Summary of one startup migration pass."""

    provisioned_schemas: tuple[str, ...]
    upgraded: tuple[str, ...]


def alembic_config(*, migrations: ServiceMigrations, dsn: str) -> Config:
    """Build an in-memory alembic config; services ship no ``alembic.ini``."""
    config = Config()
    config.set_main_option("script_location", str(migrations.script_location()))
    config.set_main_option("sqlalchemy.url", dsn.replace("%", "%%"))
    return config


def run_startup_migrations(
    *,
    settings: PbxSettings,
    engine: Engine | None = None,
    services: tuple[ServiceMigrations, ...] = SERVICE_MIGRATIONS,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
) -> MigrationRunResult:
    """Create missing schemas, then upgrade every service to ``head``."""
    postgres = resolve_postgres_settings(settings)
    owned_engine = engine is None
    target = engine or create_postgres_engine(postgres)
    provisioned: list[str] = []
    upgraded: list[str] = []
    try:
        for item in services:
            if ensure_schema(target, item.schema):
                provisioned.append(item.schema)
            try:
                upgrade_fn(alembic_config(migrations=item, dsn=postgres.dsn), "head")
            except Exception as exc:
                raise MigrationExecutionError(
                    f"startup migration failed for '{item.package}'"
                ) from exc
            upgraded.append(item.package)
            _LOGGER.info("Migrated %s to head", item.package)
    finally:
        if owned_engine:
            target.dispose()

    return MigrationRunResult(
        provisioned_schemas=tuple(provisioned), upgraded=tuple(upgraded)
    )
