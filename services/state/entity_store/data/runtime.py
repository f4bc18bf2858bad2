"""Entity Store Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.pbx_shared.config import PbxSettings
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    SharedPostgresSubstrate,
    ping,
    resolve_postgres_settings,
)
from services.state.entity_store.component import ENTITY_STORE_SCHEMA


@dataclass(frozen=True)
class EntityStorePostgresRuntime:
    """Concrete handle for schema-scoped Entity Store access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider

    @classmethod
    def from_substrate(
        cls, substrate: SharedPostgresSubstrate
    ) -> "EntityStorePostgresRuntime":
        """Scope a shared substrate to the Entity Store schema."""
        return cls(
            engine=substrate.engine,
            session_factory=substrate.session_factory,
            schema_sessions=substrate.schema_sessions(entity_store_postgres_schema()),
        )

    @classmethod
    def from_settings(cls, settings: PbxSettings) -> "EntityStorePostgresRuntime":
        """Build a runtime with its own engine from typed application settings."""
        substrate = SharedPostgresSubstrate(settings=resolve_postgres_settings(settings))
        return cls.from_substrate(substrate)

    def is_healthy(self) -> bool:
        """Return ``True`` when backing Postgres connection is reachable."""
        return ping(self.engine)


def entity_store_postgres_schema() -> str:
    return ENTITY_STORE_SCHEMA
