"""Shared Postgres substrate: one engine, one session factory, a health probe."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres.config import PostgresSettings
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import create_session_factory


class PostgresHealthStatus(BaseModel):
    """Postgres substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class SharedPostgresSubstrate:
    """Owns the process-wide engine and hands out schema-scoped providers."""

    def __init__(
        self,
        *,
        settings: PostgresSettings,
        engine: Engine | None = None,
    ) -> None:
        self._settings = settings
        self._engine = engine or create_postgres_engine(settings)
        self._session_factory = create_session_factory(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    def schema_sessions(self, schema: str) -> ServiceSchemaSessionProvider:
        return ServiceSchemaSessionProvider(
            session_factory=self._session_factory, schema=schema
        )

    def health(self) -> PostgresHealthStatus:
        ready = ping(self._engine, timeout_seconds=self._settings.health_timeout_seconds)
        return PostgresHealthStatus(
            ready=ready,
            detail="ok" if ready else "postgres ping failed",
        )

    def dispose(self) -> None:
        self._engine.dispose()
