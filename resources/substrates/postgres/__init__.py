"""Shared Postgres substrate primitives for control-plane services."""

from resources.substrates.postgres.bootstrap import ensure_schema
from resources.substrates.postgres.component import RESOURCE_COMPONENT_ID
from resources.substrates.postgres.config import (
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)
from resources.substrates.postgres.substrate import (
    PostgresHealthStatus,
    SharedPostgresSubstrate,
)

__all__ = [
    "PostgresHealthStatus",
    "PostgresSettings",
    "RESOURCE_COMPONENT_ID",
    "ServiceSchemaSessionProvider",
    "SharedPostgresSubstrate",
    "create_postgres_engine",
    "create_session_factory",
    "ensure_schema",
    "normalize_postgres_error",
    "ping",
    "resolve_postgres_settings",
    "transactional_session",
]
