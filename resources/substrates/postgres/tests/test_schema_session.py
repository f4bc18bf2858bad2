"""Tests for schema-scoped sessions on schema-less engines."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from resources.substrates.postgres.bootstrap import ensure_schema
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import create_session_factory


def _sqlite_engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_provider_rejects_malformed_schema_names() -> None:
    """Schema names feed a raw SET statement and must be identifiers."""
    factory = create_session_factory(_sqlite_engine())

    with pytest.raises(ValueError, match="alphanumeric"):
        ServiceSchemaSessionProvider(session_factory=factory, schema="bad;name")


def test_provider_commits_on_clean_exit_and_rolls_back_on_error() -> None:
    """Sessions follow commit/rollback unit-of-work semantics."""
    engine = _sqlite_engine()
    provider = ServiceSchemaSessionProvider(
        session_factory=create_session_factory(engine), schema="entity_store"
    )
    with provider.session() as session:
        session.execute(text("CREATE TABLE t (v INTEGER)"))
        session.execute(text("INSERT INTO t (v) VALUES (1)"))

    with pytest.raises(RuntimeError):
        with provider.session() as session:
            session.execute(text("INSERT INTO t (v) VALUES (2)"))
            raise RuntimeError("abort")

    with provider.session() as session:
        values = session.execute(text("SELECT v FROM t")).scalars().all()
        assert provider.schema_for(session) is None
    assert values == [1]


def test_ensure_schema_is_a_noop_without_schema_support() -> None:
    """SQLite has no schemas; bootstrap reports that nothing was created."""
    assert ensure_schema(_sqlite_engine(), "entity_store") is False
