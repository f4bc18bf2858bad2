"""SQLAlchemy engine construction for the shared Postgres substrate."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine

from resources.substrates.postgres.config import PostgresSettings


def create_postgres_engine(config: PostgresSettings) -> Engine:
    """Construct a pooled SQLAlchemy engine using psycopg."""
    connect_args = {
        "connect_timeout": int(config.connect_timeout_seconds),
        "sslmode": config.sslmode,
    }
    return create_engine(
        config.dsn,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        connect_args=connect_args,
    )
