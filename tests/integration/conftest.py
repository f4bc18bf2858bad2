"""Shared fixtures for real-provider integration test modules.

Everything here skips unless ``PBX_RUN_INTEGRATION_REAL=1`` and the provider
answers; connection details come from the normal ``PbxSettings`` sources.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from packages.pbx_shared.config import PbxSettings, load_settings
from resources.substrates.postgres import (
    create_postgres_engine,
    resolve_postgres_settings,
)
from resources.substrates.redis import RedisClientSubstrate, resolve_redis_settings
from tests.integration.helpers import real_provider_tests_enabled


@pytest.fixture(scope="session")
def env_settings() -> PbxSettings:
    """Return loaded settings snapshot for fixture consumers."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")
    return load_settings()


@pytest.fixture(scope="session")
def postgres_engine(env_settings: PbxSettings) -> Iterator[Engine]:
    """Return an engine for the configured Postgres or skip if unavailable."""
    engine = create_postgres_engine(resolve_postgres_settings(env_settings))
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        pytest.skip(f"postgres unavailable for integration tests: {exc}")
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def redis_substrate(env_settings: PbxSettings) -> RedisClientSubstrate:
    """Return the Redis substrate or skip if unavailable."""
    substrate = RedisClientSubstrate(settings=resolve_redis_settings(env_settings))
    health = substrate.health()
    if not health.ready:
        pytest.skip(f"redis unavailable for integration tests: {health.detail}")
    return substrate
