"""Readiness probe for the shared Postgres substrate."""

from __future__ import annotations

import logging

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

_LOGGER = logging.getLogger(__name__)


def ping(engine: Engine, *, timeout_seconds: float = 1.0) -> bool:
    """Return True when the database answers a trivial query within the timeout."""
    timeout_ms = max(1, int(timeout_seconds * 1000))
    try:
        with engine.connect() as conn:
            if engine.dialect.name == "postgresql":
                conn.execute(
                    text("SELECT set_config('statement_timeout', :timeout_value, false)"),
                    {"timeout_value": f"{timeout_ms}ms"},
                )
            conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        _LOGGER.warning("Postgres ping failed: %s", type(exc).__name__)
        return False
    return True
