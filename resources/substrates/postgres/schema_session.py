"""Schema-scoped transactional sessions."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres.session import transactional_session


class ServiceSchemaSessionProvider:
    """Transactional sessions pinned to one service-owned schema.

    On Postgres every transaction starts with ``SET LOCAL search_path`` so
    unqualified table and view names resolve inside the owned schema. Other
    dialects (the SQLite engines used by unit tests) have no schemas and get a
    plain transactional session.
    """

    def __init__(self, *, session_factory: sessionmaker[Session], schema: str) -> None:
        self._validate_schema(schema)
        self._session_factory = session_factory
        self._schema = schema

    @property
    def schema(self) -> str:
        return self._schema

    def schema_for(self, session: Session) -> str | None:
        """Schema name to pass to the inspector, or ``None`` without schemas."""
        return self._schema if _is_postgres(session) else None

    @contextmanager
    def session(self) -> Iterator[Session]:
        with transactional_session(self._session_factory) as db:
            if _is_postgres(db):
                db.execute(text(f"SET LOCAL search_path TO {self._schema}, public"))
            yield db

    def _validate_schema(self, schema: str) -> None:
        """Reject names that would break the search_path statement."""
        if not schema:
            raise ValueError("postgres schema is required")
        if not schema.replace("_", "").isalnum():
            raise ValueError("postgres schema must be alphanumeric/underscore")


def _is_postgres(session: Session) -> bool:
    return session.get_bind().dialect.name == "postgresql"
