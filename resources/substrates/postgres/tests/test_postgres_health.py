"""Tests for the Postgres readiness probe and error normalization."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from packages.pbx_shared.errors import codes
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping


class _FakeConnection:
    """Context-managed connection double capturing execute calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object] | None]] = []

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, statement, params=None) -> None:
        self.calls.append((str(statement), params))


class _FakeDialect:
    def __init__(self, name: str) -> None:
        self.name = name


class _FakeEngine:
    def __init__(self, conn: _FakeConnection, dialect: str = "postgresql") -> None:
        self._conn = conn
        self.dialect = _FakeDialect(dialect)

    def connect(self) -> _FakeConnection:
        return self._conn


def test_ping_applies_statement_timeout_via_set_config() -> None:
    """Ping should set statement timeout with set_config then run SELECT 1."""
    conn = _FakeConnection()

    assert ping(_FakeEngine(conn), timeout_seconds=1.2) is True
    assert conn.calls[0] == (
        "SELECT set_config('statement_timeout', :timeout_value, false)",
        {"timeout_value": "1200ms"},
    )
    assert conn.calls[1] == ("SELECT 1", None)


def test_ping_skips_statement_timeout_off_postgres() -> None:
    conn = _FakeConnection()

    assert ping(_FakeEngine(conn, dialect="sqlite")) is True
    assert conn.calls == [("SELECT 1", None)]


def test_ping_returns_false_when_query_fails() -> None:
    """Ping should degrade cleanly on database errors."""

    class _FailingConnection(_FakeConnection):
        def execute(self, statement, params=None) -> None:
            del statement, params
            raise OperationalError("SELECT 1", {}, Exception("down"))

    assert ping(_FakeEngine(_FailingConnection()), timeout_seconds=1.0) is False


def test_normalize_integrity_error_maps_to_conflict() -> None:
    """Unique key failures should map to conflict/already-exists."""
    error = normalize_postgres_error(
        IntegrityError("INSERT", {}, Exception("duplicate key value"))
    )

    assert error.category.value == "conflict"
    assert error.code == codes.ALREADY_EXISTS
    assert "duplicate" not in error.message


def test_normalize_operational_error_is_retryable_dependency() -> None:
    """Connectivity failures should be retryable dependency errors."""
    error = normalize_postgres_error(OperationalError("SELECT", {}, Exception("x")))

    assert error.category.value == "dependency"
    assert error.retryable is True


def test_normalize_programming_error_is_non_retryable_backend_error() -> None:
    """Statement failures should be non-retryable backend errors."""
    error = normalize_postgres_error(ProgrammingError("SELECT", {}, Exception("x")))

    assert error.category.value == "dependency"
    assert error.code == codes.BACKEND_ERROR
    assert error.retryable is False


def test_normalize_unknown_exception_maps_to_internal() -> None:
    """Unexpected failures should map to internal/unexpected semantics."""
    error = normalize_postgres_error(RuntimeError("boom"))

    assert error.category.value == "internal"
    assert error.code == codes.UNEXPECTED_EXCEPTION
