"""SQLAlchemy/psycopg exception normalization."""

from __future__ import annotations

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)

from packages.pbx_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
)


def normalize_postgres_error(exc: Exception) -> ErrorDetail:
    """Map a low-level database exception to a public ``ErrorDetail``.

    Messages are generic; driver text stays in ``metadata`` only as the
    exception type name.
    """
    metadata = {"exception_type": type(exc).__name__}

    if isinstance(exc, IntegrityError):
        return conflict_error(
            "resource already exists",
            code=codes.ALREADY_EXISTS,
            metadata=metadata,
        )
    if isinstance(exc, OperationalError) or isinstance(exc, TimeoutError):
        return dependency_error(
            "database unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            retryable=True,
            metadata=metadata,
        )
    if isinstance(exc, (InterfaceError, ProgrammingError, DBAPIError, SQLAlchemyError)):
        return dependency_error(
            "database request failed",
            code=codes.BACKEND_ERROR,
            retryable=False,
            metadata=metadata,
        )
    return internal_error(
        "unexpected database failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
