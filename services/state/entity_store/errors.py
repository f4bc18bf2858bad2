"""Typed Entity Store failures and their public error mapping.

Raw SQLAlchemy and driver exceptions never leave the store; callers see only
the classes below. ``store_error_detail`` turns one into an ``ErrorDetail``
whose message is safe to return to API callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping

from sqlalchemy.exc import SQLAlchemyError

from packages.pbx_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
    not_found_error,
    validation_error,
)
from resources.substrates.postgres.errors import normalize_postgres_error


@dataclass(eq=False)
class StoreError(Exception):
    """Base class for every Entity Store failure."""

    family: str

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.family})"


@dataclass(eq=False)
class EntityNotFound(StoreError):
    """No row with this id matches the requested liveness."""

    entity_id: str

    def __str__(self) -> str:
        return f"{self.family} {self.entity_id} not found"


@dataclass(eq=False)
class ParentNotActive(StoreError):
    """Child write referenced a missing or retired parent."""

    parent_family: str
    parent_id: str

    def __str__(self) -> str:
        return f"{self.parent_family} {self.parent_id} is not active"


@dataclass(eq=False)
class DuplicateKey(StoreError):
    """A live-unique key is already held by another live row."""

    fields: tuple[str, ...] = ()

    def __str__(self) -> str:
        joined = ", ".join(self.fields) or "unique key"
        return f"{self.family} already exists for ({joined})"


@dataclass(eq=False)
class HasLiveChildren(StoreError):
    """Retire refused while dependent rows are still live."""

    entity_id: str
    counts: Mapping[str, int] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.family} {self.entity_id} has live children"


@dataclass(eq=False)
class StaleUpdate(StoreError):
    """Compare-and-swap update lost against a concurrent writer."""

    entity_id: str


@dataclass(eq=False)
class InvalidEntityQuery(StoreError):
    """Attributes or query arguments do not fit the family's schema."""

    reason: str

    def __str__(self) -> str:
        return f"{self.family}: {self.reason}"


@dataclass(eq=False)
class NameCollision(StoreError):
    """A view with the derived name already exists."""

    view_name: str


@dataclass(eq=False)
class BackendError(StoreError):
    """Persisted-store I/O failed."""

    operation: str
    cause: Exception | None = None

    def __str__(self) -> str:
        return f"{self.family} {self.operation} failed"


def store_error_detail(exc: StoreError) -> ErrorDetail:
    """Map one store exception to a public ``ErrorDetail``."""
    metadata = {"family": exc.family}
    if isinstance(exc, EntityNotFound):
        return not_found_error(
            f"{exc.family} not found",
            code=codes.RESOURCE_NOT_FOUND,
            metadata={**metadata, "id": exc.entity_id},
        )
    if isinstance(exc, ParentNotActive):
        return not_found_error(
            f"{exc.parent_family} not found",
            code=codes.RESOURCE_NOT_FOUND,
            metadata={**metadata, "parent_id": exc.parent_id},
        )
    if isinstance(exc, DuplicateKey):
        return conflict_error(
            f"{exc.family} already exists",
            code=codes.ALREADY_EXISTS,
            metadata={**metadata, "fields": ",".join(exc.fields)},
        )
    if isinstance(exc, HasLiveChildren):
        return conflict_error(
            f"{exc.family} is still referenced",
            code=codes.HAS_LIVE_CHILDREN,
            metadata={
                **metadata,
                "id": exc.entity_id,
                **{f"live_{name}": str(count) for name, count in exc.counts.items()},
            },
        )
    if isinstance(exc, StaleUpdate):
        return conflict_error(
            f"{exc.family} was modified concurrently",
            code=codes.STALE_UPDATE,
            metadata={**metadata, "id": exc.entity_id},
        )
    if isinstance(exc, InvalidEntityQuery):
        return validation_error(exc.reason, code=codes.INVALID_ARGUMENT, metadata=metadata)
    if isinstance(exc, NameCollision):
        return internal_error(
            "view name collision", code=codes.NAME_COLLISION, metadata=metadata
        )
    if isinstance(exc, BackendError):
        if isinstance(exc.cause, SQLAlchemyError):
            detail = normalize_postgres_error(exc.cause)
            return replace(detail, metadata={**detail.metadata, **metadata})
        return dependency_error(
            "storage unavailable", code=codes.BACKEND_ERROR, metadata=metadata
        )
    return internal_error("unexpected storage failure", metadata=metadata)
