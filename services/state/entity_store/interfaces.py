"""Protocols for the Entity Store and the sessions it runs on."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session

from services.state.entity_store.domain import (
    CascadeResult,
    CreateResult,
    EntityBase,
    Family,
    LivenessFilter,
    ViewInfo,
)


class SessionProvider(Protocol):
    """Schema-scoped transactional sessions."""

    def session(self) -> AbstractContextManager[Session]:
        """One transaction: commit on clean exit, rollback on error."""

    def schema_for(self, session: Session) -> str | None:
        """Schema name for inspector lookups, ``None`` on schema-less engines."""


class EntityStore(Protocol):
    """Typed persistence for every entity family.

    All methods raise ``StoreError`` subclasses; none returns ``None`` for a
    missing row.
    """

    def create(
        self,
        *,
        family: Family,
        attributes: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> EntityBase:
        """Insert one row, materializing its view when the family has one."""

    def create_idempotent(
        self,
        *,
        family: Family,
        attributes: Mapping[str, Any],
        idempotency_key: str | None,
    ) -> CreateResult:
        """Like ``create``, reporting whether a row was inserted or replayed."""

    def get(
        self,
        *,
        family: Family,
        entity_id: str,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
    ) -> EntityBase:
        """Read one row."""

    def list(
        self,
        *,
        family: Family,
        where: Mapping[str, Any] | None = None,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
        order_by: Sequence[str] = ("created_at",),
        limit: int | None = None,
    ) -> list[EntityBase]:
        """Read rows matching an equality predicate."""

    def list_all(
        self,
        *,
        family: Family,
        where: Mapping[str, Any] | None = None,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
        order_by: Sequence[str] = ("created_at",),
    ) -> list[EntityBase]:
        """Read every matching row, ignoring the list cap."""

    def list_through_view(
        self,
        *,
        family: Family,
        parent_id: str,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
    ) -> list[EntityBase]:
        """Read a parent's children through its synthesized view."""

    def update(
        self,
        *,
        family: Family,
        entity_id: str,
        attributes: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> EntityBase:
        """Merge attributes into one live row."""

    def retire(self, *, family: Family, entity_id: str) -> EntityBase:
        """Soft-delete one live row without live children."""

    def retire_cascade(self, *, family: Family, entity_id: str) -> CascadeResult:
        """Soft-delete live children, then the row, in one transaction."""

    def count_live_children(
        self, *, family: Family, entity_id: str
    ) -> dict[Family, int]:
        """Live child counts per child family."""

    def list_views(self) -> list[ViewInfo]:
        """Discover existing parent views."""

    def rebuild_missing_views(self) -> list[ViewInfo]:
        """Recreate views for live parents whose view is absent."""
