"""Authoritative SQL repository for every entity family.

Every public method is one transaction. Writes lock the rows they decide on
(``FOR UPDATE`` on the target, ``FOR SHARE`` on a child's parent) so that the
live-child count a retire depends on cannot change underneath it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from copy import deepcopy
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import Column, Select, Table, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from packages.pbx_shared.ids import generate_entity_id
from packages.pbx_shared.logging import fields, log_context
from services.state.entity_store.domain import (
    CascadeResult,
    CreateResult,
    EntityBase,
    Family,
    Liveness,
    LivenessFilter,
    ViewInfo,
)
from services.state.entity_store.errors import (
    BackendError,
    DuplicateKey,
    EntityNotFound,
    HasLiveChildren,
    InvalidEntityQuery,
    ParentNotActive,
    StaleUpdate,
    StoreError,
)
from services.state.entity_store.interfaces import EntityStore, SessionProvider

from .families import (
    COMMON_COLUMNS,
    FAMILY_SPECS,
    FamilySpec,
    child_specs,
    family_spec,
)
from .views import ViewSynthesizer, derive_view_name

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlEntityStore(EntityStore):
    """SQL repository over the Entity Store's tables and views."""

    def __init__(
        self,
        *,
        sessions: SessionProvider,
        views: ViewSynthesizer | None = None,
        clock: Clock = _utcnow,
        max_list_limit: int = 1000,
    ) -> None:
        self._sessions = sessions
        self._views = views or ViewSynthesizer()
        self._clock = clock
        self._max_list_limit = max_list_limit

    def create(
        self,
        *,
        family: Family,
        attributes: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> EntityBase:
        """Insert one row; caller-supplied ids, liveness and timestamps are ignored."""
        return self.create_idempotent(
            family=family, attributes=attributes, idempotency_key=idempotency_key
        ).entity

    def create_idempotent(
        self,
        *,
        family: Family,
        attributes: Mapping[str, Any],
        idempotency_key: str | None,
    ) -> CreateResult:
        """Insert one row, or return the live row already holding ``idempotency_key``."""
        spec = family_spec(family)
        values = _writable_values(spec, attributes)
        with self._guard(spec, "create"), self._sessions.session() as session:
            if idempotency_key is not None:
                existing = self._find_by_idempotency_key(session, spec, idempotency_key)
                if existing is not None:
                    return CreateResult(entity=existing, created=False)

            if spec.parent_column is not None:
                self._require_live_parent(session, spec, values.get(spec.parent_column))

            entity_id = generate_entity_id()
            row: dict[str, Any] = {
                **deepcopy(dict(spec.defaults)),
                **values,
                "id": entity_id,
                "liveness": Liveness.ACTIVE,
                "created_at": self._now(),
                "updated_at": None,
                "retired_at": None,
            }
            if spec.view_column is not None:
                row[spec.view_column] = derive_view_name(entity_id)
            record = _validated(spec, row)
            data = _column_values(record)
            self._check_live_unique(session, spec, data, exclude_id=None)

            session.execute(
                insert(spec.table).values(**data, idempotency_key=idempotency_key)
            )
            if spec.has_view:
                self._views.materialize(
                    session,
                    parent_id=entity_id,
                    schema=self._sessions.schema_for(session),
                )
            return CreateResult(
                entity=self._read(session, spec, entity_id, LivenessFilter.ANY),
                created=True,
            )

    def get(
        self,
        *,
        family: Family,
        entity_id: str,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
    ) -> EntityBase:
        spec = family_spec(family)
        with self._guard(spec, "get"), self._sessions.session() as session:
            return self._read(session, spec, entity_id, LivenessFilter(liveness_filter))

    def list(
        self,
        *,
        family: Family,
        where: Mapping[str, Any] | None = None,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
        order_by: Sequence[str] = ("created_at",),
        limit: int | None = None,
    ) -> list[EntityBase]:
        """Equality-filtered read; ``-column`` in ``order_by`` sorts descending.

        Results are capped at ``max_list_limit`` even when ``limit`` is unset.
        """
        spec = family_spec(family)
        if limit is not None and limit <= 0:
            raise InvalidEntityQuery(family=spec.family.value, reason="limit must be > 0")
        effective = self._max_list_limit if limit is None else min(limit, self._max_list_limit)
        statement = _filtered_select(spec, where, liveness_filter, order_by)
        statement = statement.limit(effective)
        with self._guard(spec, "list"), self._sessions.session() as session:
            rows = session.execute(statement).mappings().all()
            return [_to_entity(spec, row) for row in rows]

    def list_all(
        self,
        *,
        family: Family,
        where: Mapping[str, Any] | None = None,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
        order_by: Sequence[str] = ("created_at",),
    ) -> list[EntityBase]:
        """Same filter as ``list`` with no row cap, for scripts walked in full."""
        spec = family_spec(family)
        statement = _filtered_select(spec, where, liveness_filter, order_by)
        with self._guard(spec, "list_all"), self._sessions.session() as session:
            rows = session.execute(statement).mappings().all()
            return [_to_entity(spec, row) for row in rows]

    def list_through_view(
        self,
        *,
        family: Family,
        parent_id: str,
        liveness_filter: LivenessFilter = LivenessFilter.ACTIVE,
    ) -> list[EntityBase]:
        """Children of ``parent_id`` read from the parent's view."""
        spec = family_spec(family)
        if not spec.has_view:
            raise InvalidEntityQuery(
                family=spec.family.value, reason="family has no parent view"
            )
        (child,) = child_specs(spec.family)
        selected = LivenessFilter(liveness_filter)
        liveness = None if selected == LivenessFilter.ANY else selected.value

        with self._guard(spec, "list_through_view"), self._sessions.session() as session:
            self._read(session, spec, parent_id, LivenessFilter.ANY)
            rows = self._views.select_rows(
                session, parent_id=parent_id, liveness=liveness
            )
            return [_to_entity(child, row) for row in rows]

    def update(
        self,
        *,
        family: Family,
        entity_id: str,
        attributes: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> EntityBase:
        """Merge ``attributes`` into one live row.

        ``expected_updated_at`` is compared with the row's version stamp
        (``updated_at``, or ``created_at`` before the first update).
        """
        spec = family_spec(family)
        values = _writable_values(spec, attributes)
        with self._guard(spec, "update"), self._sessions.session() as session:
            current = self._read(
                session, spec, entity_id, LivenessFilter.ACTIVE, lock=True
            )
            if (
                expected_updated_at is not None
                and _as_utc(expected_updated_at) != current.version_stamp
            ):
                raise StaleUpdate(family=spec.family.value, entity_id=entity_id)

            parent_column = spec.parent_column
            if (
                parent_column is not None
                and parent_column in values
                and values[parent_column] != getattr(current, parent_column)
            ):
                self._require_live_parent(session, spec, values[parent_column])

            stamp = self._stamp(current.version_stamp)
            record = _validated(
                spec, {**current.model_dump(), **values, "updated_at": stamp}
            )
            data = _column_values(record)
            if any(name in values for key in spec.live_unique for name in key):
                self._check_live_unique(session, spec, data, exclude_id=entity_id)

            changes = {name: data[name] for name in values}
            changes["updated_at"] = stamp
            session.execute(
                update(spec.table).where(spec.table.c.id == entity_id).values(**changes)
            )
            return self._read(session, spec, entity_id, LivenessFilter.ANY)

    def retire(self, *, family: Family, entity_id: str) -> EntityBase:
        """Soft-delete one row; refused while any child family has live rows."""
        spec = family_spec(family)
        with self._guard(spec, "retire"), self._sessions.session() as session:
            current = self._read(
                session, spec, entity_id, LivenessFilter.ACTIVE, lock=True
            )
            counts = self._live_child_counts(session, spec, entity_id)
            live = {child.value: count for child, count in counts.items() if count > 0}
            if live:
                raise HasLiveChildren(
                    family=spec.family.value, entity_id=entity_id, counts=live
                )
            return self._mark_retired(session, spec, current)

    def retire_cascade(self, *, family: Family, entity_id: str) -> CascadeResult:
        spec = family_spec(family)
        with self._guard(spec, "retire_cascade"), self._sessions.session() as session:
            current = self._read(
                session, spec, entity_id, LivenessFilter.ACTIVE, lock=True
            )
            children = self._retire_descendants(session, spec, entity_id)
            parent = self._mark_retired(session, spec, current)
            return CascadeResult(parent=parent, children=tuple(children))

    def count_live_children(
        self, *, family: Family, entity_id: str
    ) -> dict[Family, int]:
        spec = family_spec(family)
        with self._guard(spec, "count_live_children"), self._sessions.session() as session:
            self._read(session, spec, entity_id, LivenessFilter.ANY)
            return self._live_child_counts(session, spec, entity_id)

    def list_views(self) -> list[ViewInfo]:
        spec = family_spec(Family.DIAL_LIST_MASTER)
        with self._guard(spec, "list_views"), self._sessions.session() as session:
            return self._views.list_views(
                session, schema=self._sessions.schema_for(session)
            )

    def rebuild_missing_views(self) -> list[ViewInfo]:
        """Recreate absent views for live parents; existing views are untouched."""
        rebuilt: list[ViewInfo] = []
        for spec in FAMILY_SPECS.values():
            if not spec.has_view:
                continue
            with self._guard(spec, "rebuild_views"), self._sessions.session() as session:
                schema = self._sessions.schema_for(session)
                present = {
                    info.parent_id
                    for info in self._views.list_views(session, schema=schema)
                }
                parent_ids = (
                    session.execute(
                        select(spec.table.c.id)
                        .where(_liveness_clause(spec.table, LivenessFilter.ACTIVE))
                        .order_by(spec.table.c.created_at.asc())
                    )
                    .scalars()
                    .all()
                )
                for parent_id in parent_ids:
                    if parent_id in present:
                        continue
                    view_name = self._views.materialize(
                        session, parent_id=parent_id, schema=schema
                    )
                    with log_context(
                        {fields.FAMILY: spec.family.value, fields.ENTITY_ID: parent_id}
                    ):
                        _LOGGER.info("Rebuilt missing parent view")
                    rebuilt.append(ViewInfo(view_name=view_name, parent_id=parent_id))
        return rebuilt

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def _stamp(self, previous: datetime) -> datetime:
        """Current time, never earlier than ``previous``."""
        return max(self._now(), previous)

    def _read(
        self,
        session: Session,
        spec: FamilySpec,
        entity_id: str,
        liveness_filter: LivenessFilter,
        *,
        lock: bool = False,
    ) -> EntityBase:
        table = spec.table
        statement = select(table).where(table.c.id == entity_id)
        clause = _liveness_clause(table, liveness_filter)
        if clause is not None:
            statement = statement.where(clause)
        if lock:
            statement = statement.with_for_update()
        row = session.execute(statement).mappings().one_or_none()
        if row is None:
            raise EntityNotFound(family=spec.family.value, entity_id=entity_id)
        return _to_entity(spec, row)

    def _find_by_idempotency_key(
        self, session: Session, spec: FamilySpec, key: str
    ) -> EntityBase | None:
        table = spec.table
        row = (
            session.execute(
                select(table).where(
                    table.c.idempotency_key == key,
                    _liveness_clause(table, LivenessFilter.ACTIVE),
                )
            )
            .mappings()
            .one_or_none()
        )
        return None if row is None else _to_entity(spec, row)

    def _require_live_parent(
        self, session: Session, spec: FamilySpec, parent_id: object
    ) -> None:
        """Lock the parent row shared and require it ACTIVE."""
        assert spec.parent is not None and spec.parent_column is not None
        if not isinstance(parent_id, str) or parent_id == "":
            raise InvalidEntityQuery(
                family=spec.family.value, reason=f"{spec.parent_column} is required"
            )
        parent = family_spec(spec.parent)
        row = session.execute(
            select(parent.table.c.liveness)
            .where(parent.table.c.id == parent_id)
            .with_for_update(read=True)
        ).one_or_none()
        if row is None or row.liveness != Liveness.ACTIVE.value:
            raise ParentNotActive(
                family=spec.family.value,
                parent_family=parent.family.value,
                parent_id=parent_id,
            )

    def _check_live_unique(
        self,
        session: Session,
        spec: FamilySpec,
        data: Mapping[str, Any],
        *,
        exclude_id: str | None,
    ) -> None:
        table = spec.table
        for key in spec.live_unique:
            statement = select(table.c.id).where(
                *[table.c[name] == data[name] for name in key],
                _liveness_clause(table, LivenessFilter.ACTIVE),
            )
            if exclude_id is not None:
                statement = statement.where(table.c.id != exclude_id)
            if session.execute(statement.limit(1)).first() is not None:
                raise DuplicateKey(family=spec.family.value, fields=key)

    def _live_child_counts(
        self, session: Session, spec: FamilySpec, entity_id: str
    ) -> dict[Family, int]:
        counts: dict[Family, int] = {}
        for child in child_specs(spec.family):
            assert child.parent_column is not None
            counts[child.family] = int(
                session.execute(
                    select(func.count())
                    .select_from(child.table)
                    .where(
                        child.table.c[child.parent_column] == entity_id,
                        _liveness_clause(child.table, LivenessFilter.ACTIVE),
                    )
                ).scalar_one()
            )
        return counts

    def _retire_descendants(
        self, session: Session, spec: FamilySpec, entity_id: str
    ) -> list[EntityBase]:
        retired: list[EntityBase] = []
        for child in child_specs(spec.family):
            assert child.parent_column is not None
            rows = (
                session.execute(
                    select(child.table)
                    .where(
                        child.table.c[child.parent_column] == entity_id,
                        _liveness_clause(child.table, LivenessFilter.ACTIVE),
                    )
                    .order_by(child.table.c.created_at.asc(), child.table.c.id.asc())
                    .with_for_update()
                )
                .mappings()
                .all()
            )
            for row in rows:
                current = _to_entity(child, row)
                retired.extend(self._retire_descendants(session, child, current.id))
                retired.append(self._mark_retired(session, child, current))
        return retired

    def _mark_retired(
        self, session: Session, spec: FamilySpec, current: EntityBase
    ) -> EntityBase:
        session.execute(
            update(spec.table)
            .where(spec.table.c.id == current.id)
            .values(
                liveness=Liveness.RETIRED.value,
                retired_at=self._stamp(current.version_stamp),
            )
        )
        return self._read(session, spec, current.id, LivenessFilter.ANY)

    @contextmanager
    def _guard(self, spec: FamilySpec, operation: str) -> Iterator[None]:
        """Translate SQLAlchemy failures into store errors."""
        try:
            yield
        except StoreError:
            raise
        except IntegrityError as exc:
            raise DuplicateKey(family=spec.family.value) from exc
        except SQLAlchemyError as exc:
            with log_context({fields.FAMILY: spec.family.value}):
                _LOGGER.warning(
                    "Entity store %s failed: %s", operation, type(exc).__name__
                )
            raise BackendError(
                family=spec.family.value, operation=operation, cause=exc
            ) from exc


def _writable_values(spec: FamilySpec, attributes: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-copied caller attributes minus protected keys; unknown keys fail."""
    allowed = spec.attribute_columns
    values: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in attributes.items():
        if key in COMMON_COLUMNS or key == spec.view_column:
            continue
        if key not in allowed:
            unknown.append(key)
            continue
        values[key] = deepcopy(value)
    if unknown:
        raise InvalidEntityQuery(
            family=spec.family.value,
            reason=f"unknown attributes: {', '.join(sorted(unknown))}",
        )
    return values


def _validated(spec: FamilySpec, row: Mapping[str, Any]) -> EntityBase:
    try:
        return spec.model.model_validate(dict(row))
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidEntityQuery(
            family=spec.family.value,
            reason=f"{location}: {first.get('msg', 'invalid value')}",
        ) from None


def _column_values(record: EntityBase) -> dict[str, Any]:
    data = record.model_dump(mode="python")
    data["liveness"] = record.liveness.value
    return data


def _queryable_column(spec: FamilySpec, name: str) -> Column:
    if name == "idempotency_key" or name not in spec.table.c:
        raise InvalidEntityQuery(
            family=spec.family.value, reason=f"unknown column: {name}"
        )
    return spec.table.c[name]


def _liveness_clause(table: Table, liveness_filter: LivenessFilter):
    if liveness_filter == LivenessFilter.ANY:
        return None
    return table.c.liveness == liveness_filter.value


def _filtered_select(
    spec: FamilySpec,
    where: Mapping[str, Any] | None,
    liveness_filter: LivenessFilter,
    order_by: Sequence[str],
) -> Select:
    table = spec.table
    clauses = [_liveness_clause(table, LivenessFilter(liveness_filter))]
    for name, value in (where or {}).items():
        column = _queryable_column(spec, name)
        clauses.append(column.is_(None) if value is None else column == value)

    ordering = []
    for item in order_by:
        descending = item.startswith("-")
        column = _queryable_column(spec, item.lstrip("-"))
        ordering.append(column.desc() if descending else column.asc())
    ordering.append(table.c.id.asc())

    return (
        select(table)
        .where(*[clause for clause in clauses if clause is not None])
        .order_by(*ordering)
    )


def _to_entity(spec: FamilySpec, row: Mapping[str, Any]) -> EntityBase:
    """Map one SQL row to the family's typed record."""
    data = {name: row[name] for name in spec.model.model_fields}
    data["created_at"] = _row_dt(row, "created_at")
    data["updated_at"] = _row_dt_optional(row, "updated_at")
    data["retired_at"] = _row_dt_optional(row, "retired_at")
    return spec.model.model_validate(data)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _row_dt(row: Mapping[str, Any], column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from a SQL row."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    return _as_utc(value)


def _row_dt_optional(row: Mapping[str, Any], column: str) -> datetime | None:
    if row.get(column) is None:
        return None
    return _row_dt(row, column)


__all__ = ["SqlEntityStore"]
