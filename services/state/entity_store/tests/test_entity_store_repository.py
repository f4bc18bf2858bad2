"""Behavior tests for the SQL Entity Store on an in-memory SQLite engine."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import create_session_factory
from services.state.entity_store.data.repository import SqlEntityStore, _row_dt
from services.state.entity_store.data.schema import metadata
from services.state.entity_store.data.views import derive_view_name
from services.state.entity_store.domain import Family, Liveness, LivenessFilter
from services.state.entity_store.errors import (
    BackendError,
    DuplicateKey,
    EntityNotFound,
    HasLiveChildren,
    InvalidEntityQuery,
    ParentNotActive,
    StaleUpdate,
)


class _TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self.current = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def _store(*, max_list_limit: int = 1000) -> tuple[SqlEntityStore, ServiceSchemaSessionProvider]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    sessions = ServiceSchemaSessionProvider(
        session_factory=create_session_factory(engine), schema="entity_store"
    )
    store = SqlEntityStore(
        sessions=sessions, clock=_TickingClock(), max_list_limit=max_list_limit
    )
    return store, sessions


def _user(store: SqlEntityStore, username: str = "alice"):
    return store.create(
        family=Family.USER,
        attributes={"username": username, "password": "secret"},
    )


def test_create_assigns_server_fields_and_ignores_caller_supplied_ones() -> None:
    """Ids, liveness and timestamps come from the store, never the caller."""
    store, _ = _store()

    created = store.create(
        family=Family.TRUNK,
        attributes={
            "id": "caller-id",
            "liveness": "retired",
            "created_at": datetime(2000, 1, 1, tzinfo=UTC),
            "name": "carrier",
            "server_uri": "sip:carrier.example",
            "client_uri": "sip:pbx.example",
            "username": "acct",
            "password": "pw",
            "context": "from-trunk",
        },
    )

    assert created.id != "caller-id"
    assert created.liveness == Liveness.ACTIVE
    assert created.created_at.year == 2026
    assert created.updated_at is None
    assert created.status == "Unregistered"


def test_create_rejects_unknown_attributes() -> None:
    store, _ = _store()

    with pytest.raises(InvalidEntityQuery, match="unknown attributes: colour"):
        store.create(family=Family.DIALPLAN_MASTER, attributes={"colour": "blue"})


def test_create_rejects_values_the_family_model_refuses() -> None:
    """Field constraints are enforced before the row is written."""
    store, _ = _store()
    master = store.create(family=Family.DIALPLAN_MASTER, attributes={"name": "main"})

    with pytest.raises(InvalidEntityQuery, match="sequence"):
        store.create(
            family=Family.DIALPLAN_STEP,
            attributes={"dpma_id": master.id, "sequence": 0, "command": "Answer()"},
        )


def test_parent_master_gets_its_view_inside_the_create_transaction() -> None:
    store, _ = _store()

    master = store.create(family=Family.DIAL_LIST_MASTER, attributes={"name": "leads"})

    assert master.dl_table == derive_view_name(master.id)
    views = store.list_views()
    assert [(view.view_name, view.parent_id) for view in views] == [
        (master.dl_table, master.id)
    ]


def test_child_create_requires_an_active_parent() -> None:
    """Missing and retired parents both block child writes."""
    store, _ = _store()

    with pytest.raises(ParentNotActive):
        store.create(
            family=Family.DIAL_LIST_ENTRY,
            attributes={"dlma_id": "00000000-0000-4000-8000-000000000000"},
        )

    master = store.create(family=Family.DIAL_LIST_MASTER, attributes={})
    store.retire(family=Family.DIAL_LIST_MASTER, entity_id=master.id)
    with pytest.raises(ParentNotActive):
        store.create(family=Family.DIAL_LIST_ENTRY, attributes={"dlma_id": master.id})


def test_child_create_requires_the_parent_reference() -> None:
    store, _ = _store()

    with pytest.raises(InvalidEntityQuery, match="dlma_id is required"):
        store.create(family=Family.DIAL_LIST_ENTRY, attributes={"name": "x"})


def test_list_through_view_scopes_rows_to_one_parent() -> None:
    store, _ = _store()
    first = store.create(family=Family.DIAL_LIST_MASTER, attributes={"name": "a"})
    second = store.create(family=Family.DIAL_LIST_MASTER, attributes={"name": "b"})
    kept = store.create(
        family=Family.DIAL_LIST_ENTRY,
        attributes={"dlma_id": first.id, "number_1": "100", "variables": {"k": 1}},
    )
    dropped = store.create(
        family=Family.DIAL_LIST_ENTRY, attributes={"dlma_id": first.id}
    )
    store.create(family=Family.DIAL_LIST_ENTRY, attributes={"dlma_id": second.id})
    store.retire(family=Family.DIAL_LIST_ENTRY, entity_id=dropped.id)

    live = store.list_through_view(family=Family.DIAL_LIST_MASTER, parent_id=first.id)
    every = store.list_through_view(
        family=Family.DIAL_LIST_MASTER,
        parent_id=first.id,
        liveness_filter=LivenessFilter.ANY,
    )

    assert [row.id for row in live] == [kept.id]
    assert live[0].variables == {"k": 1}
    assert live[0].created_at.tzinfo == UTC
    assert {row.id for row in every} == {kept.id, dropped.id}


def test_list_through_view_requires_a_view_family_and_known_parent() -> None:
    store, _ = _store()

    with pytest.raises(InvalidEntityQuery):
        store.list_through_view(family=Family.USER, parent_id="whatever")
    with pytest.raises(EntityNotFound):
        store.list_through_view(
            family=Family.DIAL_LIST_MASTER,
            parent_id="00000000-0000-4000-8000-000000000000",
        )


def test_retire_is_refused_while_children_are_live() -> None:
    store, _ = _store()
    user = _user(store)
    permission = store.create(
        family=Family.PERMISSION, attributes={"user_id": user.id, "permission": "admin"}
    )

    with pytest.raises(HasLiveChildren) as caught:
        store.retire(family=Family.USER, entity_id=user.id)
    assert caught.value.counts == {"permission": 1}

    store.retire(family=Family.PERMISSION, entity_id=permission.id)
    retired = store.retire(family=Family.USER, entity_id=user.id)

    assert retired.liveness == Liveness.RETIRED
    assert retired.retired_at is not None


def test_retired_rows_are_terminal_and_hidden_by_default() -> None:
    store, _ = _store()
    master = store.create(family=Family.DIALPLAN_MASTER, attributes={})
    store.retire(family=Family.DIALPLAN_MASTER, entity_id=master.id)

    with pytest.raises(EntityNotFound):
        store.get(family=Family.DIALPLAN_MASTER, entity_id=master.id)
    with pytest.raises(EntityNotFound):
        store.retire(family=Family.DIALPLAN_MASTER, entity_id=master.id)
    with pytest.raises(EntityNotFound):
        store.update(
            family=Family.DIALPLAN_MASTER, entity_id=master.id, attributes={"name": "x"}
        )

    found = store.get(
        family=Family.DIALPLAN_MASTER,
        entity_id=master.id,
        liveness_filter=LivenessFilter.RETIRED,
    )
    assert found.liveness == Liveness.RETIRED


def test_retire_cascade_retires_children_then_parent() -> None:
    store, _ = _store()
    master = store.create(family=Family.DIALPLAN_MASTER, attributes={})
    steps = [
        store.create(
            family=Family.DIALPLAN_STEP,
            attributes={"dpma_id": master.id, "sequence": sequence, "command": "NoOp()"},
        )
        for sequence in (1, 2)
    ]

    result = store.retire_cascade(family=Family.DIALPLAN_MASTER, entity_id=master.id)

    assert result.parent.liveness == Liveness.RETIRED
    assert [child.id for child in result.children] == [step.id for step in steps]
    assert all(child.liveness == Liveness.RETIRED for child in result.children)
    assert store.count_live_children(
        family=Family.DIALPLAN_MASTER, entity_id=master.id
    ) == {Family.DIALPLAN_STEP: 0}


def test_live_unique_keys_block_duplicates_until_the_holder_retires() -> None:
    store, _ = _store()
    first = _user(store)

    with pytest.raises(DuplicateKey) as caught:
        _user(store)
    assert caught.value.fields == ("username",)

    store.retire(family=Family.USER, entity_id=first.id)
    again = _user(store)
    assert again.id != first.id


def test_update_rejects_a_stale_version_stamp() -> None:
    store, _ = _store()
    user = _user(store)

    updated = store.update(
        family=Family.USER,
        entity_id=user.id,
        attributes={"name": "Alice"},
        expected_updated_at=user.created_at,
    )
    assert updated.name == "Alice"
    assert updated.updated_at is not None
    assert updated.updated_at > user.created_at

    with pytest.raises(StaleUpdate):
        store.update(
            family=Family.USER,
            entity_id=user.id,
            attributes={"name": "Mallory"},
            expected_updated_at=user.created_at,
        )


def test_update_rechecks_live_unique_keys_against_other_rows() -> None:
    store, _ = _store()
    _user(store, "alice")
    bob = _user(store, "bob")

    with pytest.raises(DuplicateKey):
        store.update(family=Family.USER, entity_id=bob.id, attributes={"username": "alice"})

    same = store.update(family=Family.USER, entity_id=bob.id, attributes={"username": "bob"})
    assert same.username == "bob"


def test_update_never_moves_updated_at_backwards() -> None:
    store, _ = _store()
    user = _user(store)
    first = store.update(family=Family.USER, entity_id=user.id, attributes={"name": "a"})
    store._clock = lambda: datetime(2000, 1, 1, tzinfo=UTC)

    second = store.update(family=Family.USER, entity_id=user.id, attributes={"name": "b"})

    assert second.updated_at == first.updated_at


def test_idempotency_key_returns_the_existing_live_row() -> None:
    store, _ = _store()

    first = store.create(
        family=Family.DIALPLAN_MASTER, attributes={"name": "a"}, idempotency_key="k-1"
    )
    second = store.create(
        family=Family.DIALPLAN_MASTER, attributes={"name": "b"}, idempotency_key="k-1"
    )

    assert second.id == first.id
    assert len(store.list(family=Family.DIALPLAN_MASTER)) == 1


def test_keyed_create_reports_insert_then_replay() -> None:
    store, _ = _store()

    first = store.create_idempotent(
        family=Family.DIALPLAN_MASTER, attributes={"name": "a"}, idempotency_key="k-2"
    )
    replay = store.create_idempotent(
        family=Family.DIALPLAN_MASTER, attributes={"name": "a"}, idempotency_key="k-2"
    )

    assert first.created is True
    assert replay.created is False
    assert replay.entity.id == first.entity.id


def test_list_filters_orders_and_caps() -> None:
    store, _ = _store(max_list_limit=2)
    master = store.create(family=Family.DIALPLAN_MASTER, attributes={})
    for sequence in (3, 1, 2):
        store.create(
            family=Family.DIALPLAN_STEP,
            attributes={"dpma_id": master.id, "sequence": sequence, "command": "NoOp()"},
        )

    rows = store.list(
        family=Family.DIALPLAN_STEP,
        where={"dpma_id": master.id},
        order_by=("-sequence",),
        limit=50,
    )

    assert [row.sequence for row in rows] == [3, 2]
    assert store.list(family=Family.DIALPLAN_STEP, where={"name": None}, limit=1)


def test_list_all_ignores_the_cap_and_keeps_order() -> None:
    store, _ = _store(max_list_limit=2)
    master = store.create(family=Family.DIALPLAN_MASTER, attributes={})
    for sequence in (3, 1, 2):
        store.create(
            family=Family.DIALPLAN_STEP,
            attributes={"dpma_id": master.id, "sequence": sequence, "command": "NoOp()"},
        )

    rows = store.list_all(
        family=Family.DIALPLAN_STEP, where={"dpma_id": master.id}, order_by=("sequence",)
    )

    assert [row.sequence for row in rows] == [1, 2, 3]


def test_list_rejects_unknown_columns_and_non_positive_limits() -> None:
    store, _ = _store()

    with pytest.raises(InvalidEntityQuery):
        store.list(family=Family.USER, where={"nope": 1})
    with pytest.raises(InvalidEntityQuery):
        store.list(family=Family.USER, order_by=("idempotency_key",))
    with pytest.raises(InvalidEntityQuery):
        store.list(family=Family.USER, limit=0)


def test_rebuild_missing_views_recreates_only_absent_views() -> None:
    store, sessions = _store()
    kept = store.create(family=Family.DIAL_LIST_MASTER, attributes={})
    lost = store.create(family=Family.DIAL_LIST_MASTER, attributes={})
    with sessions.session() as session:
        session.execute(text(f'DROP VIEW "{lost.dl_table}"'))

    rebuilt = store.rebuild_missing_views()

    assert [view.parent_id for view in rebuilt] == [lost.id]
    assert {view.parent_id for view in store.list_views()} == {kept.id, lost.id}
    assert store.rebuild_missing_views() == []


def test_sqlalchemy_failures_surface_as_backend_errors() -> None:
    class _BrokenSessions:
        def session(self):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        def schema_for(self, session):
            return None

    store = SqlEntityStore(sessions=_BrokenSessions())

    with pytest.raises(BackendError) as caught:
        store.get(family=Family.USER, entity_id="anything")
    assert caught.value.operation == "get"


def test_row_dt_rejects_missing_or_non_datetime_values() -> None:
    with pytest.raises(ValueError, match="expected datetime column for created_at"):
        _row_dt({}, "created_at")

    with pytest.raises(ValueError, match="expected datetime column for created_at"):
        _row_dt({"created_at": "2026-10-19T00:00:00Z"}, "created_at")


def test_row_dt_normalizes_naive_datetimes_to_utc() -> None:
    normalized = _row_dt({"created_at": datetime(2026, 10, 19, 12, 0)}, "created_at")

    assert normalized.tzinfo == UTC
