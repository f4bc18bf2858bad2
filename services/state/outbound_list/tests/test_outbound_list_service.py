"""Behavior tests for dial-list master and entry lifecycle."""

from __future__ import annotations

import pytest

from packages.pbx_shared.errors import ErrorCategory, codes
from services.state.entity_store.domain import Liveness
from services.state.outbound_list.config import OutboundListSettings
from services.state.outbound_list.implementation import DefaultOutboundListService


@pytest.fixture
def service(entity_store, publisher) -> DefaultOutboundListService:
    return DefaultOutboundListService(
        settings=OutboundListSettings(), store=entity_store, publisher=publisher
    )


def test_create_master_applies_template_defaults_and_derives_view_name(
    service, meta, event_recorder
) -> None:
    result = service.create_dial_list_master(meta=meta, payload={"name": "Campaign1"})

    assert result.ok
    master = result.payload.value
    assert master.id
    assert master.dl_table == master.id.replace("-", "_")
    assert master.variables == {}
    assert master.detail is None
    assert event_recorder.kinds() == [("ob.dlma", "create", master.id)]


def test_create_master_ignores_caller_ids_and_view_names(service, meta) -> None:
    result = service.create_dial_list_master(
        meta=meta,
        payload={"id": "mine", "dl_table": "users", "created_at": "yesterday"},
    )

    assert result.ok
    assert result.payload.value.id != "mine"
    assert result.payload.value.dl_table != "users"


def test_create_master_requires_object_variables(service, meta) -> None:
    result = service.create_dial_list_master(meta=meta, payload={"variables": [1, 2]})

    assert not result.ok
    assert result.errors[0].category == ErrorCategory.VALIDATION
    assert result.errors[0].metadata["field"] == "variables"


@pytest.mark.parametrize("operation", ["create", "update"])
def test_explicit_null_variables_are_a_field_error(service, meta, operation) -> None:
    master = service.create_dial_list_master(
        meta=meta, payload={"variables": {"campaign": "spring"}}
    ).payload.value

    if operation == "create":
        result = service.create_dial_list_entry(
            meta=meta, payload={"dlma_id": master.id, "variables": None}
        )
    else:
        result = service.update_dial_list_master(
            meta=meta, dlma_id=master.id, payload={"variables": None}
        )

    assert result.first_category == ErrorCategory.VALIDATION
    assert result.errors[0].metadata["field"] == "variables"
    stored = service.get_dial_list_master(meta=meta, dlma_id=master.id).payload.value
    assert stored.variables == {"campaign": "spring"}


def test_entries_are_listed_through_their_master_only(service, meta) -> None:
    first = service.create_dial_list_master(meta=meta, payload={}).payload.value
    second = service.create_dial_list_master(meta=meta, payload={}).payload.value
    shared = {"name": "same", "number_1": "5551000"}
    mine = service.create_dial_list_entry(
        meta=meta, payload={"dlma_id": first.id, **shared}
    ).payload.value
    service.create_dial_list_entry(meta=meta, payload={"dlma_id": second.id, **shared})

    listed = service.list_dial_list_entries(meta=meta, dlma_id=first.id)

    assert [entry.id for entry in listed.payload.value] == [mine.id]


def test_entry_create_under_unknown_master_is_not_found(service, meta) -> None:
    result = service.create_dial_list_entry(
        meta=meta, payload={"dlma_id": "00000000-0000-4000-8000-000000000000"}
    )

    assert result.first_category == ErrorCategory.NOT_FOUND


def test_delete_master_with_live_entries_needs_force(service, meta, event_recorder) -> None:
    master = service.create_dial_list_master(meta=meta, payload={}).payload.value
    entry = service.create_dial_list_entry(
        meta=meta, payload={"dlma_id": master.id}
    ).payload.value

    refused = service.delete_dial_list_master(meta=meta, dlma_id=master.id)
    assert refused.first_category == ErrorCategory.CONFLICT
    assert refused.errors[0].code == codes.HAS_LIVE_CHILDREN

    forced = service.delete_dial_list_master(meta=meta, dlma_id=master.id, force=True)

    assert forced.ok
    retirement = forced.payload.value
    assert retirement.master.liveness == Liveness.RETIRED
    assert retirement.master.retired_at is not None
    assert [item.id for item in retirement.entries] == [entry.id]
    deletes = [kind for kind in event_recorder.kinds() if kind[1] == "delete"]
    assert deletes == [("ob.dl", "delete", entry.id), ("ob.dlma", "delete", master.id)]


def test_retired_master_is_still_readable_with_include_retired(service, meta) -> None:
    master = service.create_dial_list_master(meta=meta, payload={}).payload.value
    service.delete_dial_list_master(meta=meta, dlma_id=master.id)

    hidden = service.get_dial_list_master(meta=meta, dlma_id=master.id)
    shown = service.get_dial_list_master(
        meta=meta, dlma_id=master.id, include_retired=True
    )

    assert hidden.first_category == ErrorCategory.NOT_FOUND
    assert shown.payload.value.liveness == Liveness.RETIRED


def test_update_entry_merges_fields_and_publishes_update(service, meta, event_recorder) -> None:
    master = service.create_dial_list_master(meta=meta, payload={}).payload.value
    entry = service.create_dial_list_entry(
        meta=meta, payload={"dlma_id": master.id, "name": "before", "email": "a@b.c"}
    ).payload.value

    updated = service.update_dial_list_entry(
        meta=meta, entry_id=entry.id, payload={"name": "after", "id": "ignored"}
    )

    assert updated.ok
    assert updated.payload.value.name == "after"
    assert updated.payload.value.email == "a@b.c"
    assert updated.payload.value.id == entry.id
    assert event_recorder.kinds()[-1] == ("ob.dl", "update", entry.id)


def test_update_entry_cannot_move_it_to_another_master(service, meta) -> None:
    master = service.create_dial_list_master(meta=meta, payload={}).payload.value
    entry = service.create_dial_list_entry(
        meta=meta, payload={"dlma_id": master.id}
    ).payload.value

    result = service.update_dial_list_entry(
        meta=meta, entry_id=entry.id, payload={"dlma_id": "elsewhere"}
    )

    assert result.first_category == ErrorCategory.VALIDATION


def test_views_are_listed_per_master(service, meta) -> None:
    master = service.create_dial_list_master(meta=meta, payload={}).payload.value

    views = service.list_views(meta=meta).payload.value
    rebuilt = service.rebuild_views(meta=meta).payload.value

    assert [view.parent_id for view in views] == [master.id]
    assert rebuilt == []
