"""Concrete outbound list service."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel

from packages.pbx_shared.envelope import Envelope, EnvelopeMeta, failure, success
from packages.pbx_shared.logging import get_logger, public_api_instrumented
from packages.pbx_shared.requests import strip_protected_fields, validate_request
from services.action.event_publisher.announce import announce_change
from services.action.event_publisher.domain import MutationKind
from services.action.event_publisher.service import EventPublisher
from services.state.entity_store.calls import call_store
from services.state.entity_store.domain import Family, LivenessFilter, ViewInfo
from services.state.entity_store.interfaces import EntityStore
from services.state.outbound_list.component import (
    ENTRY_CATEGORY,
    EVENT_TOPIC,
    MASTER_CATEGORY,
    SERVICE_COMPONENT_ID,
)
from services.state.outbound_list.config import OutboundListSettings
from services.state.outbound_list.domain import (
    DialListEntry,
    DialListMaster,
    DialListMasterRetirement,
)
from services.state.outbound_list.service import OutboundListService
from services.state.outbound_list.validation import (
    CreateDialListEntryRequest,
    CreateDialListMasterRequest,
    UpdateDialListEntryRequest,
    UpdateDialListMasterRequest,
)

_LOGGER = get_logger(__name__)


def _liveness(include_retired: bool) -> LivenessFilter:
    return LivenessFilter.ANY if include_retired else LivenessFilter.ACTIVE


def _caller_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Caller input without server-owned keys, including the view name."""
    cleaned = strip_protected_fields(payload)
    cleaned.pop("dl_table", None)
    return cleaned


class DefaultOutboundListService(OutboundListService):
    """Outbound list lifecycle over the Entity Store."""

    def __init__(
        self,
        *,
        settings: OutboundListSettings,
        store: EntityStore,
        publisher: EventPublisher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._publisher = publisher

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_dial_list_master(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialListMaster]:
        request, errors = validate_request(
            meta=meta, model=CreateDialListMasterRequest, payload=_caller_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.DIAL_LIST_MASTER,
                attributes=request.model_dump(),
                idempotency_key=idempotency_key,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if created.created:
            self._announce(meta, MASTER_CATEGORY, MutationKind.CREATE, created.entity)
        return success(meta=meta, payload=created.entity)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dlma_id",)
    )
    def get_dial_list_master(
        self, *, meta: EnvelopeMeta, dlma_id: str, include_retired: bool = False
    ) -> Envelope[DialListMaster]:
        master, errors = call_store(
            lambda: self._store.get(
                family=Family.DIAL_LIST_MASTER,
                entity_id=dlma_id,
                liveness_filter=_liveness(include_retired),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=master)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_dial_list_masters(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[DialListMaster]]:
        masters, errors = call_store(
            lambda: self._store.list(
                family=Family.DIAL_LIST_MASTER,
                limit=limit or self._settings.default_list_limit,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=masters)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dlma_id",)
    )
    def update_dial_list_master(
        self,
        *,
        meta: EnvelopeMeta,
        dlma_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialListMaster]:
        request, errors = validate_request(
            meta=meta, model=UpdateDialListMasterRequest, payload=_caller_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        master, errors = call_store(
            lambda: self._store.update(
                family=Family.DIAL_LIST_MASTER,
                entity_id=dlma_id,
                attributes=request.model_dump(exclude_unset=True),
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, MASTER_CATEGORY, MutationKind.UPDATE, master)
        return success(meta=meta, payload=master)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dlma_id", "force")
    )
    def delete_dial_list_master(
        self, *, meta: EnvelopeMeta, dlma_id: str, force: bool = False
    ) -> Envelope[DialListMasterRetirement]:
        if force:
            cascade, errors = call_store(
                lambda: self._store.retire_cascade(
                    family=Family.DIAL_LIST_MASTER, entity_id=dlma_id
                )
            )
            if errors:
                return failure(meta=meta, errors=errors)
            assert cascade is not None
            master, entries = cascade.parent, list(cascade.children)
        else:
            master, errors = call_store(
                lambda: self._store.retire(
                    family=Family.DIAL_LIST_MASTER, entity_id=dlma_id
                )
            )
            if errors:
                return failure(meta=meta, errors=errors)
            entries = []

        for entry in entries:
            self._announce(meta, ENTRY_CATEGORY, MutationKind.DELETE, entry)
        self._announce(meta, MASTER_CATEGORY, MutationKind.DELETE, master)
        return success(
            meta=meta,
            payload=DialListMasterRetirement(master=master, entries=entries),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_dial_list_entry(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialListEntry]:
        request, errors = validate_request(
            meta=meta, model=CreateDialListEntryRequest, payload=_caller_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.DIAL_LIST_ENTRY,
                attributes=request.model_dump(),
                idempotency_key=idempotency_key,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if created.created:
            self._announce(meta, ENTRY_CATEGORY, MutationKind.CREATE, created.entity)
        return success(meta=meta, payload=created.entity)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("entry_id",)
    )
    def get_dial_list_entry(
        self, *, meta: EnvelopeMeta, entry_id: str, include_retired: bool = False
    ) -> Envelope[DialListEntry]:
        entry, errors = call_store(
            lambda: self._store.get(
                family=Family.DIAL_LIST_ENTRY,
                entity_id=entry_id,
                liveness_filter=_liveness(include_retired),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=entry)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dlma_id",)
    )
    def list_dial_list_entries(
        self, *, meta: EnvelopeMeta, dlma_id: str, include_retired: bool = False
    ) -> Envelope[list[DialListEntry]]:
        entries, errors = call_store(
            lambda: self._store.list_through_view(
                family=Family.DIAL_LIST_MASTER,
                parent_id=dlma_id,
                liveness_filter=_liveness(include_retired),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=entries)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("entry_id",)
    )
    def update_dial_list_entry(
        self,
        *,
        meta: EnvelopeMeta,
        entry_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialListEntry]:
        request, errors = validate_request(
            meta=meta, model=UpdateDialListEntryRequest, payload=_caller_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        entry, errors = call_store(
            lambda: self._store.update(
                family=Family.DIAL_LIST_ENTRY,
                entity_id=entry_id,
                attributes=request.model_dump(exclude_unset=True),
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, ENTRY_CATEGORY, MutationKind.UPDATE, entry)
        return success(meta=meta, payload=entry)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("entry_id",)
    )
    def delete_dial_list_entry(
        self, *, meta: EnvelopeMeta, entry_id: str
    ) -> Envelope[DialListEntry]:
        entry, errors = call_store(
            lambda: self._store.retire(family=Family.DIAL_LIST_ENTRY, entity_id=entry_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, ENTRY_CATEGORY, MutationKind.DELETE, entry)
        return success(meta=meta, payload=entry)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_views(self, *, meta: EnvelopeMeta) -> Envelope[list[ViewInfo]]:
        views, errors = call_store(self._store.list_views)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=views)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def rebuild_views(self, *, meta: EnvelopeMeta) -> Envelope[list[ViewInfo]]:
        rebuilt, errors = call_store(self._store.rebuild_missing_views)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=rebuilt)

    def _announce(
        self,
        meta: EnvelopeMeta,
        category: str,
        mutation_kind: MutationKind,
        entity: BaseModel | None,
    ) -> None:
        assert entity is not None
        announce_change(
            self._publisher,
            meta=meta,
            topic=EVENT_TOPIC,
            category=category,
            mutation_kind=mutation_kind,
            entity=entity,
        )
