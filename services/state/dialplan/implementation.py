"""Concrete dialplan service.

Steps are read with a parameterized ``dpma_id`` filter ordered by
``sequence``; only dial-list masters carry a synthesized view.
"""

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
from services.state.dialplan.component import (
    EVENT_TOPIC,
    MASTER_CATEGORY,
    SERVICE_COMPONENT_ID,
    STEP_CATEGORY,
)
from services.state.dialplan.config import DialplanSettings
from services.state.dialplan.domain import (
    DialplanMaster,
    DialplanMasterRetirement,
    DialplanStep,
)
from services.state.dialplan.service import DialplanService
from services.state.dialplan.validation import (
    CreateDialplanMasterRequest,
    CreateDialplanStepRequest,
    UpdateDialplanMasterRequest,
    UpdateDialplanStepRequest,
)
from services.state.entity_store.calls import call_store
from services.state.entity_store.domain import Family, LivenessFilter
from services.state.entity_store.interfaces import EntityStore

_LOGGER = get_logger(__name__)


def _liveness(include_retired: bool) -> LivenessFilter:
    return LivenessFilter.ANY if include_retired else LivenessFilter.ACTIVE


class DefaultDialplanService(DialplanService):
    """Dialplan lifecycle over the Entity Store."""

    def __init__(
        self,
        *,
        settings: DialplanSettings,
        store: EntityStore,
        publisher: EventPublisher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._publisher = publisher

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_dialplan_master(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialplanMaster]:
        request, errors = validate_request(
            meta=meta,
            model=CreateDialplanMasterRequest,
            payload=strip_protected_fields(payload),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.DIALPLAN_MASTER,
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
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dpma_id",)
    )
    def get_dialplan_master(
        self, *, meta: EnvelopeMeta, dpma_id: str, include_retired: bool = False
    ) -> Envelope[DialplanMaster]:
        master, errors = call_store(
            lambda: self._store.get(
                family=Family.DIALPLAN_MASTER,
                entity_id=dpma_id,
                liveness_filter=_liveness(include_retired),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=master)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_dialplan_masters(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[DialplanMaster]]:
        masters, errors = call_store(
            lambda: self._store.list(
                family=Family.DIALPLAN_MASTER,
                limit=limit or self._settings.default_list_limit,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=masters)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dpma_id",)
    )
    def update_dialplan_master(
        self,
        *,
        meta: EnvelopeMeta,
        dpma_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialplanMaster]:
        request, errors = validate_request(
            meta=meta,
            model=UpdateDialplanMasterRequest,
            payload=strip_protected_fields(payload),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        master, errors = call_store(
            lambda: self._store.update(
                family=Family.DIALPLAN_MASTER,
                entity_id=dpma_id,
                attributes=request.model_dump(exclude_unset=True),
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, MASTER_CATEGORY, MutationKind.UPDATE, master)
        return success(meta=meta, payload=master)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dpma_id", "force")
    )
    def delete_dialplan_master(
        self, *, meta: EnvelopeMeta, dpma_id: str, force: bool = False
    ) -> Envelope[DialplanMasterRetirement]:
        if force:
            cascade, errors = call_store(
                lambda: self._store.retire_cascade(
                    family=Family.DIALPLAN_MASTER, entity_id=dpma_id
                )
            )
            if errors:
                return failure(meta=meta, errors=errors)
            assert cascade is not None
            master, steps = cascade.parent, list(cascade.children)
        else:
            master, errors = call_store(
                lambda: self._store.retire(
                    family=Family.DIALPLAN_MASTER, entity_id=dpma_id
                )
            )
            if errors:
                return failure(meta=meta, errors=errors)
            steps = []

        for step in steps:
            self._announce(meta, STEP_CATEGORY, MutationKind.DELETE, step)
        self._announce(meta, MASTER_CATEGORY, MutationKind.DELETE, master)
        return success(
            meta=meta, payload=DialplanMasterRetirement(master=master, steps=steps)
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_dialplan_step(
        self,
        *,
        meta: EnvelopeMeta,
        payload: Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> Envelope[DialplanStep]:
        request, errors = validate_request(
            meta=meta,
            model=CreateDialplanStepRequest,
            payload=strip_protected_fields(payload),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        created, errors = call_store(
            lambda: self._store.create_idempotent(
                family=Family.DIALPLAN_STEP,
                attributes=request.model_dump(),
                idempotency_key=idempotency_key,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if created.created:
            self._announce(meta, STEP_CATEGORY, MutationKind.CREATE, created.entity)
        return success(meta=meta, payload=created.entity)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("step_id",)
    )
    def get_dialplan_step(
        self, *, meta: EnvelopeMeta, step_id: str, include_retired: bool = False
    ) -> Envelope[DialplanStep]:
        step, errors = call_store(
            lambda: self._store.get(
                family=Family.DIALPLAN_STEP,
                entity_id=step_id,
                liveness_filter=_liveness(include_retired),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=step)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("dpma_id",)
    )
    def list_dialplan_steps(
        self, *, meta: EnvelopeMeta, dpma_id: str, include_retired: bool = False
    ) -> Envelope[list[DialplanStep]]:
        liveness = _liveness(include_retired)
        _, errors = call_store(
            lambda: self._store.get(
                family=Family.DIALPLAN_MASTER,
                entity_id=dpma_id,
                liveness_filter=liveness,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)

        steps, errors = call_store(
            lambda: self._store.list_all(
                family=Family.DIALPLAN_STEP,
                where={"dpma_id": dpma_id},
                liveness_filter=liveness,
                order_by=("sequence", "created_at"),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=steps)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("step_id",)
    )
    def update_dialplan_step(
        self,
        *,
        meta: EnvelopeMeta,
        step_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[DialplanStep]:
        request, errors = validate_request(
            meta=meta,
            model=UpdateDialplanStepRequest,
            payload=strip_protected_fields(payload),
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        step, errors = call_store(
            lambda: self._store.update(
                family=Family.DIALPLAN_STEP,
                entity_id=step_id,
                attributes=request.model_dump(exclude_unset=True),
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, STEP_CATEGORY, MutationKind.UPDATE, step)
        return success(meta=meta, payload=step)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("step_id",)
    )
    def delete_dialplan_step(
        self, *, meta: EnvelopeMeta, step_id: str
    ) -> Envelope[DialplanStep]:
        step, errors = call_store(
            lambda: self._store.retire(family=Family.DIALPLAN_STEP, entity_id=step_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        self._announce(meta, STEP_CATEGORY, MutationKind.DELETE, step)
        return success(meta=meta, payload=step)

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
