"""Concrete trunk service.

The PBX and the store must agree on every live trunk, so each mutation that
touches both runs as a saga and is announced only after both sides succeeded.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from packages.pbx_shared.envelope import Envelope, EnvelopeMeta, failure, success
from packages.pbx_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    internal_error,
)
from packages.pbx_shared.logging import get_logger, public_api_instrumented
from packages.pbx_shared.requests import strip_protected_fields, validate_request
from packages.pbx_shared.saga import Saga
from resources.adapters.pbx.adapter import PbxAdapter, TrunkSpec
from resources.adapters.pbx.calls import call_pbx
from services.action.event_publisher.announce import announce_change
from services.action.event_publisher.domain import MutationKind
from services.action.event_publisher.service import EventPublisher
from services.state.entity_store.calls import call_store
from services.state.entity_store.domain import Family, LivenessFilter
from services.state.entity_store.interfaces import EntityStore
from services.state.trunk.component import (
    EVENT_TOPIC,
    SERVICE_COMPONENT_ID,
    TRUNK_CATEGORY,
)
from services.state.trunk.config import TrunkSettings
from services.state.trunk.domain import Trunk, TrunkInfo, trunk_spec
from services.state.trunk.service import TrunkService
from services.state.trunk.validation import CreateTrunkRequest, UpdateTrunkRequest

_LOGGER = get_logger(__name__)


class DefaultTrunkService(TrunkService):
    """Trunk lifecycle over the Entity Store and the PBX adapter."""

    def __init__(
        self,
        *,
        settings: TrunkSettings,
        store: EntityStore,
        publisher: EventPublisher,
        pbx: PbxAdapter,
    ) -> None:
        self._settings = settings
        self._store = store
        self._publisher = publisher
        self._pbx = pbx

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def create_trunk(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[TrunkInfo]:
        request, errors = validate_request(
            meta=meta, model=CreateTrunkRequest, payload=strip_protected_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        existing, errors = call_store(
            lambda: self._store.list(
                family=Family.TRUNK, where={"name": request.name}, limit=1
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        if existing:
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        f"trunk {request.name!r} already exists",
                        code=codes.ALREADY_EXISTS,
                        metadata={"field": "name"},
                    )
                ],
            )

        saga = Saga("create_trunk")
        spec = TrunkSpec(
            **request.model_dump(exclude={"contact", "hostname"}),
            contact=request.contact or "",
            hostname=request.hostname or "",
        )
        _, errors = call_pbx("create_trunk", lambda: self._pbx.create_trunk(spec=spec))
        if errors:
            return failure(meta=meta, errors=errors)
        saga.record("pbx_trunk", lambda: self._pbx.delete_trunk(name=spec.name))

        trunk, errors = call_store(
            lambda: self._store.create(
                family=Family.TRUNK, attributes=request.model_dump()
            )
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert isinstance(trunk, Trunk)
        saga.record("trunk", lambda: self._retire(trunk.id))

        errors = self._reload()
        if errors:
            return self._rolled_back(meta, saga, errors)

        info = TrunkInfo.from_trunk(trunk)
        self._announce(meta, MutationKind.CREATE, info)
        return success(meta=meta, payload=info)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("trunk_id",)
    )
    def get_trunk(
        self, *, meta: EnvelopeMeta, trunk_id: str, include_retired: bool = False
    ) -> Envelope[TrunkInfo]:
        trunk, errors = call_store(
            lambda: self._store.get(
                family=Family.TRUNK,
                entity_id=trunk_id,
                liveness_filter=(
                    LivenessFilter.ANY if include_retired else LivenessFilter.ACTIVE
                ),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(trunk, Trunk)
        return success(meta=meta, payload=TrunkInfo.from_trunk(trunk))

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_trunks(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[TrunkInfo]]:
        trunks, errors = call_store(
            lambda: self._store.list(
                family=Family.TRUNK, limit=limit or self._settings.default_list_limit
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return success(
            meta=meta,
            payload=[
                TrunkInfo.from_trunk(trunk)
                for trunk in trunks or []
                if isinstance(trunk, Trunk)
            ],
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("trunk_id",)
    )
    def update_trunk(
        self,
        *,
        meta: EnvelopeMeta,
        trunk_id: str,
        payload: Mapping[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> Envelope[TrunkInfo]:
        request, errors = validate_request(
            meta=meta, model=UpdateTrunkRequest, payload=strip_protected_fields(payload)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        current, errors = call_store(
            lambda: self._store.get(family=Family.TRUNK, entity_id=trunk_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(current, Trunk)

        changes = request.model_dump(exclude_unset=True)
        updated, errors = call_store(
            lambda: self._store.update(
                family=Family.TRUNK,
                entity_id=trunk_id,
                attributes=changes,
                expected_updated_at=expected_updated_at,
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(updated, Trunk)

        saga = Saga("update_trunk")
        previous = {key: getattr(current, key) for key in changes}
        saga.record(
            "trunk",
            lambda: self._store.update(
                family=Family.TRUNK, entity_id=trunk_id, attributes=previous
            ),
        )
        _, errors = call_pbx(
            "update_trunk",
            lambda: self._pbx.update_trunk(spec=trunk_spec(updated)),
        )
        if errors:
            return self._rolled_back(meta, saga, errors)
        saga.record(
            "pbx_trunk",
            lambda: self._pbx.update_trunk(spec=trunk_spec(current)),
        )
        errors = self._reload()
        if errors:
            return self._rolled_back(meta, saga, errors)

        info = TrunkInfo.from_trunk(updated)
        self._announce(meta, MutationKind.UPDATE, info)
        return success(meta=meta, payload=info)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("trunk_id",)
    )
    def delete_trunk(self, *, meta: EnvelopeMeta, trunk_id: str) -> Envelope[TrunkInfo]:
        current, errors = call_store(
            lambda: self._store.get(family=Family.TRUNK, entity_id=trunk_id)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(current, Trunk)

        saga = Saga("delete_trunk")
        _, errors = call_pbx(
            "delete_trunk", lambda: self._pbx.delete_trunk(name=current.name)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        saga.record(
            "pbx_trunk", lambda: self._pbx.create_trunk(spec=trunk_spec(current))
        )

        retired, errors = call_store(lambda: self._retire(trunk_id))
        if errors:
            return self._rolled_back(meta, saga, errors)
        assert isinstance(retired, Trunk)

        # The row is already retired; a failed reload only delays the PBX.
        self._reload()
        info = TrunkInfo.from_trunk(retired)
        self._announce(meta, MutationKind.DELETE, info)
        return success(meta=meta, payload=info)

    def _retire(self, trunk_id: str) -> Trunk:
        retired = self._store.retire(family=Family.TRUNK, entity_id=trunk_id)
        assert isinstance(retired, Trunk)
        return retired

    def _reload(self) -> list[ErrorDetail]:
        if not self._settings.reload_after_change:
            return []
        _, errors = call_pbx("reload", self._pbx.reload)
        return errors

    def _rolled_back(
        self, meta: EnvelopeMeta, saga: Saga, errors: list[ErrorDetail]
    ) -> Envelope[Any]:
        report = saga.compensate()
        if not report.clean:
            errors = [
                *errors,
                internal_error(
                    f"{saga.name} rollback incomplete",
                    metadata={"failed_steps": ",".join(report.failed)},
                ),
            ]
        return failure(meta=meta, errors=errors)

    def _announce(
        self, meta: EnvelopeMeta, mutation_kind: MutationKind, info: TrunkInfo
    ) -> None:
        announce_change(
            self._publisher,
            meta=meta,
            topic=EVENT_TOPIC,
            category=TRUNK_CATEGORY,
            mutation_kind=mutation_kind,
            entity=info,
        )
