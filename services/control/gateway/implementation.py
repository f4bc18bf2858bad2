"""Concrete inbound gateway.

Requests are authorized before routing: an unknown token is forbidden and
manager families need the admin permission. Envelope errors are reduced to
one outcome plus public messages; server-side failures carry a generic
message so storage or PBX detail never reaches the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from packages.pbx_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta, new_meta
from packages.pbx_shared.errors import ErrorCategory, ErrorDetail, codes
from packages.pbx_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from services.control.gateway.component import SERVICE_COMPONENT_ID
from services.control.gateway.config import GatewaySettings
from services.control.gateway.domain import (
    GatewayResponse,
    InboundRequest,
    Operation,
    Outcome,
    PublicError,
)
from services.control.gateway.interfaces import IdentityResolver
from services.control.gateway.service import Gateway
from services.state.account.service import AccountService
from services.state.dialplan.service import DialplanService
from services.state.entity_store.domain import Family
from services.state.outbound_list.service import OutboundListService
from services.state.trunk.service import TrunkService

_LOGGER = get_logger(__name__)

_SOURCE = "gateway"

Route = Callable[[EnvelopeMeta, InboundRequest], Envelope[Any]]


class _MissingIdentifier(ValueError):
    pass


def _id(request: InboundRequest) -> str:
    if not request.id:
        raise _MissingIdentifier(f"{request.operation.value} on {request.family.value} needs an id")
    return request.id


class DefaultGateway(Gateway):
    """Routes authorized requests to the lifecycle services."""

    def __init__(
        self,
        *,
        settings: GatewaySettings,
        identities: IdentityResolver,
        outbound: OutboundListService,
        dialplan: DialplanService,
        account: AccountService,
        trunk: TrunkService,
    ) -> None:
        self._settings = settings
        self._identities = identities
        self._routes = _build_routes(
            outbound=outbound, dialplan=dialplan, account=account, trunk=trunk
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def handle(self, *, token: str, request: InboundRequest) -> GatewayResponse:
        identity = self._identities.resolve(token) if token else None
        if identity is None:
            return _refusal(codes.UNAUTHENTICATED, "unknown or missing token")
        if request.family in self._settings.manager_families and not identity.has(
            self._settings.admin_permission
        ):
            return _refusal(codes.PERMISSION_DENIED, "admin permission required")

        route = self._routes.get((request.family, request.operation))
        if route is None:
            return GatewayResponse(
                outcome=Outcome.BAD_INPUT,
                errors=[
                    PublicError(
                        code=codes.INVALID_ARGUMENT,
                        message=(
                            f"{request.operation.value} is not supported "
                            f"for {request.family.value}"
                        ),
                    )
                ],
            )

        meta = new_meta(
            kind=EnvelopeKind.COMMAND, source=_SOURCE, principal=identity.principal
        )
        with log_context(
            {
                fields.TRACE_ID: meta.trace_id,
                fields.PRINCIPAL: identity.principal,
                fields.FAMILY: request.family.value,
            }
        ):
            try:
                result = route(meta, request)
            except _MissingIdentifier as exc:
                return GatewayResponse(
                    outcome=Outcome.BAD_INPUT,
                    errors=[
                        PublicError(
                            code=codes.MISSING_REQUIRED_FIELD, message=str(exc), field="id"
                        )
                    ],
                )
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Gateway route raised")
                return GatewayResponse(
                    outcome=Outcome.SERVER_ERROR,
                    errors=[
                        PublicError(code=codes.INTERNAL_ERROR, message="internal error")
                    ],
                )
        return _response(result)


def _refusal(code: str, message: str) -> GatewayResponse:
    return GatewayResponse(
        outcome=Outcome.FORBIDDEN, errors=[PublicError(code=code, message=message)]
    )


def _response(result: Envelope[Any]) -> GatewayResponse:
    if result.ok:
        return GatewayResponse(outcome=Outcome.OK, entity=_plain(result.payload.value))
    outcome = Outcome.for_category(result.first_category)
    return GatewayResponse(
        outcome=outcome,
        errors=[_public(error, outcome) for error in result.errors],
    )


def _public(error: ErrorDetail, outcome: Outcome) -> PublicError:
    if outcome == Outcome.SERVER_ERROR:
        message = (
            "dependency unavailable"
            if error.category == ErrorCategory.DEPENDENCY
            else "internal error"
        )
        return PublicError(code=error.code, message=message)
    return PublicError(
        code=error.code, message=error.message, field=error.metadata.get("field")
    )


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude={"password"})
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def _build_routes(
    *,
    outbound: OutboundListService,
    dialplan: DialplanService,
    account: AccountService,
    trunk: TrunkService,
) -> dict[tuple[Family, Operation], Route]:
    routes: dict[tuple[Family, Operation], Route] = {
        # Dial-list masters and entries.
        (Family.DIAL_LIST_MASTER, Operation.CREATE): lambda m, r: (
            outbound.create_dial_list_master(meta=m, payload=r.payload)
        ),
        (Family.DIAL_LIST_MASTER, Operation.GET): lambda m, r: (
            outbound.get_dial_list_master(
                meta=m, dlma_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIAL_LIST_MASTER, Operation.LIST): lambda m, r: (
            outbound.list_dial_list_masters(meta=m)
        ),
        (Family.DIAL_LIST_MASTER, Operation.UPDATE): lambda m, r: (
            outbound.update_dial_list_master(
                meta=m,
                dlma_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.DIAL_LIST_MASTER, Operation.DELETE): lambda m, r: (
            outbound.delete_dial_list_master(meta=m, dlma_id=_id(r), force=r.force)
        ),
        (Family.DIAL_LIST_ENTRY, Operation.CREATE): lambda m, r: (
            outbound.create_dial_list_entry(meta=m, payload=r.payload)
        ),
        (Family.DIAL_LIST_ENTRY, Operation.GET): lambda m, r: (
            outbound.get_dial_list_entry(
                meta=m, entry_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIAL_LIST_ENTRY, Operation.LIST): lambda m, r: (
            outbound.list_dial_list_entries(
                meta=m, dlma_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIAL_LIST_ENTRY, Operation.UPDATE): lambda m, r: (
            outbound.update_dial_list_entry(
                meta=m,
                entry_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.DIAL_LIST_ENTRY, Operation.DELETE): lambda m, r: (
            outbound.delete_dial_list_entry(meta=m, entry_id=_id(r))
        ),
        # Dialplan masters and steps.
        (Family.DIALPLAN_MASTER, Operation.CREATE): lambda m, r: (
            dialplan.create_dialplan_master(meta=m, payload=r.payload)
        ),
        (Family.DIALPLAN_MASTER, Operation.GET): lambda m, r: (
            dialplan.get_dialplan_master(
                meta=m, dpma_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIALPLAN_MASTER, Operation.LIST): lambda m, r: (
            dialplan.list_dialplan_masters(meta=m)
        ),
        (Family.DIALPLAN_MASTER, Operation.UPDATE): lambda m, r: (
            dialplan.update_dialplan_master(
                meta=m,
                dpma_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.DIALPLAN_MASTER, Operation.DELETE): lambda m, r: (
            dialplan.delete_dialplan_master(meta=m, dpma_id=_id(r), force=r.force)
        ),
        (Family.DIALPLAN_STEP, Operation.CREATE): lambda m, r: (
            dialplan.create_dialplan_step(meta=m, payload=r.payload)
        ),
        (Family.DIALPLAN_STEP, Operation.GET): lambda m, r: (
            dialplan.get_dialplan_step(
                meta=m, step_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIALPLAN_STEP, Operation.LIST): lambda m, r: (
            dialplan.list_dialplan_steps(
                meta=m, dpma_id=_id(r), include_retired=r.include_retired
            )
        ),
        (Family.DIALPLAN_STEP, Operation.UPDATE): lambda m, r: (
            dialplan.update_dialplan_step(
                meta=m,
                step_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.DIALPLAN_STEP, Operation.DELETE): lambda m, r: (
            dialplan.delete_dialplan_step(meta=m, step_id=_id(r))
        ),
        # Manager families.
        (Family.USER, Operation.CREATE): lambda m, r: (
            account.create_user(meta=m, payload=r.payload)
        ),
        (Family.USER, Operation.GET): lambda m, r: (
            account.get_user(meta=m, user_id=_id(r), include_retired=r.include_retired)
        ),
        (Family.USER, Operation.LIST): lambda m, r: account.list_users(meta=m),
        (Family.USER, Operation.UPDATE): lambda m, r: (
            account.update_user(
                meta=m,
                user_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.USER, Operation.DELETE): lambda m, r: (
            account.delete_user(meta=m, user_id=_id(r))
        ),
        (Family.PERMISSION, Operation.CREATE): lambda m, r: (
            account.add_permission(meta=m, payload=r.payload)
        ),
        (Family.PERMISSION, Operation.GET): lambda m, r: (
            account.get_permission(meta=m, permission_id=_id(r))
        ),
        (Family.PERMISSION, Operation.LIST): lambda m, r: (
            account.list_permissions(meta=m, user_id=_id(r))
        ),
        (Family.PERMISSION, Operation.DELETE): lambda m, r: (
            account.remove_permission(meta=m, permission_id=_id(r))
        ),
        (Family.CONTACT, Operation.CREATE): lambda m, r: (
            account.create_contact(meta=m, payload=r.payload)
        ),
        (Family.CONTACT, Operation.GET): lambda m, r: (
            account.get_contact(meta=m, contact_id=_id(r))
        ),
        (Family.CONTACT, Operation.LIST): lambda m, r: (
            account.list_contacts(meta=m, user_id=_id(r))
        ),
        (Family.CONTACT, Operation.DELETE): lambda m, r: (
            account.delete_contact(meta=m, contact_id=_id(r))
        ),
        (Family.TRUNK, Operation.CREATE): lambda m, r: (
            trunk.create_trunk(meta=m, payload=r.payload)
        ),
        (Family.TRUNK, Operation.GET): lambda m, r: (
            trunk.get_trunk(meta=m, trunk_id=_id(r), include_retired=r.include_retired)
        ),
        (Family.TRUNK, Operation.LIST): lambda m, r: trunk.list_trunks(meta=m),
        (Family.TRUNK, Operation.UPDATE): lambda m, r: (
            trunk.update_trunk(
                meta=m,
                trunk_id=_id(r),
                payload=r.payload,
                expected_updated_at=r.expected_updated_at,
            )
        ),
        (Family.TRUNK, Operation.DELETE): lambda m, r: (
            trunk.delete_trunk(meta=m, trunk_id=_id(r))
        ),
    }
    return routes
