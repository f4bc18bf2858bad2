"""Authoritative in-process Python API for the inbound gateway."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.pbx_shared.config import PbxSettings
from services.control.gateway.domain import GatewayResponse, InboundRequest
from services.control.gateway.interfaces import IdentityResolver
from services.state.account.service import AccountService
from services.state.dialplan.service import DialplanService
from services.state.outbound_list.service import OutboundListService
from services.state.trunk.service import TrunkService


class Gateway(ABC):
    """Single entry point the transport layer calls."""

    @abstractmethod
    def handle(self, *, token: str, request: InboundRequest) -> GatewayResponse:
        """Authorize and route one request; never raises for domain failures."""


def build_gateway(
    *,
    settings: PbxSettings,
    outbound: OutboundListService,
    dialplan: DialplanService,
    account: AccountService,
    trunk: TrunkService,
    identities: IdentityResolver | None = None,
) -> Gateway:
    """Build the default gateway; without a resolver, configured tokens are used."""
    from services.control.gateway.config import resolve_gateway_settings
    from services.control.gateway.identity import StaticIdentityResolver
    from services.control.gateway.implementation import DefaultGateway

    gateway_settings = resolve_gateway_settings(settings)
    return DefaultGateway(
        settings=gateway_settings,
        identities=identities or StaticIdentityResolver(gateway_settings.static_tokens),
        outbound=outbound,
        dialplan=dialplan,
        account=account,
        trunk=trunk,
    )
