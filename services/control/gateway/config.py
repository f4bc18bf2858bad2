"""Pydantic settings for the inbound gateway."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.control.gateway.component import SERVICE_COMPONENT_ID
from services.state.entity_store.domain import Family


class StaticToken(BaseModel):
    """Operator token configured ahead of time."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    token: str = Field(min_length=16)
    principal: str = Field(min_length=1)
    permissions: list[str] = Field(default_factory=list)


class GatewaySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    admin_permission: str = Field(default="admin", min_length=1)
    manager_families: frozenset[Family] = frozenset(
        {Family.USER, Family.PERMISSION, Family.CONTACT, Family.TRUNK}
    )
    static_tokens: list[StaticToken] = Field(default_factory=list)


def resolve_gateway_settings(settings: PbxSettings) -> GatewaySettings:
    """Resolve settings from ``components.service.gateway``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=GatewaySettings,
    )
