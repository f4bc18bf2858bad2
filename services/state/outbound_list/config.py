"""Pydantic settings for the outbound list service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.state.outbound_list.component import SERVICE_COMPONENT_ID


class OutboundListSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    default_list_limit: int = Field(default=500, gt=0)


def resolve_outbound_list_settings(settings: PbxSettings) -> OutboundListSettings:
    """Resolve settings from ``components.service.outbound_list``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=OutboundListSettings,
    )
