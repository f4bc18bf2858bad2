"""Pydantic settings for the trunk service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.state.trunk.component import SERVICE_COMPONENT_ID


class TrunkSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    default_list_limit: int = Field(default=500, gt=0)
    reload_after_change: bool = True


def resolve_trunk_settings(settings: PbxSettings) -> TrunkSettings:
    """Resolve settings from ``components.service.trunk``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=TrunkSettings,
    )
