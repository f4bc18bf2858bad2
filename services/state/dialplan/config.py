"""Pydantic settings for the dialplan service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.state.dialplan.component import SERVICE_COMPONENT_ID


class DialplanSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    default_list_limit: int = Field(default=500, gt=0)


def resolve_dialplan_settings(settings: PbxSettings) -> DialplanSettings:
    """Resolve settings from ``components.service.dialplan``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=DialplanSettings,
    )
