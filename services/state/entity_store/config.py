"""Pydantic settings for Entity Store behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.state.entity_store.component import SERVICE_COMPONENT_ID


class EntityStoreSettings(BaseModel):
    """Entity Store runtime settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_list_limit: int = Field(default=1000, gt=0)


def resolve_entity_store_settings(settings: PbxSettings) -> EntityStoreSettings:
    """Resolve settings from ``components.service.entity_store``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=EntityStoreSettings,
    )
