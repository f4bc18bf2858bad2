"""Pydantic settings for the Command Dispatcher."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.action.command_dispatcher.component import SERVICE_COMPONENT_ID


class CommandDispatcherSettings(BaseModel):
    """Signal marker and how many finished sessions stay queryable."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    marker: str = Field(default="jade_dialplan", min_length=1)
    max_tracked_sessions: int = Field(default=10_000, gt=0)


def resolve_command_dispatcher_settings(
    settings: PbxSettings,
) -> CommandDispatcherSettings:
    """Resolve settings from ``components.service.command_dispatcher``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=CommandDispatcherSettings,
    )
