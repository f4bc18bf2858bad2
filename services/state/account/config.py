"""Pydantic settings for the account service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from services.state.account.component import ADMIN_PERMISSION, SERVICE_COMPONENT_ID


class AccountSettings(BaseModel):
    """Account listing limits and the first-start administrator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_list_limit: int = Field(default=500, gt=0)
    bootstrap_admin_username: str = Field(default="admin", min_length=1)
    bootstrap_admin_password: str = Field(default="admin", min_length=1)
    bootstrap_admin_context: str = ""
    admin_permission: str = Field(default=ADMIN_PERMISSION, min_length=1)


def resolve_account_settings(settings: PbxSettings) -> AccountSettings:
    """Resolve settings from ``components.service.account``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=AccountSettings,
    )
