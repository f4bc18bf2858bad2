"""Pydantic settings for the PBX control adapter."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from resources.adapters.pbx.component import RESOURCE_COMPONENT_ID


class PbxAdapterSettings(BaseModel):
    """Location and timeouts of the PBX control API."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://pbx-control:8088"
    api_token: str = ""
    timeout_seconds: float = Field(default=5.0, gt=0)
    health_timeout_seconds: float = Field(default=1.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if normalized == "":
            raise ValueError("base_url must be non-empty")
        return normalized


def resolve_pbx_adapter_settings(settings: PbxSettings) -> PbxAdapterSettings:
    """Resolve adapter settings from ``components.adapter.pbx``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=PbxAdapterSettings,
    )
