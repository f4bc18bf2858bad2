"""Component id for the PBX control adapter."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "adapter_pbx"
