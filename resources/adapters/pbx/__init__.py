"""PBX control adapter: channel command execution and endpoint/trunk provisioning."""

from resources.adapters.pbx.adapter import (
    CommandInvocationResult,
    EndpointKind,
    EndpointSpec,
    PbxAdapter,
    PbxAdapterDependencyError,
    PbxAdapterError,
    PbxAdapterHealthResult,
    PbxAdapterRejectedError,
    TrunkSpec,
)
from resources.adapters.pbx.calls import call_pbx
from resources.adapters.pbx.component import RESOURCE_COMPONENT_ID
from resources.adapters.pbx.config import (
    PbxAdapterSettings,
    resolve_pbx_adapter_settings,
)
from resources.adapters.pbx.http_adapter import HttpPbxAdapter

__all__ = [
    "CommandInvocationResult",
    "EndpointKind",
    "EndpointSpec",
    "HttpPbxAdapter",
    "PbxAdapter",
    "PbxAdapterDependencyError",
    "PbxAdapterError",
    "PbxAdapterHealthResult",
    "PbxAdapterRejectedError",
    "PbxAdapterSettings",
    "RESOURCE_COMPONENT_ID",
    "TrunkSpec",
    "call_pbx",
    "resolve_pbx_adapter_settings",
]
