"""Transport-agnostic PBX control adapter protocol and DTOs.

The PBX owns channel execution and endpoint/trunk configuration. The control
plane only asks it to run one command on a live channel, to provision or
remove endpoints and trunks, and to reload its configuration.
"""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

EndpointKind = Literal["pjsip_endpoint", "sip_peer"]


class PbxAdapterError(Exception):
    """Base exception for PBX adapter failures."""


class PbxAdapterDependencyError(PbxAdapterError):
    """PBX unreachable or failing (network, timeout, 5xx)."""


class PbxAdapterRejectedError(PbxAdapterError):
    """PBX understood the request and refused it (4xx)."""


class CommandInvocationResult(BaseModel):
    """Acknowledgement of one channel command."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    accepted: bool
    execution_id: str
    detail: str


class EndpointSpec(BaseModel):
    """PJSIP endpoint provisioned for one user account."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    username: str
    password: str
    context: str


class TrunkSpec(BaseModel):
    """Outbound registration trunk definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    server_uri: str
    client_uri: str
    username: str
    password: str
    contact: str = ""
    context: str
    hostname: str = ""


class PbxAdapterHealthResult(BaseModel):
    """Readiness payload for the PBX control API."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    adapter_ready: bool
    detail: str


@runtime_checkable
class PbxAdapter(Protocol):
    """Protocol for PBX channel execution and configuration provisioning."""

    def invoke_command(
        self, *, channel: str, command_text: str, execution_id: str
    ) -> CommandInvocationResult:
        """Run one command on a live channel."""

    def create_endpoint(self, *, spec: EndpointSpec) -> None:
        """Provision a new endpoint."""

    def update_endpoint(self, *, spec: EndpointSpec) -> None:
        """Replace an existing endpoint's settings."""

    def delete_endpoint(self, *, name: str) -> None:
        """Remove an endpoint; removing a missing endpoint is not an error."""

    def endpoint_exists(self, *, kind: EndpointKind, target: str) -> bool:
        """Return whether the PBX knows ``target`` as an endpoint of ``kind``."""

    def create_trunk(self, *, spec: TrunkSpec) -> None:
        """Provision a new trunk."""

    def update_trunk(self, *, spec: TrunkSpec) -> None:
        """Replace an existing trunk's settings."""

    def delete_trunk(self, *, name: str) -> None:
        """Remove a trunk; removing a missing trunk is not an error."""

    def reload(self) -> None:
        """Apply pending configuration changes."""

    def health(self) -> PbxAdapterHealthResult:
        """Return adapter health state."""
