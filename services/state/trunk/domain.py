"""Manager-facing trunk contract; the stored password never leaves the store."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from resources.adapters.pbx.adapter import TrunkSpec
from services.state.entity_store.domain import Liveness, Trunk


class TrunkInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    name: str
    server_uri: str
    client_uri: str
    username: str
    contact: str | None = None
    context: str
    hostname: str | None = None
    status: str
    liveness: Liveness
    created_at: datetime
    updated_at: datetime | None = None
    retired_at: datetime | None = None

    @classmethod
    def from_trunk(cls, trunk: Trunk) -> TrunkInfo:
        return cls.model_validate(trunk.model_dump(exclude={"password"}))


def trunk_spec(trunk: Trunk) -> TrunkSpec:
    """PBX-side definition of one stored trunk."""
    return TrunkSpec(
        name=trunk.name,
        server_uri=trunk.server_uri,
        client_uri=trunk.client_uri,
        username=trunk.username,
        password=trunk.password,
        contact=trunk.contact or "",
        context=trunk.context,
        hostname=trunk.hostname or "",
    )


__all__ = ["Trunk", "TrunkInfo", "trunk_spec"]
