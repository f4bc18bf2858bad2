"""Result contracts for the outbound list service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.state.entity_store.domain import DialListEntry, DialListMaster


class DialListMasterRetirement(BaseModel):
    """A retired master and the entries a forced delete retired with it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    master: DialListMaster
    entries: list[DialListEntry]


__all__ = ["DialListEntry", "DialListMaster", "DialListMasterRetirement"]
