"""Result contracts for the dialplan service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.state.entity_store.domain import DialplanMaster, DialplanStep


class DialplanMasterRetirement(BaseModel):
    """A retired master and the steps a forced delete retired with it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    master: DialplanMaster
    steps: list[DialplanStep]


__all__ = ["DialplanMaster", "DialplanMasterRetirement", "DialplanStep"]
