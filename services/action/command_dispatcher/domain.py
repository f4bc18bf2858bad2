"""Session, signal and audit contracts for the Command Dispatcher."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """``NOT_STARTED -> RUNNING -> (COMPLETED | ABORTED)``."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


class StepStatus(str, Enum):
    RECORDED = "recorded"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
    SKIPPED = "skipped"


class SessionStartSignal(BaseModel):
    """A channel entered the control plane and asks for a script."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    marker: str = ""
    script_id: str = ""

    @classmethod
    def from_agi_env(
        cls, *, session_id: str, channel: str, env: Mapping[str, str]
    ) -> SessionStartSignal:
        """Read the marker and script id from AGI arguments 1 and 2."""
        return cls(
            session_id=session_id,
            channel=channel,
            marker=env.get("agi_arg_1", ""),
            script_id=env.get("agi_arg_2", ""),
        )


class StepOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    step_id: str
    sequence: int
    command_text: str
    execution_id: str | None
    status: StepStatus
    detail: str = ""


class DispatchReport(BaseModel):
    """What one session-start signal did."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str
    script_id: str
    state: SessionState
    ignored: bool = False
    outcomes: list[StepOutcome] = Field(default_factory=list)

    @property
    def recorded(self) -> list[StepOutcome]:
        return [item for item in self.outcomes if item.status == StepStatus.RECORDED]


class CommandRecord(BaseModel):
    """One accepted command, kept for result correlation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str
    execution_id: str
    command_text: str
    step_id: str
    recorded_at: datetime
