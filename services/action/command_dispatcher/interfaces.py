"""Protocol for the store of accepted commands."""

from __future__ import annotations

from typing import Protocol

from services.action.command_dispatcher.domain import CommandRecord


class CommandRecorder(Protocol):
    """Keeps accepted commands per session and by execution id."""

    def record(self, entry: CommandRecord) -> None:
        """Store one accepted command."""

    def for_session(self, session_id: str) -> list[CommandRecord]:
        """Commands of one session in the order they were accepted."""

    def by_execution(self, execution_id: str) -> CommandRecord | None:
        """Command sent with ``execution_id``, if any."""

    def forget(self, session_id: str) -> None:
        """Drop everything recorded for one session."""
