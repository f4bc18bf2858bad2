"""Process-local command recorder."""

from __future__ import annotations

from threading import Lock

from services.action.command_dispatcher.domain import CommandRecord
from services.action.command_dispatcher.interfaces import CommandRecorder


class InMemoryCommandRecorder(CommandRecorder):
    """Thread-safe recorder indexed by session and by execution id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._by_session: dict[str, list[CommandRecord]] = {}
        self._by_execution: dict[str, CommandRecord] = {}

    def record(self, entry: CommandRecord) -> None:
        with self._lock:
            self._by_session.setdefault(entry.session_id, []).append(entry)
            self._by_execution[entry.execution_id] = entry

    def for_session(self, session_id: str) -> list[CommandRecord]:
        with self._lock:
            return list(self._by_session.get(session_id, ()))

    def by_execution(self, execution_id: str) -> CommandRecord | None:
        with self._lock:
            return self._by_execution.get(execution_id)

    def forget(self, session_id: str) -> None:
        with self._lock:
            for entry in self._by_session.pop(session_id, ()):
                self._by_execution.pop(entry.execution_id, None)
