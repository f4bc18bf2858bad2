"""Authoritative in-process Python API for the Command Dispatcher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from packages.pbx_shared.config import PbxSettings
from packages.pbx_shared.envelope import Envelope, EnvelopeMeta
from resources.adapters.pbx.adapter import PbxAdapter
from services.action.command_dispatcher.domain import (
    CommandRecord,
    DispatchReport,
    SessionState,
)
from services.action.command_dispatcher.interfaces import CommandRecorder
from services.state.entity_store.interfaces import EntityStore


class CommandDispatcher(ABC):
    """Public API for running dialplan scripts on session start."""

    @abstractmethod
    def handle_session_start(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[DispatchReport]:
        """Walk the referenced script's live steps on the signal's channel."""

    @abstractmethod
    def end_session(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[SessionState]:
        """Abort a running session; finished sessions keep their state."""

    @abstractmethod
    def session_state(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[SessionState]:
        """Return the state of one session."""

    @abstractmethod
    def list_session_commands(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[list[CommandRecord]]:
        """Return the commands accepted for one session."""

    @abstractmethod
    def resolve_execution(
        self, *, meta: EnvelopeMeta, execution_id: str
    ) -> Envelope[CommandRecord]:
        """Find the command sent with ``execution_id``."""


def build_command_dispatcher(
    *,
    settings: PbxSettings,
    store: EntityStore,
    pbx: PbxAdapter,
    recorder: CommandRecorder | None = None,
) -> CommandDispatcher:
    """Build the default dispatcher with an in-memory recorder unless given one."""
    from services.action.command_dispatcher.config import (
        resolve_command_dispatcher_settings,
    )
    from services.action.command_dispatcher.implementation import (
        DefaultCommandDispatcher,
    )
    from services.action.command_dispatcher.recorder import InMemoryCommandRecorder

    return DefaultCommandDispatcher(
        settings=resolve_command_dispatcher_settings(settings),
        store=store,
        pbx=pbx,
        recorder=recorder or InMemoryCommandRecorder(),
    )
