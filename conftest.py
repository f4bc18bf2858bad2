"""Shared unit-test fixtures: SQLite-backed Entity Store, event capture, fake PBX."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from packages.pbx_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from resources.adapters.pbx.adapter import (
    CommandInvocationResult,
    EndpointSpec,
    PbxAdapterDependencyError,
    PbxAdapterError,
    PbxAdapterHealthResult,
    TrunkSpec,
)
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import create_session_factory
from services.action.event_publisher.domain import ChangeEvent
from services.action.event_publisher.implementation import DefaultEventPublisher
from services.state.entity_store.component import ENTITY_STORE_SCHEMA
from services.state.entity_store.data import SqlEntityStore, metadata


class TickingClock:
    """Deterministic UTC clock advancing one second per call."""

    def __init__(self) -> None:
        self.current = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class EventRecorder:
    """Subscriber that keeps every delivered event."""

    name = "recorder"

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def deliver(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[tuple[str, str, str]]:
        return [
            (event.category, event.mutation_kind.value, event.entity_id)
            for event in self.events
        ]


class FakePbxAdapter:
    """In-memory PBX capability with per-call failure injection."""

    def __init__(self) -> None:
        self.endpoints: dict[str, EndpointSpec] = {}
        self.trunks: dict[str, TrunkSpec] = {}
        self.known_targets: set[tuple[str, str]] = set()
        self.invocations: list[tuple[str, str, str]] = []
        self.rejected_commands: set[str] = set()
        self.unreachable_commands: set[str] = set()
        self.broken_commands: dict[str, Exception] = {}
        self.failures: dict[str, PbxAdapterError] = {}
        self.reloads = 0

    def _maybe_fail(self, action: str) -> None:
        error = self.failures.get(action)
        if error is not None:
            raise error

    def invoke_command(
        self, *, channel: str, command_text: str, execution_id: str
    ) -> CommandInvocationResult:
        self.invocations.append((channel, command_text, execution_id))
        if command_text in self.unreachable_commands:
            raise PbxAdapterDependencyError("pbx timed out")
        if command_text in self.broken_commands:
            raise self.broken_commands[command_text]
        accepted = command_text not in self.rejected_commands
        return CommandInvocationResult(
            accepted=accepted,
            execution_id=execution_id,
            detail="ok" if accepted else "no such application",
        )

    def create_endpoint(self, *, spec: EndpointSpec) -> None:
        self._maybe_fail("create_endpoint")
        self.endpoints[spec.name] = spec

    def update_endpoint(self, *, spec: EndpointSpec) -> None:
        self._maybe_fail("update_endpoint")
        self.endpoints[spec.name] = spec

    def delete_endpoint(self, *, name: str) -> None:
        self._maybe_fail("delete_endpoint")
        self.endpoints.pop(name, None)

    def endpoint_exists(self, *, kind: str, target: str) -> bool:
        self._maybe_fail("endpoint_exists")
        if kind == "pjsip_endpoint" and target in self.endpoints:
            return True
        return (kind, target) in self.known_targets

    def create_trunk(self, *, spec: TrunkSpec) -> None:
        self._maybe_fail("create_trunk")
        self.trunks[spec.name] = spec

    def update_trunk(self, *, spec: TrunkSpec) -> None:
        self._maybe_fail("update_trunk")
        self.trunks[spec.name] = spec

    def delete_trunk(self, *, name: str) -> None:
        self._maybe_fail("delete_trunk")
        self.trunks.pop(name, None)

    def reload(self) -> None:
        self._maybe_fail("reload")
        self.reloads += 1

    def health(self) -> PbxAdapterHealthResult:
        return PbxAdapterHealthResult(adapter_ready=True, detail="fake")


@pytest.fixture
def entity_store() -> SqlEntityStore:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    sessions = ServiceSchemaSessionProvider(
        session_factory=create_session_factory(engine), schema=ENTITY_STORE_SCHEMA
    )
    return SqlEntityStore(sessions=sessions, clock=TickingClock())


@pytest.fixture
def event_recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def publisher(event_recorder: EventRecorder) -> DefaultEventPublisher:
    publisher = DefaultEventPublisher()
    publisher.subscribe(event_recorder)
    return publisher


@pytest.fixture
def meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


@pytest.fixture
def pbx() -> FakePbxAdapter:
    return FakePbxAdapter()
