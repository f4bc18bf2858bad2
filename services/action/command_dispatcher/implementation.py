"""Concrete Command Dispatcher.

One ``handle_session_start`` call walks a whole script synchronously. The only
state shared between calls is the session table, which ``end_session`` may
flip to ABORTED from another thread; the walk re-reads it before every step.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Mapping

from packages.pbx_shared.envelope import Envelope, EnvelopeMeta, failure, success
from packages.pbx_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    not_found_error,
)
from packages.pbx_shared.ids import generate_entity_id
from packages.pbx_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from packages.pbx_shared.requests import validate_request
from resources.adapters.pbx.adapter import PbxAdapter, PbxAdapterError
from services.action.command_dispatcher.component import SERVICE_COMPONENT_ID
from services.action.command_dispatcher.config import CommandDispatcherSettings
from services.action.command_dispatcher.domain import (
    CommandRecord,
    DispatchReport,
    SessionStartSignal,
    SessionState,
    StepOutcome,
    StepStatus,
)
from services.action.command_dispatcher.interfaces import CommandRecorder
from services.action.command_dispatcher.service import CommandDispatcher
from services.state.entity_store.calls import call_store
from services.state.entity_store.domain import DialplanStep, Family
from services.state.entity_store.interfaces import EntityStore

_LOGGER = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DefaultCommandDispatcher(CommandDispatcher):
    """Dispatcher reading steps from the Entity Store and driving the PBX."""

    def __init__(
        self,
        *,
        settings: CommandDispatcherSettings,
        store: EntityStore,
        pbx: PbxAdapter,
        recorder: CommandRecorder,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._pbx = pbx
        self._recorder = recorder
        self._clock = clock
        self._lock = Lock()
        self._sessions: OrderedDict[str, SessionState] = OrderedDict()

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def handle_session_start(
        self, *, meta: EnvelopeMeta, payload: Mapping[str, Any]
    ) -> Envelope[DispatchReport]:
        signal, errors = validate_request(
            meta=meta, model=SessionStartSignal, payload=payload
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert signal is not None

        if signal.marker.casefold() != self._settings.marker.casefold():
            with log_context({fields.SESSION_ID: signal.session_id}):
                _LOGGER.info("Ignoring session start for another handler")
            return success(
                meta=meta,
                payload=DispatchReport(
                    session_id=signal.session_id,
                    script_id=signal.script_id,
                    state=self._state(signal.session_id),
                    ignored=True,
                ),
            )

        _, errors = call_store(
            lambda: self._store.get(
                family=Family.DIALPLAN_MASTER, entity_id=signal.script_id
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)
        steps, errors = call_store(
            lambda: self._store.list_all(
                family=Family.DIALPLAN_STEP,
                where={"dpma_id": signal.script_id},
                order_by=("sequence",),
            )
        )
        if errors:
            return failure(meta=meta, errors=errors)

        if not self._start(signal.session_id):
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        "session already started",
                        code=codes.CONFLICT,
                        metadata={"session_id": signal.session_id},
                    )
                ],
            )

        outcomes: list[StepOutcome] = []
        try:
            with log_context({fields.SESSION_ID: signal.session_id}):
                for step in steps or []:
                    assert isinstance(step, DialplanStep)
                    if self._state(signal.session_id) == SessionState.ABORTED:
                        outcomes.append(
                            StepOutcome(
                                step_id=step.id,
                                sequence=step.sequence,
                                command_text=step.command,
                                execution_id=None,
                                status=StepStatus.SKIPPED,
                                detail="session ended",
                            )
                        )
                        continue
                    outcomes.append(self._run_step(signal, step))
        finally:
            state = self._finish(signal.session_id)
        return success(
            meta=meta,
            payload=DispatchReport(
                session_id=signal.session_id,
                script_id=signal.script_id,
                state=state,
                outcomes=outcomes,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("session_id",)
    )
    def end_session(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[SessionState]:
        with self._lock:
            state = self._sessions.get(session_id)
            if state is None:
                return failure(meta=meta, errors=[_unknown_session(session_id)])
            if state == SessionState.RUNNING:
                state = SessionState.ABORTED
                self._sessions[session_id] = state
        return success(meta=meta, payload=state)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("session_id",)
    )
    def session_state(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[SessionState]:
        return success(meta=meta, payload=self._state(session_id))

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("session_id",)
    )
    def list_session_commands(
        self, *, meta: EnvelopeMeta, session_id: str
    ) -> Envelope[list[CommandRecord]]:
        return success(meta=meta, payload=self._recorder.for_session(session_id))

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("execution_id",)
    )
    def resolve_execution(
        self, *, meta: EnvelopeMeta, execution_id: str
    ) -> Envelope[CommandRecord]:
        record = self._recorder.by_execution(execution_id)
        if record is None:
            return failure(
                meta=meta,
                errors=[
                    not_found_error(
                        "execution not found",
                        code=codes.RESOURCE_NOT_FOUND,
                        metadata={"execution_id": execution_id},
                    )
                ],
            )
        return success(meta=meta, payload=record)

    def _run_step(self, signal: SessionStartSignal, step: DialplanStep) -> StepOutcome:
        execution_id = generate_entity_id()
        outcome = {
            "step_id": step.id,
            "sequence": step.sequence,
            "command_text": step.command,
            "execution_id": execution_id,
        }
        with log_context({fields.EXECUTION_ID: execution_id}):
            try:
                result = self._pbx.invoke_command(
                    channel=signal.channel,
                    command_text=step.command,
                    execution_id=execution_id,
                )
            except PbxAdapterError as exc:
                _LOGGER.warning("Step %s not delivered: %s", step.sequence, exc)
                return StepOutcome(
                    **outcome, status=StepStatus.UNREACHABLE, detail=str(exc)
                )
            except Exception as exc:
                _LOGGER.warning(
                    "Step %s failed in transport", step.sequence, exc_info=True
                )
                return StepOutcome(
                    **outcome,
                    status=StepStatus.UNREACHABLE,
                    detail=f"{type(exc).__name__}: {exc}",
                )
            if not result.accepted:
                _LOGGER.info("Step %s rejected: %s", step.sequence, result.detail)
                return StepOutcome(
                    **outcome, status=StepStatus.REJECTED, detail=result.detail
                )

        self._recorder.record(
            CommandRecord(
                session_id=signal.session_id,
                execution_id=execution_id,
                command_text=step.command,
                step_id=step.id,
                recorded_at=self._clock(),
            )
        )
        return StepOutcome(**outcome, status=StepStatus.RECORDED, detail=result.detail)

    def _state(self, session_id: str) -> SessionState:
        with self._lock:
            return self._sessions.get(session_id, SessionState.NOT_STARTED)

    def _start(self, session_id: str) -> bool:
        with self._lock:
            if session_id in self._sessions:
                return False
            self._sessions[session_id] = SessionState.RUNNING
            evicted = self._evict_finished()
        for old in evicted:
            self._recorder.forget(old)
        return True

    def _finish(self, session_id: str) -> SessionState:
        with self._lock:
            state = self._sessions[session_id]
            if state == SessionState.RUNNING:
                state = SessionState.COMPLETED
                self._sessions[session_id] = state
            return state

    def _evict_finished(self) -> list[str]:
        """Drop the oldest finished sessions beyond the tracking limit."""
        excess = len(self._sessions) - self._settings.max_tracked_sessions
        evicted: list[str] = []
        for session_id, state in list(self._sessions.items()):
            if excess <= 0:
                break
            if state.terminal:
                del self._sessions[session_id]
                evicted.append(session_id)
                excess -= 1
        return evicted


def _unknown_session(session_id: str) -> ErrorDetail:
    return not_found_error(
        "session not found",
        code=codes.RESOURCE_NOT_FOUND,
        metadata={"session_id": session_id},
    )
