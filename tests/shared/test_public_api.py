"""Tests for public API instrumentation and structured logging context."""

from __future__ import annotations

import json
import logging

import pytest

from packages.pbx_shared.envelope import EnvelopeKind, failure, new_meta, success
from packages.pbx_shared.errors import not_found_error
from packages.pbx_shared.logging import (
    CompletionContext,
    InvocationContext,
    PublicApiMetricsConcern,
    bind_context,
    clear_context,
    get_context,
    log_context,
    public_api_instrumented,
)
from packages.pbx_shared.logging.config import (
    ContextFilter,
    JsonFormatter,
    PlainFormatter,
    configure_logging,
)


class RecordingConcern:
    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class ExplodingConcern:
    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("collector down")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("collector down")


class RecordingInstrument:
    def __init__(self) -> None:
        self.calls: list[tuple[float, dict[str, str]]] = []

    def add(self, amount, attributes) -> None:
        self.calls.append((amount, dict(attributes)))

    def record(self, amount, attributes) -> None:
        self.calls.append((amount, dict(attributes)))


def _meta():
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


def test_invocation_and_completion_carry_references() -> None:
    concern = RecordingConcern()

    class Service:
        @public_api_instrumented(
            component_id="service_trunk",
            id_fields=("trunk_id",),
            concerns=(concern,),
            telemetry=False,
        )
        def get_trunk(self, *, meta, trunk_id):
            return success(meta=meta, payload={"id": trunk_id})

    meta = _meta()
    Service().get_trunk(meta=meta, trunk_id="t-1")

    [invocation] = concern.invocations
    [completion] = concern.completions
    assert invocation.api_name == "get_trunk"
    assert invocation.trace_id == meta.trace_id
    assert invocation.principal == "operator"
    assert invocation.references == {"trunk_id": "t-1"}
    assert completion.success is True
    assert completion.errors == []


def test_error_envelopes_are_reported_as_failures() -> None:
    concern = RecordingConcern()

    @public_api_instrumented(component_id="svc", concerns=(concern,), telemetry=False)
    def lookup(*, meta):
        return failure(meta=meta, errors=[not_found_error("trunk not found")])

    lookup(meta=_meta())

    [completion] = concern.completions
    assert completion.success is False
    assert completion.errors == ["NOT_FOUND: trunk not found"]
    assert completion.error_categories == ["not_found"]


def test_exceptions_propagate_after_completion_hook() -> None:
    concern = RecordingConcern()

    @public_api_instrumented(component_id="svc", concerns=(concern,), telemetry=False)
    def explode(*, meta):
        raise KeyError("boom")

    with pytest.raises(KeyError):
        explode(meta=_meta())

    [completion] = concern.completions
    assert completion.success is False
    assert completion.error_categories == ["internal"]


def test_concern_failures_never_change_the_result(caplog) -> None:
    logger = logging.getLogger("tests.public_api")

    @public_api_instrumented(
        component_id="svc", concerns=(ExplodingConcern(),), logger=logger
    )
    def ping(*, meta):
        return success(meta=meta, payload="pong")

    with caplog.at_level(logging.INFO, logger="tests.public_api"):
        result = ping(meta=_meta())

    assert result.payload.value == "pong"
    assert "Public API instrumentation concern failed" in caplog.text
    assert "Public API completion" in caplog.text


def test_decorator_requires_a_concern() -> None:
    with pytest.raises(ValueError):
        public_api_instrumented(component_id="svc", telemetry=False)


def test_metrics_concern_counts_errors_by_category() -> None:
    calls, duration, errors = (
        RecordingInstrument(),
        RecordingInstrument(),
        RecordingInstrument(),
    )
    concern = PublicApiMetricsConcern(
        calls_total=calls, duration_ms=duration, errors_total=errors
    )
    invocation = InvocationContext(
        component_id="svc",
        api_name="op",
        trace_id=None,
        envelope_id=None,
        principal=None,
        references={},
    )

    concern.on_completion(
        CompletionContext(
            invocation=invocation,
            success=False,
            duration_ms=1.5,
            errors=["x"],
            error_categories=["conflict"],
        )
    )

    assert calls.calls[0][1]["outcome"] == "failure"
    assert duration.calls[0][0] == 1.5
    assert errors.calls == [
        (1, {"component_id": "svc", "api_name": "op", "error_category": "conflict"})
    ]


def test_log_context_is_scoped_to_the_block() -> None:
    clear_context()
    bind_context(service="pbx-control", skipped=None)

    with log_context({"family": "trunk"}):
        assert get_context() == {"service": "pbx-control", "family": "trunk"}

    assert get_context() == {"service": "pbx-control"}
    clear_context("service")
    assert get_context() == {}


def test_json_formatter_includes_bound_context() -> None:
    clear_context()
    record = logging.LogRecord(
        name="pbx",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="created %s",
        args=("trunk",),
        exc_info=None,
    )

    with log_context({"entity_id": "t-1"}):
        ContextFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "created trunk"
    assert payload["entity_id"] == "t-1"
    assert payload["level"] == "INFO"


def test_plain_formatter_appends_sorted_context() -> None:
    record = logging.LogRecord(
        name="pbx",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="retired",
        args=(),
        exc_info=None,
    )
    record.context = {"family": "trunk", "entity_id": "t-1"}

    line = PlainFormatter().format(record)

    assert line.endswith("retired entity_id=t-1 family=trunk")


def test_configure_logging_installs_one_handler_and_quiets_drivers() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(level="info", json_output=False, service="pbx-control")
        configure_logging(level="info", json_output=True, service="pbx-control")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert get_context()["service"] == "pbx-control"
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("httpx").setLevel(logging.NOTSET)
        clear_context()
