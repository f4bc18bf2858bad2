"""Unit tests for public API tracing concern behavior."""

from __future__ import annotations

from packages.pbx_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    PublicApiTracingConcern,
)


class _FakeSpan:
    def __init__(self) -> None:
        self.attributes: dict[str, object] = {}
        self.exceptions: list[Exception] = []
        self.statuses: list[object] = []

    def set_attribute(self, key: str, value: object) -> None:
        self.attributes[key] = value

    def record_exception(self, exception: Exception) -> None:
        self.exceptions.append(exception)

    def set_status(self, status: object) -> None:
        self.statuses.append(status)


class _FakeSpanManager:
    def __init__(self, span: _FakeSpan) -> None:
        self.span = span
        self.exited = False

    def __enter__(self) -> _FakeSpan:
        return self.span

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.exited = True


class _FakeTracer:
    def __init__(self) -> None:
        self.names: list[str] = []
        self.managers: list[_FakeSpanManager] = []

    def start_as_current_span(self, name: str) -> _FakeSpanManager:
        self.names.append(name)
        manager = _FakeSpanManager(_FakeSpan())
        self.managers.append(manager)
        return manager


def _invocation(api_name: str, **references: str) -> InvocationContext:
    return InvocationContext(
        component_id="service_trunk",
        api_name=api_name,
        trace_id="trace-1",
        envelope_id="env-1",
        principal="operator",
        references=references,
    )


def _completion(
    invocation: InvocationContext, *, errors: list[str] | None = None
) -> CompletionContext:
    return CompletionContext(
        invocation=invocation,
        success=not errors,
        duration_ms=4.2,
        errors=errors or [],
        error_categories=["dependency"] if errors else [],
    )


def test_span_carries_identity_and_outcome_attributes() -> None:
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    invocation = _invocation("create_trunk", trunk_id="t-1")

    concern.on_invocation(invocation)
    concern.on_completion(_completion(invocation))

    [manager] = tracer.managers
    assert tracer.names == ["public_api.service_trunk.create_trunk"]
    assert manager.exited is True
    assert manager.span.attributes["principal"] == "operator"
    assert manager.span.attributes["reference.trunk_id"] == "t-1"
    assert manager.span.attributes["outcome"] == "success"
    assert manager.span.attributes["errors.count"] == 0
    assert manager.span.statuses == []


def test_failed_completion_marks_span_error() -> None:
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    invocation = _invocation("delete_trunk")

    concern.on_invocation(invocation)
    concern.on_completion(
        _completion(invocation, errors=["DEPENDENCY_UNAVAILABLE: pbx unreachable"])
    )

    [manager] = tracer.managers
    assert manager.span.attributes["outcome"] == "failure"
    assert len(manager.span.statuses) == 1
    assert len(manager.span.exceptions) == 1


def test_nested_calls_close_innermost_span_first() -> None:
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    outer = _invocation("update_trunk")
    inner = _invocation("get_trunk")

    concern.on_invocation(outer)
    concern.on_invocation(inner)
    concern.on_completion(_completion(inner))

    outer_manager, inner_manager = tracer.managers
    assert inner_manager.exited is True
    assert outer_manager.exited is False

    concern.on_completion(_completion(outer))
    assert outer_manager.exited is True


def test_completion_without_open_span_is_ignored() -> None:
    concern = PublicApiTracingConcern(tracer=_FakeTracer())

    concern.on_completion(_completion(_invocation("list_trunks")))
