"""Instrumentation decorator for public service methods.

``public_api_instrumented`` wraps one method and fans invocation/completion
hooks out to pluggable concerns: structured logging, OpenTelemetry tracing and
OpenTelemetry metrics. Concern failures are isolated and never change the
wrapped method's result.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode

from . import fields
from .context import log_context

DEFAULT_METER_NAME = "pbx.public_api"
DEFAULT_TRACER_NAME = "pbx.public_api"
_METRIC_CALLS_TOTAL = "pbx_public_api_calls_total"
_METRIC_DURATION_MS = "pbx_public_api_duration_ms"
_METRIC_ERRORS_TOTAL = "pbx_public_api_errors_total"
_METRIC_INSTRUMENTATION_FAILURES_TOTAL = "pbx_public_api_instrumentation_failures_total"


@dataclass(frozen=True)
class InvocationContext:
    """What was called, by whom, and on which entities."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one call."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook pair every concern implements."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Called before the wrapped method runs."""

    def on_completion(self, context: CompletionContext) -> None:
        """Called after the wrapped method returns or raises."""


class PublicApiLoggingConcern:
    """Emit one start line and one completion line per call."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_invocation_fields(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = _invocation_fields(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class _Counter(Protocol):
    def add(self, amount: int | float, attributes: Mapping[str, str]) -> None: ...


class _Histogram(Protocol):
    def record(self, amount: float, attributes: Mapping[str, str]) -> None: ...


class PublicApiTracingConcern:
    """Open one span per call and close it on completion."""

    def __init__(self, *, tracer: Any) -> None:
        self._tracer = tracer
        self._open_spans: ContextVar[tuple[tuple[Any, Any], ...]] = ContextVar(
            "pbx_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        for key, value in (
            (fields.TRACE_ID, context.trace_id),
            (fields.ENVELOPE_ID, context.envelope_id),
            (fields.PRINCIPAL, context.principal),
        ):
            if value is not None:
                span.set_attribute(key, value)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)
        self._open_spans.set((*self._open_spans.get(), (manager, span)))

    def on_completion(self, context: CompletionContext) -> None:
        stack = self._open_spans.get()
        if not stack:
            return
        manager, span = stack[-1]
        self._open_spans.set(stack[:-1])

        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        span.set_attribute(fields.OUTCOME, _outcome(context.success))
        span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            span.set_status(Status(StatusCode.ERROR))
            if context.errors:
                span.record_exception(RuntimeError("; ".join(context.errors[:3])))
        manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Count calls and failures and record latency."""

    def __init__(
        self,
        *,
        calls_total: _Counter,
        duration_ms: _Histogram,
        errors_total: _Counter,
    ) -> None:
        self._calls_total = calls_total
        self._duration_ms = duration_ms
        self._errors_total = errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: _outcome(context.success),
        }
        self._calls_total.add(1, attributes=attrs)
        self._duration_ms.record(context.duration_ms, attributes=attrs)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
    telemetry: bool = True,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one public method.

    ``id_fields`` names keyword arguments whose values are attached to logs and
    spans as references (entity ids, session ids). The OpenTelemetry concerns
    are resolved on first call so importing a service never touches the
    telemetry providers.
    """
    explicit: tuple[PublicApiInstrumentationConcern, ...] = tuple(concerns or ())
    if logger is not None:
        explicit = (PublicApiLoggingConcern(logger=logger), *explicit)
    if not explicit and not telemetry:
        raise ValueError("public_api_instrumented requires at least one concern")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            active = explicit + (_telemetry_concerns() if telemetry else ())
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _dispatch(active, "invocation", invocation, logger, invocation)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=["internal"],
                )
                _dispatch(active, "completion", completion, logger, invocation)
                raise

            success, errors = _result_summary(result)
            completion = CompletionContext(
                invocation=invocation,
                success=success,
                duration_ms=_elapsed_ms(started),
                errors=errors,
                error_categories=_result_error_categories(result),
            )
            _dispatch(active, "completion", completion, logger, invocation)
            return result

        return wrapper

    return decorator


def _dispatch(
    concerns: Sequence[PublicApiInstrumentationConcern],
    stage: str,
    context: InvocationContext | CompletionContext,
    logger: Any | None,
    invocation: InvocationContext,
) -> None:
    for concern in concerns:
        hook = concern.on_invocation if stage == "invocation" else concern.on_completion
        try:
            hook(context)  # type: ignore[arg-type]
        except Exception as exc:  # noqa: BLE001
            _report_concern_failure(
                logger=logger,
                stage=stage,
                concern=type(concern).__name__,
                exc=exc,
                invocation=invocation,
            )


def _report_concern_failure(
    *,
    logger: Any | None,
    stage: str,
    concern: str,
    exc: Exception,
    invocation: InvocationContext,
) -> None:
    if logger is not None:
        with log_context(
            {
                fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                fields.COMPONENT_ID: invocation.component_id,
                fields.API_NAME: invocation.api_name,
                fields.STAGE: stage,
                fields.CONCERN: concern,
                fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
            }
        ):
            logger.warning("Public API instrumentation concern failed")
    _instruments().instrumentation_failures_total.add(
        1,
        attributes={
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.STAGE: stage,
            fields.CONCERN: concern,
        },
    )


def _attr_or_none(obj: object | None, name: str) -> str | None:
    if obj is None:
        return None
    value = getattr(obj, name, None)
    if value in (None, ""):
        return None
    return str(value)


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _outcome(success: bool) -> str:
    return "success" if success else "failure"


def _result_summary(result: object) -> tuple[bool, list[str]]:
    """Infer success and one-line error summaries from an envelope-like result."""
    errors = _summaries(getattr(result, "errors", []))
    ok_value = getattr(result, "ok", None)
    if isinstance(ok_value, bool):
        return ok_value, errors
    return len(errors) == 0, errors


def _result_error_categories(result: object) -> list[str]:
    items = getattr(result, "errors", [])
    if not isinstance(items, list):
        return []
    categories: list[str] = []
    for item in items:
        raw = getattr(item, "category", None)
        category = getattr(raw, "value", raw)
        if category not in (None, ""):
            categories.append(str(category))
    return categories


def _summaries(items: object) -> list[str]:
    if not isinstance(items, list):
        return []
    summaries: list[str] = []
    for item in items:
        code = getattr(item, "code", None)
        message = getattr(item, "message", None)
        if message in (None, ""):
            continue
        summaries.append(str(message) if code in (None, "") else f"{code}: {message}")
    return summaries


def _invocation_fields(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


@dataclass(frozen=True)
class _Instruments:
    calls_total: _Counter
    duration_ms: _Histogram
    errors_total: _Counter
    instrumentation_failures_total: _Counter


@lru_cache(maxsize=1)
def _instruments() -> _Instruments:
    meter = otel_metrics.get_meter(DEFAULT_METER_NAME)
    return _Instruments(
        calls_total=meter.create_counter(
            name=_METRIC_CALLS_TOTAL,
            description="Public API invocations by component, method and outcome.",
            unit="1",
        ),
        duration_ms=meter.create_histogram(
            name=_METRIC_DURATION_MS,
            description="Public API invocation latency.",
            unit="ms",
        ),
        errors_total=meter.create_counter(
            name=_METRIC_ERRORS_TOTAL,
            description="Public API failures by error category.",
            unit="1",
        ),
        instrumentation_failures_total=meter.create_counter(
            name=_METRIC_INSTRUMENTATION_FAILURES_TOTAL,
            description="Instrumentation concern hook failures.",
            unit="1",
        ),
    )


@lru_cache(maxsize=1)
def _telemetry_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    instruments = _instruments()
    return (
        PublicApiTracingConcern(tracer=otel_trace.get_tracer(DEFAULT_TRACER_NAME)),
        PublicApiMetricsConcern(
            calls_total=instruments.calls_total,
            duration_ms=instruments.duration_ms,
            errors_total=instruments.errors_total,
        ),
    )
