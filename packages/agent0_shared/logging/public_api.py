"""Composable instrumentation helpers for public SDK coroutines.

``public_api_instrumented`` wraps one async public method so every call emits
an invocation log, a completion log and OpenTelemetry metrics. Concern hooks
are isolated: a failing concern is logged and never changes the outcome of the
wrapped call.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, TypeVar

from opentelemetry import metrics as otel_metrics

from . import fields
from .context import log_context

METER_NAME = "agent0.storage"
METRIC_PUBLIC_API_CALLS_TOTAL = "agent0_public_api_calls_total"
METRIC_PUBLIC_API_DURATION_MS = "agent0_public_api_duration_ms"
METRIC_PUBLIC_API_ERRORS_TOTAL = "agent0_public_api_errors_total"
METRIC_BACKEND_FAILURES_TOTAL = "agent0_storage_backend_failures_total"

T = TypeVar("T")


@dataclass(frozen=True)
class InvocationContext:
    """Structured metadata describing one public API invocation."""

    component_id: str
    api_name: str
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Structured metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_types: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one public API instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle invocation-start event for one method call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle completion event for one method call."""


class PublicApiLoggingConcern:
    """Logging concern implementation for invocation/completion events."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        """Emit standardized structured invocation-start log."""
        with log_context(_invocation_log_context(context)):
            self._logger.debug("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        """Emit standardized structured completion log."""
        payload = _invocation_log_context(context.invocation)
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


class _CounterLike(Protocol):
    """Minimal counter interface used by metrics concern."""

    def add(self, amount: int | float, attributes: Mapping[str, str]) -> None:
        """Record one counter increment with attributes."""


class _HistogramLike(Protocol):
    """Minimal histogram interface used by metrics concern."""

    def record(self, amount: float, attributes: Mapping[str, str]) -> None:
        """Record one sample with attributes."""


class PublicApiMetricsConcern:
    """Metrics concern implementation for public API invocation telemetry."""

    def __init__(
        self,
        *,
        calls_total: _CounterLike,
        duration_ms: _HistogramLike,
        errors_total: _CounterLike,
    ) -> None:
        self._calls_total = calls_total
        self._duration_ms = duration_ms
        self._errors_total = errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        """No-op at invocation; metrics are emitted on completion."""
        del context

    def on_completion(self, context: CompletionContext) -> None:
        """Emit counters/histograms for completed invocation outcomes."""
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: "success" if context.success else "failure",
        }
        self._calls_total.add(1, attributes=attrs)
        self._duration_ms.record(context.duration_ms, attributes=attrs)

        if context.success:
            return

        for error_type in context.error_types or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_TYPE: error_type,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate one async public API method with instrumentation concerns.

    ``id_fields`` names keyword arguments whose values are attached to the
    invocation as references (for example ``identifier`` or ``uri``).
    """
    resolved_concerns: tuple[PublicApiInstrumentationConcern, ...] = (
        *tuple(concerns or ()),
        _default_public_api_metrics_concern(),
    )
    if logger is not None:
        resolved_concerns = (PublicApiLoggingConcern(logger=logger), *resolved_concerns)

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        method_name = api_name or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            references = {
                name: str(kwargs[name])
                for name in id_fields
                if kwargs.get(name) not in (None, "")
            }
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                references=references,
            )
            _emit(resolved_concerns, "on_invocation", invocation, logger)

            started = perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_types=[type(exc).__name__],
                )
                _emit(resolved_concerns, "on_completion", completion, logger)
                raise

            completion = CompletionContext(
                invocation=invocation,
                success=True,
                duration_ms=_elapsed_ms(started),
                errors=[],
                error_types=[],
            )
            _emit(resolved_concerns, "on_completion", completion, logger)
            return result

        return wrapper

    return decorator


def record_backend_failure(*, backend: str, operation: str, error_type: str) -> None:
    """Count one swallowed storage backend failure."""
    _backend_failures_total().add(
        1,
        attributes={
            fields.BACKEND: backend,
            fields.API_NAME: operation,
            fields.ERROR_TYPE: error_type,
        },
    )


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _invocation_log_context(context: InvocationContext) -> dict[str, object]:
    """Build common structured fields for one invocation event."""
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        **context.references,
    }


def _emit(
    concerns: Sequence[PublicApiInstrumentationConcern],
    hook: str,
    context: InvocationContext | CompletionContext,
    logger: Any | None,
) -> None:
    """Dispatch one event to every concern with failure isolation."""
    for concern in concerns:
        try:
            getattr(concern, hook)(context)
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            logger.warning(
                "Public API instrumentation concern %s failed in %s: %s",
                type(concern).__name__,
                hook,
                exc,
            )


@lru_cache(maxsize=1)
def _meter() -> otel_metrics.Meter:
    return otel_metrics.get_meter(METER_NAME)


@lru_cache(maxsize=1)
def _default_public_api_metrics_concern() -> PublicApiMetricsConcern:
    """Build the OTel-backed metrics concern (no-op until an SDK is installed)."""
    meter = _meter()
    return PublicApiMetricsConcern(
        calls_total=meter.create_counter(
            name=METRIC_PUBLIC_API_CALLS_TOTAL,
            description="Count of public API invocations by component/method/outcome.",
            unit="1",
        ),
        duration_ms=meter.create_histogram(
            name=METRIC_PUBLIC_API_DURATION_MS,
            description="Public API invocation latency in milliseconds.",
            unit="ms",
        ),
        errors_total=meter.create_counter(
            name=METRIC_PUBLIC_API_ERRORS_TOTAL,
            description="Count of public API failures by exception type.",
            unit="1",
        ),
    )


@lru_cache(maxsize=1)
def _backend_failures_total() -> _CounterLike:
    return _meter().create_counter(
        name=METRIC_BACKEND_FAILURES_TOTAL,
        description="Count of storage backend failures swallowed by fallback.",
        unit="1",
    )
