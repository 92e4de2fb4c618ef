"""
OpenTelemetry tracing for the injector webhook operator.

Each dispatched reconcile runs inside one span. Spans are exported to an
OTLP collector over gRPC when TRACING_ENABLED is set; otherwise the global
no-op tracer is used and the decorator costs next to nothing.

Usage:
    setup_tracing(enabled=True, endpoint="http://otel-collector:4317")

    @traced_handler("reconcile_mutating_webhook_configuration")
    async def on_event(name, **kwargs):
        ...
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer

from injector_webhook_operator import __version__
from injector_webhook_operator.constants import RESOURCE_TYPE

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_initialized: bool = False

P = ParamSpec("P")
R = TypeVar("R")


def setup_tracing(
    enabled: bool = False,
    endpoint: str = "http://localhost:4317",
    service_name: str = "injector-webhook-operator",
    sample_rate: float = 1.0,
    insecure: bool = True,
    use_simple_processor: bool = False,
) -> TracerProvider | None:
    """
    Install the global tracer provider.

    Safe to call more than once; only the first call has an effect until
    shutdown_tracing() is called.

    Args:
        enabled: Export spans; when False nothing is installed
        endpoint: OTLP gRPC collector endpoint
        service_name: ``service.name`` resource attribute
        sample_rate: Fraction of root spans to sample
        insecure: Connect to the collector without TLS
        use_simple_processor: Export each span synchronously (tests)

    Returns:
        The installed provider, or None when tracing is disabled
    """
    global _tracer_provider, _initialized

    if _initialized:
        return _tracer_provider
    _initialized = True

    if not enabled:
        logger.info("Tracing disabled")
        return None

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": service_name,
                "service.version": __version__,
            }
        ),
        # Child spans follow the caller's decision
        sampler=ParentBased(root=TraceIdRatioBased(sample_rate)),
    )

    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=insecure)
    if use_simple_processor:
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    else:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    logger.info(
        f"Tracing enabled: exporting to {endpoint} as {service_name} "
        f"(sample rate {sample_rate})"
    )
    return provider


def shutdown_tracing() -> None:
    """Flush pending spans and forget the provider."""
    global _tracer_provider, _initialized

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
        logger.info("Tracing shut down")

    _initialized = False


def get_tracer(name: str = __name__) -> Tracer:
    """Tracer from the global provider; a no-op tracer when disabled."""
    return trace.get_tracer(name)


def is_tracing_enabled() -> bool:
    return _initialized and _tracer_provider is not None


def traced_handler(
    operation_name: str,
    span_kind: SpanKind = SpanKind.INTERNAL,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Run an async kopf handler inside a span.

    The span is named ``operation_name`` and tagged with the object name and
    watch event type from the handler's keyword arguments. Exceptions are
    recorded on the span and re-raised.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attributes = {
                "k8s.resource.type": RESOURCE_TYPE,
                "k8s.resource.name": str(kwargs.get("name", "unknown")),
                "kopf.handler": func.__name__,
            }
            if kwargs.get("type"):
                attributes["k8s.event.type"] = str(kwargs["type"])

            tracer = get_tracer(func.__module__)
            with tracer.start_as_current_span(
                operation_name, kind=span_kind, attributes=attributes
            ) as span:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator
