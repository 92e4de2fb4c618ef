"""
Tests for span export setup and the handler span decorator.

The global tracer provider can be installed once per process, so span-capturing
tests share one in-memory provider and setup tests patch the SDK instead.
"""

from unittest.mock import MagicMock, patch

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from injector_webhook_operator.observability.tracing import (
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    shutdown_tracing,
    traced_handler,
)


@pytest.fixture(scope="module")
def module_in_memory_exporter():
    return InMemorySpanExporter()


@pytest.fixture(scope="module")
def module_tracer_provider(module_in_memory_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(module_in_memory_exporter))
    trace.set_tracer_provider(provider)
    return provider


@pytest.fixture(autouse=True)
def reset_tracing_state():
    """Forget any provider installed by setup_tracing."""
    import injector_webhook_operator.observability.tracing as tracing_module

    tracing_module._initialized = False
    tracing_module._tracer_provider = None
    yield
    tracing_module._initialized = False
    tracing_module._tracer_provider = None


@pytest.fixture
def clear_spans(module_in_memory_exporter):
    module_in_memory_exporter.clear()
    yield module_in_memory_exporter
    module_in_memory_exporter.clear()


class TestSetupTracing:
    """Provider installation."""

    def test_disabled_installs_nothing(self):
        result = setup_tracing(enabled=False)
        assert result is None
        assert not is_tracing_enabled()

    @patch("injector_webhook_operator.observability.tracing.OTLPSpanExporter")
    @patch("injector_webhook_operator.observability.tracing.trace.set_tracer_provider")
    def test_setup_tracing_enabled(self, mock_set_provider, mock_exporter):
        """Exporter points at the configured collector."""
        mock_exporter.return_value = MagicMock()

        result = setup_tracing(
            enabled=True,
            endpoint="http://collector:4317",
            service_name="test-service",
            sample_rate=0.5,
        )

        assert isinstance(result, TracerProvider)
        assert is_tracing_enabled()
        mock_exporter.assert_called_once_with(
            endpoint="http://collector:4317", insecure=True
        )
        mock_set_provider.assert_called_once_with(result)

    @patch("injector_webhook_operator.observability.tracing.OTLPSpanExporter")
    @patch("injector_webhook_operator.observability.tracing.trace.set_tracer_provider")
    def test_setup_tracing_idempotent(self, mock_set_provider, mock_exporter):
        """Calling setup twice returns the same provider."""
        first = setup_tracing(enabled=True)
        second = setup_tracing(enabled=True)

        assert first is second
        mock_set_provider.assert_called_once()

    @patch("injector_webhook_operator.observability.tracing.OTLPSpanExporter")
    @patch("injector_webhook_operator.observability.tracing.trace.set_tracer_provider")
    def test_shutdown_tracing(self, mock_set_provider, mock_exporter):
        """Shutdown allows a later setup to run again."""
        setup_tracing(enabled=True, use_simple_processor=True)
        assert is_tracing_enabled()

        shutdown_tracing()
        assert not is_tracing_enabled()

    def test_shutdown_without_setup_is_noop(self):
        shutdown_tracing()
        assert not is_tracing_enabled()

    def test_tracer_available_without_setup(self):
        assert get_tracer("test") is not None


class TestTracedHandler:
    """Spans recorded around kopf handlers."""

    @pytest.mark.asyncio
    async def test_span_carries_resource_attributes(
        self, module_tracer_provider, clear_spans
    ):
        @traced_handler("reconcile_mutating_webhook_configuration")
        async def handler(name: str, **kwargs) -> str:
            return name

        result = await handler(name="mesh-sidecar-injector", type="MODIFIED")

        assert result == "mesh-sidecar-injector"
        spans = clear_spans.get_finished_spans()
        assert len(spans) == 1

        span = spans[0]
        assert span.name == "reconcile_mutating_webhook_configuration"
        assert span.attributes["k8s.resource.name"] == "mesh-sidecar-injector"
        assert span.attributes["k8s.resource.type"] == "mutatingwebhookconfiguration"
        assert span.attributes["k8s.event.type"] == "MODIFIED"
        assert span.status.status_code == StatusCode.OK

    @pytest.mark.asyncio
    async def test_listing_event_has_no_event_type(
        self, module_tracer_provider, clear_spans
    ):
        @traced_handler("op")
        async def handler(**kwargs):
            pass

        await handler(name="x", type=None)

        span = clear_spans.get_finished_spans()[0]
        assert "k8s.event.type" not in span.attributes

    @pytest.mark.asyncio
    async def test_exception_recorded(self, module_tracer_provider, clear_spans):
        @traced_handler("reconcile_that_fails")
        async def failing_handler(**kwargs):
            raise ValueError("collector rejected span")

        with pytest.raises(ValueError, match="collector rejected span"):
            await failing_handler(name="resource")

        span = clear_spans.get_finished_spans()[0]
        assert span.status.status_code == StatusCode.ERROR
        assert "collector rejected span" in span.status.description
        assert any(e.name == "exception" for e in span.events)
