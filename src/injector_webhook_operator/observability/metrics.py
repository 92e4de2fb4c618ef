"""
Prometheus metrics for the injector webhook operator.

This module provides metrics collection for reconcile outcomes, CA bundle
injections and error codes, and the HTTP server that exposes them.
"""

import logging
import time
from typing import Any

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    get,
    json_response,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

# Metrics definitions
RECONCILIATION_TOTAL = Counter(
    "injector_webhook_operator_reconciliation_total",
    "Total number of reconciliation passes by outcome",
    ["resource_type", "name", "action"],
    registry=None,  # Will be set during initialization
)

RECONCILIATION_DURATION = Histogram(
    "injector_webhook_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation passes",
    ["resource_type", "action"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=None,
)

RECONCILIATION_ERRORS = Counter(
    "injector_webhook_operator_reconciliation_errors_total",
    "Total number of reconciliation errors",
    ["resource_type", "error_type", "retryable"],
    registry=None,
)

REQUEUES_TOTAL = Counter(
    "injector_webhook_operator_requeues_total",
    "Total number of requeued reconciliation attempts",
    ["resource_type", "name"],
    registry=None,
)

REQUEUES_EXHAUSTED_TOTAL = Counter(
    "injector_webhook_operator_requeues_exhausted_total",
    "Total number of events whose retries were exhausted",
    ["resource_type", "name"],
    registry=None,
)

CA_BUNDLE_UPDATES_TOTAL = Counter(
    "injector_webhook_operator_ca_bundle_updates_total",
    "Total number of webhook entries whose CA bundle was written",
    ["name", "webhook"],
    registry=None,
)

ERROR_CODE_TOTAL = Counter(
    "injector_webhook_operator_error_code_total",
    "Total number of reported errors by error code",
    ["error_code"],
    registry=None,
)

LAST_SUCCESSFUL_RECONCILE_TIMESTAMP = Gauge(
    "injector_webhook_operator_last_successful_reconcile_timestamp",
    "Unix timestamp of the last reconciliation pass that ended without error",
    ["name"],
    registry=None,
)

ALL_METRICS = [
    RECONCILIATION_TOTAL,
    RECONCILIATION_DURATION,
    RECONCILIATION_ERRORS,
    REQUEUES_TOTAL,
    REQUEUES_EXHAUSTED_TOTAL,
    CA_BUNDLE_UPDATES_TOTAL,
    ERROR_CODE_TOTAL,
    LAST_SUCCESSFUL_RECONCILE_TIMESTAMP,
]


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in ALL_METRICS:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the injector webhook operator."""

    def __init__(self):
        """Initialize metrics collector."""
        self.registry = get_metrics_registry()

    def record_reconciliation(
        self,
        resource_type: str,
        name: str,
        action: str,
        duration: float,
        error: Exception | None = None,
    ) -> None:
        """
        Record the outcome of a reconciliation pass.

        Args:
            resource_type: Type of resource reconciled
            name: Name of the resource
            action: Reconcile action (ignored, compliant, updated, failed, ...)
            duration: Time taken for the pass in seconds
            error: Error reported by the pass, if any
        """
        RECONCILIATION_TOTAL.labels(
            resource_type=resource_type, name=name, action=action
        ).inc()

        RECONCILIATION_DURATION.labels(
            resource_type=resource_type, action=action
        ).observe(duration)

        if error is not None:
            retryable = "true" if getattr(error, "retryable", False) else "false"
            RECONCILIATION_ERRORS.labels(
                resource_type=resource_type,
                error_type=type(error).__name__,
                retryable=retryable,
            ).inc()
        else:
            LAST_SUCCESSFUL_RECONCILE_TIMESTAMP.labels(name=name).set(time.time())

    def record_ca_bundle_update(self, name: str, webhooks: list[str]) -> None:
        """
        Record CA bundle writes.

        Args:
            name: Name of the webhook configuration
            webhooks: Names of the webhook entries that received the bundle
        """
        for webhook in webhooks:
            CA_BUNDLE_UPDATES_TOTAL.labels(name=name, webhook=webhook).inc()

    def record_requeue(self, resource_type: str, name: str, exhausted: bool = False):
        """
        Record a requeued attempt, or that no attempts are left.

        Args:
            resource_type: Type of resource
            name: Name of the resource
            exhausted: Whether the retry budget for the event is used up
        """
        if exhausted:
            REQUEUES_EXHAUSTED_TOTAL.labels(resource_type=resource_type, name=name).inc()
        else:
            REQUEUES_TOTAL.labels(resource_type=resource_type, name=name).inc()

    def record_error_code(self, error_code: str) -> None:
        """Count an occurrence of an operational error code."""
        ERROR_CODE_TOTAL.labels(error_code=error_code).inc()


class MetricsServer:
    """
    Small aiohttp app serving Prometheus scrapes and HTTP health probes.

    ``/metrics`` exposes the operator registry, ``/health`` runs every
    health check, ``/ready`` only checks API reachability and ``/healthz``
    answers without touching anything.
    """

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self.app = Application()
        self.app.router.add_routes(
            [
                get("/metrics", self._metrics_handler),
                get("/health", self._health_handler),
                get("/ready", self._ready_handler),
                get("/healthz", self._healthz_handler),
            ]
        )
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None

    async def _metrics_handler(self, request: Request) -> Response:
        try:
            payload = generate_latest(get_metrics_registry())
            # CONTENT_TYPE_LATEST carries a charset, which content_type= rejects
            return Response(
                body=payload, headers={"Content-Type": CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.exception("Could not render Prometheus metrics")
            return Response(text=_failure_reason(e), status=500)

    async def _health_handler(self, request: Request) -> Response:
        from .health import HealthChecker

        try:
            checker = HealthChecker()
            report = checker.to_dict(await checker.check_all())
        except Exception as e:
            logger.exception("Health check raised")
            return json_response(_failure_body("unhealthy", e), status=500)

        # Degraded still serves traffic; only a hard failure fails the probe
        healthy = report["status"] in ("healthy", "degraded")
        return json_response(report, status=200 if healthy else 503)

    async def _ready_handler(self, request: Request) -> Response:
        from .health import HealthChecker

        try:
            api = await HealthChecker()._check_kubernetes_api()
        except Exception as e:
            logger.exception("Readiness check raised")
            return json_response(_failure_body("not_ready", e), status=503)

        ready = api.status == "healthy"
        body: dict[str, Any] = {
            "status": "ready" if ready else "not_ready",
            "timestamp": time.time(),
            "checks": {"kubernetes_api": api.status},
        }
        return json_response(body, status=200 if ready else 503)

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Bind and start serving; bind errors propagate to the caller."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()
        self.site = TCPSite(self.runner, self.host, self.port)
        try:
            await self.site.start()
        except OSError:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            raise
        logger.info(f"Serving /metrics and probes on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.site is not None:
            await self.site.stop()
            self.site = None
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
        logger.info("Metrics endpoint closed")


def _failure_reason(error: Exception) -> str:
    # Exception text may carry cluster details; expose only the type
    return f"{type(error).__name__}; see operator logs"


def _failure_body(status: str, error: Exception) -> dict[str, Any]:
    return {
        "status": status,
        "error": _failure_reason(error),
        "timestamp": time.time(),
    }


metrics_collector = MetricsCollector()
