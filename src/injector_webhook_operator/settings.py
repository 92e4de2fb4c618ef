"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from injector_webhook_operator.constants import (
    DEFAULT_API_REQUEST_TIMEOUT,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_INITIAL_DELAY,
    DEFAULT_INJECTOR_WEBHOOK_NAME,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OPERATOR_NAMESPACE,
    DEFAULT_RECONCILIATION_TIMEOUT,
    DEFAULT_WATCH_SERVER_TIMEOUT,
    DEFAULT_WEBHOOK_CERT_SECRET_NAME,
    DEFAULT_WEBHOOK_CONFIGURATION_NAME,
)


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_namespace: str = Field(
        default=DEFAULT_OPERATOR_NAMESPACE,
        description="Namespace where the operator and the webhook certificate secret live",
        validation_alias="OPERATOR_NAMESPACE",
    )
    operator_name: str = Field(
        default="injector-webhook-operator",
        description="Name of the operator deployment",
        validation_alias="OPERATOR_NAME",
    )

    # Reconciliation target
    webhook_configuration_name: str = Field(
        default=DEFAULT_WEBHOOK_CONFIGURATION_NAME,
        description="Name of the MutatingWebhookConfiguration to keep in sync",
        validation_alias="WEBHOOK_CONFIGURATION_NAME",
    )
    injector_webhook_name: str = Field(
        default=DEFAULT_INJECTOR_WEBHOOK_NAME,
        description="Name of the sidecar injector entry within the configuration",
        validation_alias="INJECTOR_WEBHOOK_NAME",
    )
    webhook_cert_secret_name: str = Field(
        default=DEFAULT_WEBHOOK_CERT_SECRET_NAME,
        description="Secret holding the trust bundle for the injector webhook",
        validation_alias="WEBHOOK_CERT_SECRET_NAME",
    )
    ca_bundle_staleness_check: bool = Field(
        default=False,
        validation_alias="CA_BUNDLE_STALENESS_CHECK",
        description=(
            "Also replace CA bundles that are present but differ from the "
            "current trust bundle (fetches the secret on every reconcile)"
        ),
    )

    # Operator behavior
    dry_run: bool = Field(
        default=False,
        validation_alias="DRY_RUN",
        description="Run in dry-run mode (no changes applied to the cluster)",
    )
    reconcile_timeout_seconds: float = Field(
        default=DEFAULT_RECONCILIATION_TIMEOUT,
        gt=0,
        validation_alias="RECONCILE_TIMEOUT_SECONDS",
        description="Deadline for a single reconciliation pass",
    )
    api_request_timeout_seconds: float = Field(
        default=DEFAULT_API_REQUEST_TIMEOUT,
        gt=0,
        validation_alias="API_REQUEST_TIMEOUT_SECONDS",
        description="Timeout for each Kubernetes API request",
    )

    # Requeue behavior
    requeue_initial_delay_seconds: float = Field(
        default=DEFAULT_INITIAL_DELAY,
        ge=0,
        validation_alias="REQUEUE_INITIAL_DELAY_SECONDS",
        description="Delay before the first retry of a failed reconciliation",
    )
    requeue_backoff_factor: float = Field(
        default=DEFAULT_BACKOFF_FACTOR,
        ge=1.0,
        validation_alias="REQUEUE_BACKOFF_FACTOR",
        description="Multiplier applied to the retry delay after each attempt",
    )
    requeue_max_delay_seconds: float = Field(
        default=DEFAULT_MAX_DELAY,
        gt=0,
        validation_alias="REQUEUE_MAX_DELAY_SECONDS",
        description="Upper bound for the retry delay",
    )
    requeue_max_attempts: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        validation_alias="REQUEUE_MAX_ATTEMPTS",
        description="Retries per event before waiting for the next event",
    )
    watch_server_timeout_seconds: int = Field(
        default=DEFAULT_WATCH_SERVER_TIMEOUT,
        gt=0,
        validation_alias="WATCH_SERVER_TIMEOUT_SECONDS",
        description="Watch stream lifetime; each reconnect re-lists the watched objects",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log health probe and metrics scrape requests",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="TRACING_ENABLED",
        description="Enable OpenTelemetry tracing",
    )
    tracing_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="OTLP collector endpoint (gRPC)",
    )
    tracing_service_name: str = Field(
        default="injector-webhook-operator",
        validation_alias="OTEL_SERVICE_NAME",
        description="Service name reported in traces",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        validation_alias="TRACING_SAMPLE_RATE",
        description="Sampling rate for root spans (0.0-1.0)",
    )
    tracing_insecure: bool = Field(
        default=True,
        validation_alias="TRACING_INSECURE",
        description="Use an insecure (non-TLS) connection to the collector",
    )


# Global settings instance - initialized once at module import
settings = Settings()
