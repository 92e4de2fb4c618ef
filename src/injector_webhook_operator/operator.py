#!/usr/bin/env python3
"""
Injector Webhook Operator - Main entry point for the Kopf-based operator.

The operator watches MutatingWebhookConfigurations cluster-wide and makes
sure the sidecar injector's webhook entry carries the CA bundle from the
webhook certificate secret, so the API server can call the injector over TLS.

Usage:
    python -m injector_webhook_operator.operator
    # Or with kopf directly:
    kopf run -m injector_webhook_operator.operator --all-namespaces

Environment Variables:
    WEBHOOK_CONFIGURATION_NAME: MutatingWebhookConfiguration to keep in sync
    INJECTOR_WEBHOOK_NAME: Injector entry within that configuration
    OPERATOR_NAMESPACE: Namespace of the webhook certificate secret
    WEBHOOK_CERT_SECRET_NAME: Name of the webhook certificate secret
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    DRY_RUN: Set to 'true' for dry-run mode
"""

import logging
import sys

import kopf
from kubernetes import config
from pydantic import ValidationError

from injector_webhook_operator.errors import ConfigurationError

# Importing the handler module registers its decorators with kopf
from injector_webhook_operator.handlers import webhook_configuration  # noqa: F401
from injector_webhook_operator.handlers.webhook_configuration import RequeuePolicy
from injector_webhook_operator.observability.health import HealthChecker
from injector_webhook_operator.observability.logging import (
    OperatorLogger,
    setup_structured_logging,
)
from injector_webhook_operator.observability.metrics import MetricsServer
from injector_webhook_operator.observability.tracing import (
    setup_tracing,
    shutdown_tracing,
)
from injector_webhook_operator.services import (
    MutatingWebhookReconciler,
    ReconcilerConfig,
)
from injector_webhook_operator.settings import Settings
from injector_webhook_operator.settings import settings as operator_settings
from injector_webhook_operator.utils import (
    KubernetesSecretCertificateSource,
    KubernetesWebhookConfigurationStore,
    get_kubernetes_client,
)

OPERATOR_NAME = "injector-webhook-operator"

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
        log_health_probes=operator_settings.log_health_probes,
    )


def build_reconciler(settings: Settings) -> MutatingWebhookReconciler:
    """
    Wire the reconciler with Kubernetes-backed collaborators.

    Args:
        settings: Operator settings

    Returns:
        Reconciler ready to serve watch events

    Raises:
        ConfigurationError: If the settings do not form a valid configuration
            or no Kubernetes configuration can be loaded
    """
    try:
        reconciler_config = ReconcilerConfig.from_settings(settings)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid reconciler configuration: {e}") from e

    try:
        k8s_client = get_kubernetes_client()
    except config.ConfigException as e:
        raise ConfigurationError(
            f"Failed to load Kubernetes configuration: {e}",
            user_action="Run in-cluster or provide a valid kubeconfig",
        ) from e

    return MutatingWebhookReconciler(
        store=KubernetesWebhookConfigurationStore(
            k8s_client, request_timeout=settings.api_request_timeout_seconds
        ),
        certificate_source=KubernetesSecretCertificateSource(
            k8s_client, request_timeout=settings.api_request_timeout_seconds
        ),
        config=reconciler_config,
        logger=OperatorLogger(MutatingWebhookReconciler.__name__),
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    Configures kopf, starts the metrics server and tracing, and stores the
    reconciler and requeue policy in the memo for the event handler.
    """
    logging.info("Starting Injector Webhook Operator...")

    # One object, idempotent writes: no peering or leader election needed
    settings.peering.standalone = True
    # The watched objects are not ours; keep kopf from posting events on them
    settings.posting.level = logging.WARNING
    settings.watching.server_timeout = operator_settings.watch_server_timeout_seconds
    settings.watching.reconnect_backoff = 1.0

    logging.info(
        f"Reconciling MutatingWebhookConfiguration "
        f"{operator_settings.webhook_configuration_name} "
        f"(webhook {operator_settings.injector_webhook_name}) from secret "
        f"{operator_settings.operator_namespace}/"
        f"{operator_settings.webhook_cert_secret_name}"
    )

    if operator_settings.dry_run:
        logging.info("Running in DRY-RUN mode - no changes will be applied")

    try:
        memo.reconciler = build_reconciler(operator_settings)
    except ConfigurationError as e:
        logging.error(f"Operator configuration is invalid: {e}")
        raise e.as_kopf_error() from e

    memo.requeue_policy = RequeuePolicy.from_settings(operator_settings)

    setup_tracing(
        enabled=operator_settings.tracing_enabled,
        endpoint=operator_settings.tracing_endpoint,
        service_name=operator_settings.tracing_service_name,
        sample_rate=operator_settings.tracing_sample_rate,
        insecure=operator_settings.tracing_insecure,
    )

    try:
        metrics_server = MetricsServer(
            port=operator_settings.metrics_port, host=operator_settings.metrics_host
        )
        await metrics_server.start()

        global _global_metrics_server
        _global_metrics_server = metrics_server

    except OSError as e:
        # Reconciling does not depend on the metrics endpoint
        logging.warning(f"Metrics endpoint unavailable, continuing without it: {e}")


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    """Stop the metrics server and flush pending spans."""
    logging.info("Shutting down Injector Webhook Operator...")

    global _global_metrics_server
    if _global_metrics_server:
        await _global_metrics_server.stop()
        _global_metrics_server = None

    shutdown_tracing()


@kopf.on.probe(id="healthz")
async def health_check(**_) -> dict[str, str]:
    """
    Health check probe for Kubernetes liveness checks.

    Returns:
        Dictionary indicating operator health status
    """
    try:
        health_checker = HealthChecker()
        health_results = await health_checker.check_all()
        overall_health = health_checker.get_overall_health(health_results)

        return {"status": overall_health, "operator": OPERATOR_NAME}
    except Exception as e:
        logging.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "operator": OPERATOR_NAME, "error": str(e)}


@kopf.on.probe(id="ready")
async def readiness_check(**_) -> dict[str, str]:
    """
    Readiness check probe - ready once the Kubernetes API is reachable.

    Returns:
        Dictionary indicating operator readiness
    """
    try:
        health_checker = HealthChecker()
        result = await health_checker._check_kubernetes_api()

        if result.status == "healthy":
            return {"status": "ready", "operator": OPERATOR_NAME}
        return {"status": "not_ready", "operator": OPERATOR_NAME}

    except Exception as e:
        logging.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "operator": OPERATOR_NAME, "error": str(e)}


def main() -> None:
    """
    Main entry point for the operator.

    Configures logging and runs kopf cluster-wide; MutatingWebhookConfigurations
    are cluster scoped.
    """
    configure_logging()

    try:
        # Operator settings are applied in startup_handler
        kopf.run(
            clusterwide=True,
            liveness_endpoint="http://0.0.0.0:8080/healthz",
        )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
