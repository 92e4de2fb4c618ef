"""
Reconciler for the sidecar injector's MutatingWebhookConfiguration.

The reconciler makes sure every webhook entry that belongs to the injector
carries the platform trust bundle in its client configuration. It is level
triggered: every pass re-reads the object, decides from scratch and writes at
most once. Failures never escape; they are turned into a ReconcileResult that
tells the dispatch loop whether to requeue.
"""

import asyncio
import copy
import time
from typing import Protocol

from kubernetes import client
from pydantic import BaseModel, Field

from ..constants import DEFAULT_RECONCILIATION_TIMEOUT, RESOURCE_TYPE
from ..errors import (
    ErrorCode,
    KubernetesAPIError,
    OperatorError,
    ReconcileTimeoutError,
    ResourceNotFoundError,
    TemporaryError,
    get_error_code_with_metric,
)
from ..models import ReconcileRequest, ReconcileResult, TrustBundle
from ..observability.logging import OperatorLogger
from ..observability.metrics import MetricsCollector


class WebhookConfigurationStore(Protocol):
    """Read/write access to MutatingWebhookConfiguration objects."""

    async def get(self, name: str) -> client.V1MutatingWebhookConfiguration: ...

    async def update(
        self, configuration: client.V1MutatingWebhookConfiguration
    ) -> client.V1MutatingWebhookConfiguration: ...


class CertificateSource(Protocol):
    """Supplies the current trust bundle."""

    async def fetch(self, namespace: str, secret_name: str) -> TrustBundle: ...


class ReconcilerConfig(BaseModel):
    """Startup configuration of the reconciler."""

    model_config = {"frozen": True}

    webhook_configuration_name: str = Field(
        ..., description="MutatingWebhookConfiguration to keep in sync"
    )
    injector_webhook_name: str = Field(
        ..., description="Name of the injector entry within the configuration"
    )
    trust_bundle_namespace: str = Field(
        ..., description="Namespace of the webhook certificate secret"
    )
    trust_bundle_secret_name: str = Field(
        ..., description="Name of the webhook certificate secret"
    )
    ca_bundle_staleness_check: bool = Field(
        False, description="Also replace present bundles that differ from the trust bundle"
    )
    dry_run: bool = Field(False, description="Compute changes without writing them")
    reconcile_timeout_seconds: float = Field(
        DEFAULT_RECONCILIATION_TIMEOUT, gt=0, description="Deadline for one pass"
    )

    @classmethod
    def from_settings(cls, settings) -> "ReconcilerConfig":
        """Build the reconciler configuration from operator settings."""
        return cls(
            webhook_configuration_name=settings.webhook_configuration_name,
            injector_webhook_name=settings.injector_webhook_name,
            trust_bundle_namespace=settings.operator_namespace,
            trust_bundle_secret_name=settings.webhook_cert_secret_name,
            ca_bundle_staleness_check=settings.ca_bundle_staleness_check,
            dry_run=settings.dry_run,
            reconcile_timeout_seconds=settings.reconcile_timeout_seconds,
        )


def find_webhooks_needing_ca_bundle(
    configuration: client.V1MutatingWebhookConfiguration,
    injector_webhook_name: str,
    trust_bundle: TrustBundle | None = None,
) -> list[int]:
    """
    Find the injector entries that need the trust bundle.

    An entry needs it when its CA bundle is absent or empty. When a trust
    bundle is given, entries whose bundle differs from it are included too.

    Args:
        configuration: Configuration to inspect
        injector_webhook_name: Name of the injector entry
        trust_bundle: Current trust bundle, for the staleness check

    Returns:
        Indices into ``configuration.webhooks``, in order
    """
    indices = []
    for idx, webhook in enumerate(configuration.webhooks or []):
        if webhook.name != injector_webhook_name:
            continue

        ca_bundle = webhook.client_config.ca_bundle if webhook.client_config else None
        if not ca_bundle:
            indices.append(idx)
        elif trust_bundle is not None and not trust_bundle.matches(ca_bundle):
            indices.append(idx)
    return indices


def inject_ca_bundle(
    configuration: client.V1MutatingWebhookConfiguration,
    indices: list[int],
    trust_bundle: TrustBundle,
) -> list[str]:
    """
    Set the trust bundle on the given entries, in place.

    Returns:
        Names of the patched entries
    """
    patched = []
    for idx in indices:
        webhook = configuration.webhooks[idx]
        if webhook.client_config is None:
            webhook.client_config = client.AdmissionregistrationV1WebhookClientConfig()
        webhook.client_config.ca_bundle = trust_bundle.ca_bundle
        patched.append(webhook.name)
    return patched


def as_operator_error(error: Exception, error_code: ErrorCode) -> OperatorError:
    """
    Wrap an exception as a retryable operator error carrying an error code.

    Operator errors are kept as they are; a code already set is not replaced.
    """
    if not isinstance(error, OperatorError):
        wrapped = TemporaryError(f"{type(error).__name__}: {error}")
        wrapped.__cause__ = error
        error = wrapped
    if error.error_code is None:
        error.error_code = error_code
    return error


class MutatingWebhookReconciler:
    """
    Keeps the injector's CA bundle on the MutatingWebhookConfiguration.

    The store and the certificate source are injected, as are the logger and
    the configuration, so the reconciler holds no global state.
    """

    def __init__(
        self,
        store: WebhookConfigurationStore,
        certificate_source: CertificateSource,
        config: ReconcilerConfig,
        logger: OperatorLogger | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize reconciler.

        Args:
            store: Access to MutatingWebhookConfiguration objects
            certificate_source: Source of the current trust bundle
            config: Reconciler configuration
            logger: Logger for reconcile outcomes
            metrics: Metrics collector, defaults to the global collector
        """
        if metrics is None:
            from ..observability.metrics import metrics_collector

            metrics = metrics_collector

        self.store = store
        self.certificate_source = certificate_source
        self.config = config
        self.logger = logger or OperatorLogger(self.__class__.__name__)
        self.metrics = metrics

    async def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        """
        Reconcile one MutatingWebhookConfiguration.

        Requests for any other configuration are acknowledged without
        touching the API.

        Args:
            request: Identity of the configuration that changed

        Returns:
            Outcome of the pass; never raises for reconcile failures
        """
        if request.name != self.config.webhook_configuration_name:
            return ReconcileResult.ignored()

        start_time = time.time()
        self.logger.log_reconciliation_start(
            resource_type=RESOURCE_TYPE, resource_name=request.name
        )

        try:
            async with asyncio.timeout(self.config.reconcile_timeout_seconds):
                result = await self._reconcile(request)
        except TimeoutError as e:
            error = ReconcileTimeoutError(
                request.name, self.config.reconcile_timeout_seconds
            )
            error.error_code = ErrorCode.RECONCILE_TIMEOUT
            error.__cause__ = e
            result = ReconcileResult.failed(error)
        except Exception as e:
            result = ReconcileResult.failed(
                as_operator_error(e, ErrorCode.RECONCILE_UNEXPECTED)
            )

        self._report(request, result, time.time() - start_time)
        return result

    async def _reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        try:
            fetched = await self.store.get(request.name)
        except ResourceNotFoundError:
            # Deleted or never created; nothing to reconcile
            return ReconcileResult.not_found()
        except Exception as e:
            return ReconcileResult.failed(
                as_operator_error(e, ErrorCode.WEBHOOK_CONFIGURATION_GET)
            )

        if (
            fetched.metadata is None
            or fetched.metadata.name != self.config.webhook_configuration_name
        ):
            return ReconcileResult.ignored()

        # The fetched object may be shared with the client; mutate a private copy
        configuration = copy.deepcopy(fetched)

        trust_bundle = None
        if self.config.ca_bundle_staleness_check:
            try:
                trust_bundle = await self._fetch_trust_bundle()
            except Exception as e:
                return ReconcileResult.failed(
                    as_operator_error(e, ErrorCode.TRUST_BUNDLE_FETCH)
                )

        indices = find_webhooks_needing_ca_bundle(
            configuration, self.config.injector_webhook_name, trust_bundle
        )
        if not indices:
            return ReconcileResult.compliant()

        self.logger.debug(
            f"CA bundle missing for webhook {self.config.injector_webhook_name} "
            f"on {request.name}",
            resource_name=request.name,
        )

        if trust_bundle is None:
            try:
                trust_bundle = await self._fetch_trust_bundle()
            except Exception as e:
                return ReconcileResult.failed(
                    as_operator_error(e, ErrorCode.TRUST_BUNDLE_FETCH)
                )

        if trust_bundle.is_expired():
            self.logger.warning(
                f"Trust bundle from {trust_bundle.namespace}/{trust_bundle.secret_name} "
                f"expired at {trust_bundle.expiration.isoformat()}; applying it anyway",
                resource_name=request.name,
                secret_name=trust_bundle.secret_name,
            )

        patched = inject_ca_bundle(configuration, indices, trust_bundle)

        if self.config.dry_run:
            return ReconcileResult.dry_run(patched)

        try:
            await self.store.update(configuration)
        except ResourceNotFoundError:
            # Deleted between read and write
            return ReconcileResult.not_found()
        except Exception as e:
            if isinstance(e, KubernetesAPIError) and e.is_conflict:
                self.logger.debug(
                    f"{request.name} changed since it was read; will re-read",
                    resource_name=request.name,
                    http_status=e.status,
                )
            return ReconcileResult.failed(
                as_operator_error(e, ErrorCode.WEBHOOK_CA_BUNDLE_UPDATE)
            )

        return ReconcileResult.updated(patched)

    async def _fetch_trust_bundle(self) -> TrustBundle:
        return await self.certificate_source.fetch(
            self.config.trust_bundle_namespace,
            self.config.trust_bundle_secret_name,
        )

    def _report(
        self, request: ReconcileRequest, result: ReconcileResult, duration: float
    ) -> None:
        """Log the outcome and record it in metrics."""
        if result.error is not None:
            error_code = get_error_code_with_metric(
                ErrorCode(result.error.error_code or ErrorCode.RECONCILE_UNEXPECTED)
            )
            self.logger.log_reconciliation_error(
                resource_type=RESOURCE_TYPE,
                resource_name=request.name,
                error=result.error,
                error_code=error_code,
                duration=duration,
            )
        elif result.updated_webhooks:
            self.logger.log_reconciliation_success(
                resource_type=RESOURCE_TYPE,
                resource_name=request.name,
                action=result.action,
                webhooks=list(result.updated_webhooks),
                duration=duration,
            )
            if not self.config.dry_run:
                self.metrics.record_ca_bundle_update(
                    request.name, list(result.updated_webhooks)
                )
        else:
            self.logger.log_reconciliation_noop(
                resource_type=RESOURCE_TYPE,
                resource_name=request.name,
                action=result.action,
                duration=duration,
            )

        self.metrics.record_reconciliation(
            resource_type=RESOURCE_TYPE,
            name=request.name,
            action=result.action,
            duration=duration,
            error=result.error,
        )
