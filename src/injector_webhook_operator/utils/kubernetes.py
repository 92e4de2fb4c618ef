"""
Kubernetes utilities for the injector webhook operator.

This module provides helper functions for interacting with the Kubernetes API:
- Kubernetes client management and configuration
- Typed get/replace access to MutatingWebhookConfiguration objects
- Translation of API exceptions into operator errors
"""

import asyncio
import logging

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from injector_webhook_operator.constants import (
    DEFAULT_API_REQUEST_TIMEOUT,
    WEBHOOK_CONFIGURATION_KIND,
)
from injector_webhook_operator.errors import KubernetesAPIError, ResourceNotFoundError

logger = logging.getLogger(__name__)


def load_kubernetes_config() -> None:
    """
    Load Kubernetes configuration.

    Tries in-cluster configuration first (when running in a pod) and falls
    back to the local kubeconfig for development.
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Returns:
        Configured Kubernetes API client
    """
    load_kubernetes_config()
    return client.ApiClient()


def translate_api_exception(
    e: ApiException,
    operation: str,
    kind: str,
    name: str,
    namespace: str | None = None,
) -> ResourceNotFoundError | KubernetesAPIError:
    """
    Map an ApiException onto the operator error hierarchy.

    Args:
        e: Exception raised by the Kubernetes client
        operation: What was being done ("read", "update", ...)
        kind: Resource kind
        name: Resource name
        namespace: Resource namespace, if namespaced

    Returns:
        ResourceNotFoundError for HTTP 404, KubernetesAPIError otherwise
    """
    if e.status == 404:
        return ResourceNotFoundError(kind, name, namespace)

    location = f"{namespace}/{name}" if namespace else name
    return KubernetesAPIError(
        f"Failed to {operation} {kind} {location}: HTTP {e.status}",
        status=e.status,
        reason=e.reason,
    )


class KubernetesWebhookConfigurationStore:
    """Reads and replaces MutatingWebhookConfiguration objects."""

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        request_timeout: float = DEFAULT_API_REQUEST_TIMEOUT,
    ):
        """
        Initialize the store.

        Args:
            k8s_client: Optional Kubernetes API client
            request_timeout: Timeout in seconds for each API request
        """
        self.k8s_client = k8s_client
        self.request_timeout = request_timeout
        self._admission_api: client.AdmissionregistrationV1Api | None = None

    @property
    def admission_api(self) -> client.AdmissionregistrationV1Api:
        """Get AdmissionregistrationV1Api client."""
        if self._admission_api is None:
            if self.k8s_client:
                self._admission_api = client.AdmissionregistrationV1Api(
                    self.k8s_client
                )
            else:
                self._admission_api = client.AdmissionregistrationV1Api()
        return self._admission_api

    async def get(self, name: str) -> client.V1MutatingWebhookConfiguration:
        """
        Read a MutatingWebhookConfiguration.

        Args:
            name: Configuration name

        Returns:
            The configuration as currently stored

        Raises:
            ResourceNotFoundError: If the configuration does not exist
            KubernetesAPIError: If the read fails for any other reason
        """
        try:
            return await asyncio.to_thread(
                self.admission_api.read_mutating_webhook_configuration,
                name=name,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise translate_api_exception(
                e, "read", WEBHOOK_CONFIGURATION_KIND, name
            ) from e

    async def update(
        self, configuration: client.V1MutatingWebhookConfiguration
    ) -> client.V1MutatingWebhookConfiguration:
        """
        Replace a MutatingWebhookConfiguration as a whole.

        The object's resourceVersion is sent along, so the API server rejects
        the write with HTTP 409 if the object changed since it was read.

        Args:
            configuration: Configuration to write

        Returns:
            The configuration as stored after the write

        Raises:
            ResourceNotFoundError: If the configuration was deleted meanwhile
            KubernetesAPIError: On conflicts and any other failure
        """
        name = configuration.metadata.name
        try:
            return await asyncio.to_thread(
                self.admission_api.replace_mutating_webhook_configuration,
                name=name,
                body=configuration,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            raise translate_api_exception(
                e, "update", WEBHOOK_CONFIGURATION_KIND, name
            ) from e
