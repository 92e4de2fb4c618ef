"""
Trust bundle retrieval from Kubernetes secrets.

The webhook certificate secret is written by the platform's certificate
management. This module only reads it; it never creates or rotates
certificates.
"""

import asyncio
import base64
import binascii
import logging
from datetime import datetime

from kubernetes import client
from kubernetes.client.rest import ApiException

from injector_webhook_operator.constants import (
    DEFAULT_API_REQUEST_TIMEOUT,
    PEM_CERTIFICATE_HEADER,
    SECRET_CA_CERT_KEY,
    SECRET_EXPIRATION_KEY,
)
from injector_webhook_operator.errors import TrustBundleError
from injector_webhook_operator.models import TrustBundle

logger = logging.getLogger(__name__)


def _decode_secret_value(
    data: dict[str, str], key: str, namespace: str, secret_name: str
) -> bytes:
    try:
        return base64.b64decode(data[key], validate=True)
    except (binascii.Error, ValueError) as e:
        raise TrustBundleError(
            namespace, secret_name, f"value of '{key}' is not valid base64"
        ) from e


def parse_trust_bundle(
    secret: client.V1Secret, namespace: str, secret_name: str
) -> TrustBundle:
    """
    Build a TrustBundle from a webhook certificate secret.

    Args:
        secret: Secret as returned by the Kubernetes API
        namespace: Namespace the secret was read from
        secret_name: Name of the secret

    Returns:
        Parsed trust bundle

    Raises:
        TrustBundleError: If the CA certificate is missing or malformed
    """
    data = secret.data or {}

    if not data.get(SECRET_CA_CERT_KEY):
        raise TrustBundleError(
            namespace,
            secret_name,
            f"secret has no '{SECRET_CA_CERT_KEY}' key",
        )

    cert_chain = _decode_secret_value(data, SECRET_CA_CERT_KEY, namespace, secret_name)
    if PEM_CERTIFICATE_HEADER not in cert_chain:
        raise TrustBundleError(
            namespace,
            secret_name,
            f"value of '{SECRET_CA_CERT_KEY}' is not a PEM encoded certificate",
        )

    expiration = None
    if data.get(SECRET_EXPIRATION_KEY):
        raw = _decode_secret_value(
            data, SECRET_EXPIRATION_KEY, namespace, secret_name
        ).decode(errors="replace")
        try:
            expiration = datetime.fromisoformat(raw.strip())
        except ValueError:
            # The chain is still usable without a known expiration
            logger.warning(
                f"Ignoring unparseable expiration '{raw}' in secret "
                f"{namespace}/{secret_name}"
            )

    return TrustBundle(
        namespace=namespace,
        secret_name=secret_name,
        cert_chain=cert_chain,
        expiration=expiration,
    )


class KubernetesSecretCertificateSource:
    """Reads the current trust bundle from a Kubernetes secret."""

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        request_timeout: float = DEFAULT_API_REQUEST_TIMEOUT,
    ):
        """
        Initialize certificate source.

        Args:
            k8s_client: Optional Kubernetes API client
            request_timeout: Timeout in seconds for each API request
        """
        self.k8s_client = k8s_client
        self.request_timeout = request_timeout
        self._v1: client.CoreV1Api | None = None

    @property
    def v1(self) -> client.CoreV1Api:
        """Get CoreV1Api client."""
        if self._v1 is None:
            if self.k8s_client:
                self._v1 = client.CoreV1Api(self.k8s_client)
            else:
                self._v1 = client.CoreV1Api()
        return self._v1

    async def fetch(self, namespace: str, secret_name: str) -> TrustBundle:
        """
        Fetch the current trust bundle.

        Args:
            namespace: Namespace of the webhook certificate secret
            secret_name: Name of the webhook certificate secret

        Returns:
            Current trust bundle

        Raises:
            TrustBundleError: If the secret is missing, unreadable or malformed
        """
        try:
            secret = await asyncio.to_thread(
                self.v1.read_namespaced_secret,
                name=secret_name,
                namespace=namespace,
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                raise TrustBundleError(
                    namespace,
                    secret_name,
                    "secret not found",
                ) from e
            raise TrustBundleError(
                namespace,
                secret_name,
                f"failed to read secret: HTTP {e.status} {e.reason}",
            ) from e

        return parse_trust_bundle(secret, namespace, secret_name)
