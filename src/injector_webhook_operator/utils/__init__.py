"""
Utils package - Utility modules for injector webhook operator functionality.

Contains helper modules for:
- Kubernetes client management and MutatingWebhookConfiguration access
- Trust bundle retrieval from Kubernetes secrets
- Handler logging
"""

from injector_webhook_operator.utils.certificate_source import (
    KubernetesSecretCertificateSource,
)
from injector_webhook_operator.utils.kubernetes import (
    KubernetesWebhookConfigurationStore,
    get_kubernetes_client,
)

__all__ = [
    "KubernetesSecretCertificateSource",
    "KubernetesWebhookConfigurationStore",
    "get_kubernetes_client",
]
