"""
Services package - Contains the reconciliation logic of the operator.

The reconciler is independent of kopf; handlers build requests from watch
events and hand them to it.
"""

from .webhook_reconciler import (
    CertificateSource,
    MutatingWebhookReconciler,
    ReconcilerConfig,
    WebhookConfigurationStore,
)

__all__ = [
    "CertificateSource",
    "MutatingWebhookReconciler",
    "ReconcilerConfig",
    "WebhookConfigurationStore",
]
