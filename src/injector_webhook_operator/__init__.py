"""
Injector Webhook Operator - Keeps the sidecar injector's MutatingWebhookConfiguration
in sync with the platform trust bundle.

This operator provides:
- Level-triggered reconciliation of a single MutatingWebhookConfiguration
- CA bundle injection for the sidecar injector webhook entry
- Structured logging, Prometheus metrics and optional tracing
"""

__version__ = "0.1.0"
