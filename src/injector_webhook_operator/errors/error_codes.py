"""
Operational error codes.

Each failure mode worth alerting on has a stable code. Looking up a code for
a log entry also counts it, so the ``error_code_total`` metric shows which
failures are happening even when nobody reads the logs.
"""

from enum import StrEnum


class ErrorCode(StrEnum):
    """Error codes emitted by the reconciler."""

    # Reading the MutatingWebhookConfiguration failed
    WEBHOOK_CONFIGURATION_GET = "E7001"
    # Trust bundle secret missing, malformed or unreadable; nothing was written
    TRUST_BUNDLE_FETCH = "E7002"
    # Writing the CA bundle failed, write conflicts included
    WEBHOOK_CA_BUNDLE_UPDATE = "E7003"
    # Pass aborted at its deadline; updates are whole-object, so none is partial
    RECONCILE_TIMEOUT = "E7004"
    RECONCILE_UNEXPECTED = "E7005"


def get_error_code_with_metric(code: ErrorCode) -> str:
    """
    Return the code for logging and count its occurrence.

    Args:
        code: Error code being reported

    Returns:
        The code as a plain string
    """
    from ..observability.metrics import metrics_collector

    metrics_collector.record_error_code(code.value)
    return code.value
