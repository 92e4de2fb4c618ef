"""
Error handling module for the injector webhook operator.

This module provides an error hierarchy that lets the reconciler classify
failures into requeue / ignore decisions, plus the operational error codes
reported alongside them.
"""

from .error_codes import ErrorCode, get_error_code_with_metric
from .operator_errors import (
    ConfigurationError,
    ExternalServiceError,
    KubernetesAPIError,
    OperatorError,
    ReconcileTimeoutError,
    ResourceNotFoundError,
    TemporaryError,
    TrustBundleError,
)

__all__ = [
    "OperatorError",
    "ResourceNotFoundError",
    "TemporaryError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "TrustBundleError",
    "ReconcileTimeoutError",
    "ConfigurationError",
    "ErrorCode",
    "get_error_code_with_metric",
]
