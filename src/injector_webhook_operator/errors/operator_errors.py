"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the injector webhook
operator. Every failure raised below the reconciler is one of these types,
and the reconciler turns them into a requeue decision. Retry timing is owned
by the dispatch loop's backoff policy, not by the errors.
"""

import kopf


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        user_action: str | None = None,
        error_code: str | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (not_found, api, trust_bundle, timeout, ...)
            retryable: Whether the reconciliation should be requeued
            user_action: What user should do to resolve the issue
            error_code: Operational error code (see errors.error_codes)
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.user_action = user_action
        self.error_code = error_code

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self))
        return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ResourceNotFoundError(OperatorError):
    """The requested object does not exist (HTTP 404)."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(
            message=f"{kind} {location} not found",
            category="not_found",
            retryable=False,
        )
        self.kind = kind
        self.name = name
        self.namespace = namespace


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(
        self,
        message: str,
        user_action: str | None = None,
        error_code: str | None = None,
    ):
        super().__init__(
            message=message,
            category="temporary",
            user_action=user_action
            or "Wait for automatic retry or check system status",
            error_code=error_code,
        )


class ExternalServiceError(OperatorError):
    """A dependency of the reconciler failed; always retried."""

    def __init__(
        self,
        service: str,
        message: str,
        category: str,
        user_action: str,
        error_code: str | None = None,
    ):
        super().__init__(
            message=f"{service} error: {message}",
            category=category,
            user_action=user_action,
            error_code=error_code,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with Kubernetes API."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason: str | None = None,
        error_code: str | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"

        super().__init__(
            service="Kubernetes API",
            message=message,
            category="api",
            user_action="Check RBAC permissions and cluster connectivity",
            error_code=error_code,
        )
        self.status = status
        self.reason = reason

    @property
    def is_conflict(self) -> bool:
        """True when the write was rejected because the object changed since it was read."""
        return self.status == 409


class TrustBundleError(ExternalServiceError):
    """The trust bundle could not be read from its secret."""

    def __init__(self, namespace: str, secret_name: str, message: str):
        super().__init__(
            service="Trust bundle",
            message=f"{namespace}/{secret_name}: {message}",
            category="trust_bundle",
            user_action=(
                "Check that the webhook certificate secret exists and holds a "
                "PEM encoded CA certificate"
            ),
        )
        self.namespace = namespace
        self.secret_name = secret_name


class ReconcileTimeoutError(TemporaryError):
    """A reconciliation pass did not finish before its deadline."""

    def __init__(self, name: str, timeout: float):
        super().__init__(
            message=f"Reconciliation of {name} timed out after {timeout}s",
            user_action="Check Kubernetes API server latency",
        )
        self.category = "timeout"


class ConfigurationError(OperatorError):
    """The operator cannot start with the given configuration."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message,
            category="configuration",
            retryable=False,
            user_action=user_action or "Review and correct configuration",
        )
