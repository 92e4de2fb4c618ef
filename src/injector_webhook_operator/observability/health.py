"""
Health checks behind the ``/health`` and ``/ready`` endpoints and kopf probes.

Three checks run: API server reachability, self-subject access reviews for
every verb the reconciler needs, and presence of the watched
MutatingWebhookConfiguration. A missing configuration only degrades health;
platform tooling installs it, so the operator cannot fix its absence.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from injector_webhook_operator.constants import (
    DEFAULT_HEALTH_CHECK_TIMEOUT,
    WEBHOOK_CONFIGURATION_GROUP,
    WEBHOOK_CONFIGURATION_PLURAL,
)

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"
UNKNOWN = "unknown"

# (verb, group, resource, namespaced)
REQUIRED_PERMISSIONS = (
    ("get", WEBHOOK_CONFIGURATION_GROUP, WEBHOOK_CONFIGURATION_PLURAL, False),
    ("update", WEBHOOK_CONFIGURATION_GROUP, WEBHOOK_CONFIGURATION_PLURAL, False),
    ("watch", WEBHOOK_CONFIGURATION_GROUP, WEBHOOK_CONFIGURATION_PLURAL, False),
    ("get", "", "secrets", True),
)


@dataclass
class HealthCheckResult:
    name: str
    status: str
    message: str
    details: dict[str, Any] | None = None
    duration: float = 0.0
    timestamp: float = 0.0


def _result(
    name: str,
    started: float,
    status: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> HealthCheckResult:
    now = time.time()
    return HealthCheckResult(
        name=name,
        status=status,
        message=message,
        details=details,
        duration=now - started,
        timestamp=now,
    )


class HealthChecker:
    """
    Runs the operator's health checks against the cluster.

    Names the checker leaves unset are taken from the operator settings. The
    API client is created lazily on first use.
    """

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        operator_namespace: str | None = None,
        webhook_configuration_name: str | None = None,
    ):
        if operator_namespace is None or webhook_configuration_name is None:
            from ..settings import settings

            operator_namespace = operator_namespace or settings.operator_namespace
            webhook_configuration_name = (
                webhook_configuration_name or settings.webhook_configuration_name
            )

        self.k8s_client = k8s_client
        self.operator_namespace = operator_namespace
        self.webhook_configuration_name = webhook_configuration_name

    def _get_client(self) -> client.ApiClient:
        if self.k8s_client is None:
            from ..utils.kubernetes import get_kubernetes_client

            self.k8s_client = get_kubernetes_client()
        return self.k8s_client

    async def check_all(self) -> dict[str, HealthCheckResult]:
        """Run every check in turn; a check that raises is reported unhealthy."""
        checks = (
            ("kubernetes_api", self._check_kubernetes_api),
            ("rbac_permissions", self._check_rbac_permissions),
            ("webhook_configuration", self._check_webhook_configuration),
        )

        results: dict[str, HealthCheckResult] = {}
        for name, check in checks:
            started = time.time()
            try:
                results[name] = await check()
            except Exception as e:
                logger.exception(f"Health check {name} raised")
                results[name] = _result(name, started, UNHEALTHY, f"Check raised: {e}")
        return results

    async def _check_kubernetes_api(self) -> HealthCheckResult:
        started = time.time()
        version_api = client.VersionApi(self._get_client())
        try:
            version = await asyncio.to_thread(
                version_api.get_code, _request_timeout=DEFAULT_HEALTH_CHECK_TIMEOUT
            )
        except ApiException as e:
            return _result(
                "kubernetes_api",
                started,
                UNHEALTHY,
                f"API server answered {e.status}: {e.reason}",
                {"status_code": e.status},
            )
        except Exception as e:
            return _result(
                "kubernetes_api", started, UNHEALTHY, f"API server unreachable: {e}"
            )

        return _result(
            "kubernetes_api",
            started,
            HEALTHY,
            "API server reachable",
            {
                "api_server_version": getattr(version, "git_version", UNKNOWN),
                "response_time_ms": round((time.time() - started) * 1000, 2),
            },
        )

    async def _check_rbac_permissions(self) -> HealthCheckResult:
        started = time.time()
        auth_api = client.AuthorizationV1Api(self._get_client())

        allowed: list[str] = []
        denied: list[str] = []
        for verb, group, resource, namespaced in REQUIRED_PERMISSIONS:
            label = f"{verb} {group}/{resource}"
            review = client.V1SelfSubjectAccessReview(
                spec=client.V1SelfSubjectAccessReviewSpec(
                    resource_attributes=client.V1ResourceAttributes(
                        verb=verb,
                        group=group,
                        resource=resource,
                        namespace=self.operator_namespace if namespaced else None,
                    )
                )
            )
            try:
                answer = await asyncio.to_thread(
                    auth_api.create_self_subject_access_review, body=review
                )
            except Exception as e:
                logger.warning(f"Access review for {label} failed: {e}")
                denied.append(f"{label} (review failed)")
                continue
            (allowed if answer.status.allowed else denied).append(label)

        if not denied:
            return _result(
                "rbac_permissions",
                started,
                HEALTHY,
                "Required permissions granted",
                {"allowed": allowed},
            )
        return _result(
            "rbac_permissions",
            started,
            DEGRADED if allowed else UNHEALTHY,
            f"Permissions missing: {', '.join(denied)}",
            {"allowed": allowed, "denied": denied},
        )

    async def _check_webhook_configuration(self) -> HealthCheckResult:
        started = time.time()
        name = self.webhook_configuration_name
        admission_api = client.AdmissionregistrationV1Api(self._get_client())
        try:
            await asyncio.to_thread(
                admission_api.read_mutating_webhook_configuration,
                name=name,
                _request_timeout=DEFAULT_HEALTH_CHECK_TIMEOUT,
            )
        except ApiException as e:
            if e.status == 404:
                return _result(
                    "webhook_configuration",
                    started,
                    DEGRADED,
                    f"MutatingWebhookConfiguration {name} does not exist yet",
                )
            return _result(
                "webhook_configuration",
                started,
                UNHEALTHY,
                f"Reading MutatingWebhookConfiguration {name} failed: {e.reason}",
                {"status_code": e.status},
            )

        return _result(
            "webhook_configuration",
            started,
            HEALTHY,
            f"MutatingWebhookConfiguration {name} present",
        )

    def get_overall_health(self, results: dict[str, HealthCheckResult]) -> str:
        """Worst status wins; ``unknown`` counts as degraded."""
        if not results:
            return UNKNOWN

        statuses = {result.status for result in results.values()}
        if UNHEALTHY in statuses:
            return UNHEALTHY
        if statuses & {DEGRADED, UNKNOWN}:
            return DEGRADED
        return HEALTHY

    def to_dict(self, results: dict[str, HealthCheckResult]) -> dict[str, Any]:
        return {
            "status": self.get_overall_health(results),
            "timestamp": time.time(),
            "checks": {
                name: {
                    "status": result.status,
                    "message": result.message,
                    "details": result.details,
                    "duration": result.duration,
                    "timestamp": result.timestamp,
                }
                for name, result in results.items()
            },
        }
