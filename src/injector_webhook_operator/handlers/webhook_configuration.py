"""
MutatingWebhookConfiguration handlers - Keeps the injector's CA bundle present.

Every watch event for any MutatingWebhookConfiguration becomes a reconcile
request for that object's name. Kopf serializes events per object and hands
the handler the latest state, so bursts of events collapse into few passes.

Kopf does not retry event handlers, so failed passes are requeued here with
capped exponential backoff. Periodic resync comes from the watch stream being
re-established every WATCH_SERVER_TIMEOUT_SECONDS, which replays every object.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import kopf

from injector_webhook_operator.constants import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_INITIAL_DELAY,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_RETRIES,
    RESOURCE_TYPE,
    WEBHOOK_CONFIGURATION_GROUP,
    WEBHOOK_CONFIGURATION_PLURAL,
    WEBHOOK_CONFIGURATION_VERSION,
)
from injector_webhook_operator.models import ReconcileRequest, ReconcileResult
from injector_webhook_operator.observability.metrics import (
    MetricsCollector,
    metrics_collector,
)
from injector_webhook_operator.observability.tracing import traced_handler
from injector_webhook_operator.services import MutatingWebhookReconciler
from injector_webhook_operator.utils.handler_logging import log_handler_entry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequeuePolicy:
    """Backoff applied to failed reconciliation passes."""

    initial_delay: float = DEFAULT_INITIAL_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    max_delay: float = DEFAULT_MAX_DELAY
    max_attempts: int = DEFAULT_MAX_RETRIES

    @classmethod
    def from_settings(cls, settings) -> "RequeuePolicy":
        return cls(
            initial_delay=settings.requeue_initial_delay_seconds,
            backoff_factor=settings.requeue_backoff_factor,
            max_delay=settings.requeue_max_delay_seconds,
            max_attempts=settings.requeue_max_attempts,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (zero based)."""
        return min(self.initial_delay * self.backoff_factor**attempt, self.max_delay)


async def run_with_requeue(
    reconciler: MutatingWebhookReconciler,
    request: ReconcileRequest,
    policy: RequeuePolicy,
    metrics: MetricsCollector | None = None,
) -> ReconcileResult:
    """
    Reconcile until the pass no longer asks for a requeue.

    Retries back off per ``policy``. Once ``policy.max_attempts`` retries are
    used up the last result is returned and the object waits for its next
    event or resync.

    Args:
        reconciler: Reconciler to drive
        request: Object to reconcile
        policy: Backoff policy
        metrics: Metrics collector, defaults to the global collector

    Returns:
        Result of the last pass
    """
    metrics = metrics or metrics_collector
    attempt = 0

    while True:
        result = await reconciler.reconcile(request)
        if not result.requeue:
            return result

        if attempt >= policy.max_attempts:
            metrics.record_requeue(RESOURCE_TYPE, request.name, exhausted=True)
            logger.warning(
                f"Giving up on {RESOURCE_TYPE} {request} after {attempt} retries; "
                f"waiting for the next event",
                extra={
                    "resource_type": RESOURCE_TYPE,
                    "resource_name": request.name,
                    "attempt": attempt,
                },
            )
            return result

        delay = policy.delay_for(attempt)
        attempt += 1

        metrics.record_requeue(RESOURCE_TYPE, request.name)
        logger.info(
            f"Requeueing {RESOURCE_TYPE} {request} in {delay:.1f}s (retry {attempt})",
            extra={
                "resource_type": RESOURCE_TYPE,
                "resource_name": request.name,
                "attempt": attempt,
                "delay": delay,
            },
        )
        await asyncio.sleep(delay)


@kopf.on.event(
    WEBHOOK_CONFIGURATION_PLURAL,
    group=WEBHOOK_CONFIGURATION_GROUP,
    version=WEBHOOK_CONFIGURATION_VERSION,
)
@traced_handler("reconcile_mutating_webhook_configuration")
async def on_mutating_webhook_configuration_event(
    name: str,
    memo: kopf.Memo,
    type: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Reconcile the MutatingWebhookConfiguration an event was received for.

    Args:
        name: Name of the object the event is about
        memo: Operator memo holding the reconciler and requeue policy
        type: Watch event type, None for the initial listing
    """
    log_handler_entry("event", RESOURCE_TYPE, name, event_type=type)

    reconciler: MutatingWebhookReconciler = memo.reconciler
    policy: RequeuePolicy = memo.get("requeue_policy") or RequeuePolicy()

    await run_with_requeue(reconciler, ReconcileRequest(name=name), policy)
