"""
Reconcile request and result types.

A request only names the object that changed; the reconciler always re-reads
the object. A result tells the dispatch loop whether to requeue.
"""

from dataclasses import dataclass, field

from injector_webhook_operator.constants import (
    ACTION_COMPLIANT,
    ACTION_DRY_RUN,
    ACTION_FAILED,
    ACTION_IGNORED,
    ACTION_NOT_FOUND,
    ACTION_UPDATED,
)
from injector_webhook_operator.errors import OperatorError


@dataclass(frozen=True)
class ReconcileRequest:
    """Identity of the object to reconcile."""

    name: str
    namespace: str | None = None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    action: str
    requeue: bool = False
    error: OperatorError | None = None
    updated_webhooks: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ignored(cls) -> "ReconcileResult":
        return cls(action=ACTION_IGNORED)

    @classmethod
    def not_found(cls) -> "ReconcileResult":
        return cls(action=ACTION_NOT_FOUND)

    @classmethod
    def compliant(cls) -> "ReconcileResult":
        return cls(action=ACTION_COMPLIANT)

    @classmethod
    def updated(cls, webhooks: list[str]) -> "ReconcileResult":
        return cls(action=ACTION_UPDATED, updated_webhooks=tuple(webhooks))

    @classmethod
    def dry_run(cls, webhooks: list[str]) -> "ReconcileResult":
        return cls(action=ACTION_DRY_RUN, updated_webhooks=tuple(webhooks))

    @classmethod
    def failed(cls, error: OperatorError) -> "ReconcileResult":
        """Failed pass; the dispatch loop requeues it with backoff."""
        return cls(action=ACTION_FAILED, requeue=True, error=error)

    @property
    def succeeded(self) -> bool:
        return self.error is None
