"""Shared logging utilities for kopf handlers."""

import logging
from typing import Any

from injector_webhook_operator.constants import HANDLER_ENTRY_LOG_LEVEL

logger = logging.getLogger(__name__)


def log_handler_entry(
    handler_type: str,
    resource_type: str,
    name: str,
    event_type: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log handler invocation at HANDLER_ENTRY_LOG_LEVEL.

    Every MutatingWebhookConfiguration in the cluster produces events, so this
    stays at debug level by default.

    Args:
        handler_type: Type of handler (event, startup, cleanup)
        resource_type: Type of resource
        name: Resource name
        event_type: Watch event type (ADDED, MODIFIED, DELETED, None for listing)
        extra: Additional context to include in structured log
    """
    log_extra = {
        "handler_type": handler_type,
        "resource_type": resource_type,
        "resource_name": name,
        "event_type": event_type or "LISTED",
        "handler_phase": "invoked",
    }
    if extra:
        log_extra.update(extra)

    logger.log(
        HANDLER_ENTRY_LOG_LEVEL,
        f"Handler invoked: {handler_type} {resource_type}/{name} "
        f"({log_extra['event_type']})",
        extra=log_extra,
    )
