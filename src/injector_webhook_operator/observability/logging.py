"""
Log formatting and correlation for the injector webhook operator.

Every reconcile pass gets a short correlation id held in a context variable,
so all records emitted while the pass runs (including those from the store
and certificate source) can be grouped. Records are rendered as one JSON
document per line unless JSON_LOGS is turned off.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Probe and scrape endpoints served by the metrics server
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/health", "/ready", "/metrics"})

# Record attributes promoted to top-level JSON keys; anything else passed via
# ``extra`` is dropped
STRUCTURED_FIELDS = (
    "resource_type",
    "resource_name",
    "namespace",
    "operation",
    "action",
    "duration",
    "error_type",
    "error_code",
    "webhooks",
    "secret_name",
    "attempt",
    "http_status",
    "handler_type",
    "event_type",
    "delay",
)

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
PLAIN_FORMAT_WITH_CORRELATION = (
    "%(asctime)s %(levelname)-8s [%(correlation_id)s] %(name)s: %(message)s"
)

# Libraries whose INFO output drowns the operator's own records
NOISY_LOGGERS = (
    "kopf",
    "kubernetes",
    "urllib3",
    "aiohttp.access",
    "aiohttp.server",
    "aiohttp.web",
)


class HealthProbeFilter(logging.Filter):
    """Drop records that mention a probe or scrape path."""

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if self.suppress_health_logs:
            message = record.getMessage()
            return not any(path in message for path in HEALTH_PROBE_PATHS)
        return True


class CorrelationIDFilter(logging.Filter):
    """Stamp records with the current correlation id, creating one if unset."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or set_correlation_id(
            generate_correlation_id()
        )
        return True


class StructuredFormatter(logging.Formatter):
    """Render a record as a single-line JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        document = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }
        document.update(
            (field, getattr(record, field))
            for field in STRUCTURED_FIELDS
            if hasattr(record, field)
        )
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        return json.dumps(document, default=str)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def set_correlation_id(corr_id: str) -> str:
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    return correlation_id.get()


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
) -> None:
    """
    Replace the root logger's handlers with a single stderr handler.

    Args:
        log_level: Level name for the root logger; unknown names fall back to INFO
        enable_json_formatting: Emit JSON documents instead of plain text
        correlation_id_enabled: Attach correlation ids to every record
        log_health_probes: Keep records about probe and scrape requests
    """
    handler = logging.StreamHandler()

    if enable_json_formatting:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                PLAIN_FORMAT_WITH_CORRELATION
                if correlation_id_enabled
                else PLAIN_FORMAT
            )
        )

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())
    if not log_health_probes:
        handler.addFilter(HealthProbeFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class OperatorLogger:
    """
    Logger wrapper used by the reconciler.

    The ``log_reconciliation_*`` methods emit one record per pass outcome with
    a consistent set of structured fields. Plain ``debug``/``warning`` accept
    structured fields as keyword arguments.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_reconciliation_start(
        self,
        resource_type: str,
        resource_name: str,
        correlation_id: str | None = None,
    ) -> str:
        """Bind a correlation id to the current pass and return it."""
        corr_id = set_correlation_id(correlation_id or generate_correlation_id())
        self.logger.debug(
            f"Reconciling {resource_type} {resource_name}",
            extra=_outcome_fields(resource_type, resource_name, "reconcile_start"),
        )
        return corr_id

    def log_reconciliation_noop(
        self,
        resource_type: str,
        resource_name: str,
        action: str,
        duration: float,
    ) -> None:
        # Steady state; keep it out of INFO
        self.logger.debug(
            f"{resource_type} {resource_name} needs no change ({action})",
            extra=_outcome_fields(
                resource_type,
                resource_name,
                "reconcile_noop",
                action=action,
                duration=duration,
            ),
        )

    def log_reconciliation_success(
        self,
        resource_type: str,
        resource_name: str,
        action: str,
        webhooks: list[str],
        duration: float,
    ) -> None:
        """
        Record a pass that wrote (or in dry-run mode would write) the CA bundle.

        Args:
            resource_type: Kind of the reconciled object
            resource_name: Name of the reconciled object
            action: ``updated`` or ``dry_run``
            webhooks: Webhook entries that received the bundle
            duration: Seconds spent in the pass
        """
        verb = "would inject" if action == "dry_run" else "injected"
        self.logger.info(
            f"CA bundle {verb} into {', '.join(webhooks)} "
            f"of {resource_type} {resource_name}",
            extra=_outcome_fields(
                resource_type,
                resource_name,
                "reconcile_updated",
                action=action,
                webhooks=webhooks,
                duration=duration,
            ),
        )

    def log_reconciliation_error(
        self,
        resource_type: str,
        resource_name: str,
        error: Exception,
        error_code: str,
        duration: float,
    ) -> None:
        """Record a failed pass; the underlying cause, if any, goes in the traceback."""
        self.logger.error(
            f"[{error_code}] {resource_type} {resource_name}: {error}",
            extra=_outcome_fields(
                resource_type,
                resource_name,
                "reconcile_error",
                error_type=type(error).__name__,
                error_code=error_code,
                duration=duration,
            ),
            exc_info=error.__cause__,
        )

    def debug(self, message: str, **fields) -> None:
        self.logger.debug(message, extra=fields)

    def warning(self, message: str, **fields) -> None:
        self.logger.warning(message, extra=fields)


def _outcome_fields(
    resource_type: str, resource_name: str, operation: str, **fields
) -> dict:
    return {
        "resource_type": resource_type,
        "resource_name": resource_name,
        "operation": operation,
        **fields,
    }
