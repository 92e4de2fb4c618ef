"""
Observability utilities for the injector webhook operator.

This module provides metrics, health checks, tracing and structured logging
capabilities for production monitoring and troubleshooting.
"""

from .health import HealthChecker
from .logging import OperatorLogger, setup_structured_logging
from .metrics import MetricsServer, get_metrics_registry, metrics_collector
from .tracing import setup_tracing, shutdown_tracing, traced_handler

__all__ = [
    "MetricsServer",
    "get_metrics_registry",
    "metrics_collector",
    "HealthChecker",
    "OperatorLogger",
    "setup_structured_logging",
    "setup_tracing",
    "shutdown_tracing",
    "traced_handler",
]
