"""Data models for the injector webhook operator."""

from .certificate import TrustBundle
from .reconcile import ReconcileRequest, ReconcileResult

__all__ = ["TrustBundle", "ReconcileRequest", "ReconcileResult"]
