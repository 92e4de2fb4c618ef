"""
Unit tests for MetricsCollector methods in observability/metrics.py.

Tests the individual methods of MetricsCollector to verify they call the
correct Prometheus metric objects with the correct label values.
"""

from unittest.mock import MagicMock, patch

import pytest

from injector_webhook_operator.errors import KubernetesAPIError
from injector_webhook_operator.observability.metrics import (
    MetricsCollector,
    get_metrics_registry,
)


@pytest.fixture
def collector():
    """Create a MetricsCollector with the registry init patched out."""
    with patch(
        "injector_webhook_operator.observability.metrics.get_metrics_registry",
        return_value=MagicMock(),
    ):
        return MetricsCollector()


class TestMetricsCollectorReconciliation:
    """Test reconciliation metric methods."""

    @patch(
        "injector_webhook_operator.observability.metrics.LAST_SUCCESSFUL_RECONCILE_TIMESTAMP"
    )
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_ERRORS")
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_DURATION")
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_TOTAL")
    def test_record_success(
        self, mock_total, mock_duration, mock_errors, mock_last, collector
    ):
        """A pass without error counts the action and stamps the success time."""
        collector.record_reconciliation(
            "mutatingwebhookconfiguration", "injector", "updated", 0.2
        )

        mock_total.labels.assert_called_with(
            resource_type="mutatingwebhookconfiguration",
            name="injector",
            action="updated",
        )
        mock_total.labels().inc.assert_called_once()
        mock_duration.labels().observe.assert_called_with(0.2)
        mock_errors.labels.assert_not_called()
        mock_last.labels.assert_called_with(name="injector")

    @patch(
        "injector_webhook_operator.observability.metrics.LAST_SUCCESSFUL_RECONCILE_TIMESTAMP"
    )
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_ERRORS")
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_DURATION")
    @patch("injector_webhook_operator.observability.metrics.RECONCILIATION_TOTAL")
    def test_record_failure(
        self, mock_total, mock_duration, mock_errors, mock_last, collector
    ):
        """A failed pass counts the error type and retryability."""
        error = KubernetesAPIError("boom", status=500)

        collector.record_reconciliation(
            "mutatingwebhookconfiguration", "injector", "failed", 1.0, error=error
        )

        mock_errors.labels.assert_called_with(
            resource_type="mutatingwebhookconfiguration",
            error_type="KubernetesAPIError",
            retryable="true",
        )
        mock_errors.labels().inc.assert_called_once()
        mock_last.labels.assert_not_called()

    @patch("injector_webhook_operator.observability.metrics.CA_BUNDLE_UPDATES_TOTAL")
    def test_record_ca_bundle_update(self, mock_updates, collector):
        collector.record_ca_bundle_update("injector", ["a.mesh.io", "b.mesh.io"])

        assert mock_updates.labels.call_count == 2
        mock_updates.labels.assert_any_call(name="injector", webhook="a.mesh.io")
        mock_updates.labels.assert_any_call(name="injector", webhook="b.mesh.io")


class TestMetricsCollectorRequeue:
    @patch("injector_webhook_operator.observability.metrics.REQUEUES_EXHAUSTED_TOTAL")
    @patch("injector_webhook_operator.observability.metrics.REQUEUES_TOTAL")
    def test_record_requeue(self, mock_requeues, mock_exhausted, collector):
        collector.record_requeue("mutatingwebhookconfiguration", "injector")

        mock_requeues.labels.assert_called_with(
            resource_type="mutatingwebhookconfiguration", name="injector"
        )
        mock_exhausted.labels.assert_not_called()

    @patch("injector_webhook_operator.observability.metrics.REQUEUES_EXHAUSTED_TOTAL")
    @patch("injector_webhook_operator.observability.metrics.REQUEUES_TOTAL")
    def test_record_requeue_exhausted(self, mock_requeues, mock_exhausted, collector):
        collector.record_requeue(
            "mutatingwebhookconfiguration", "injector", exhausted=True
        )

        mock_exhausted.labels().inc.assert_called_once()
        mock_requeues.labels.assert_not_called()


class TestMetricsCollectorErrorCodes:
    @patch("injector_webhook_operator.observability.metrics.ERROR_CODE_TOTAL")
    def test_record_error_code(self, mock_codes, collector):
        collector.record_error_code("E7002")

        mock_codes.labels.assert_called_with(error_code="E7002")
        mock_codes.labels().inc.assert_called_once()


def test_registry_is_singleton():
    assert get_metrics_registry() is get_metrics_registry()
