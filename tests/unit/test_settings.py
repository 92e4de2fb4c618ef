"""Unit tests for environment-driven operator settings."""

import pytest
from pydantic import ValidationError

from injector_webhook_operator.settings import Settings


def test_defaults(monkeypatch):
    for var in (
        "WEBHOOK_CONFIGURATION_NAME",
        "INJECTOR_WEBHOOK_NAME",
        "OPERATOR_NAMESPACE",
        "WEBHOOK_CERT_SECRET_NAME",
        "DRY_RUN",
    ):
        monkeypatch.delenv(var, raising=False)

    settings = Settings(_env_file=None)

    assert settings.webhook_configuration_name == "mesh-sidecar-injector"
    assert settings.injector_webhook_name == "sidecar-injector.mesh.io"
    assert settings.operator_namespace == "mesh-system"
    assert settings.webhook_cert_secret_name == "mutating-webhook-cert-secret"
    assert settings.ca_bundle_staleness_check is False
    assert settings.dry_run is False
    assert settings.reconcile_timeout_seconds == 30.0
    assert settings.requeue_max_attempts == 5


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("WEBHOOK_CONFIGURATION_NAME", "custom-injector")
    monkeypatch.setenv("INJECTOR_WEBHOOK_NAME", "inject.example.com")
    monkeypatch.setenv("OPERATOR_NAMESPACE", "platform")
    monkeypatch.setenv("CA_BUNDLE_STALENESS_CHECK", "true")
    monkeypatch.setenv("REQUEUE_MAX_DELAY_SECONDS", "15")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "injector-ca")

    settings = Settings(_env_file=None)

    assert settings.webhook_configuration_name == "custom-injector"
    assert settings.injector_webhook_name == "inject.example.com"
    assert settings.operator_namespace == "platform"
    assert settings.ca_bundle_staleness_check is True
    assert settings.requeue_max_delay_seconds == 15.0
    assert settings.tracing_service_name == "injector-ca"


@pytest.mark.parametrize(
    ("var", "value"),
    [
        ("RECONCILE_TIMEOUT_SECONDS", "0"),
        ("REQUEUE_BACKOFF_FACTOR", "0.5"),
        ("REQUEUE_MAX_ATTEMPTS", "-1"),
        ("TRACING_SAMPLE_RATE", "1.5"),
    ],
)
def test_invalid_values_rejected(monkeypatch, var, value):
    monkeypatch.setenv(var, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
