"""Unit tests for Kubernetes utility functions."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import config
from kubernetes.client.rest import ApiException

from injector_webhook_operator.errors import KubernetesAPIError, ResourceNotFoundError
from injector_webhook_operator.utils.kubernetes import (
    KubernetesWebhookConfigurationStore,
    load_kubernetes_config,
    translate_api_exception,
)
from tests.fixtures.webhook_configurations import make_configuration


@pytest.fixture
def admission_api():
    return MagicMock()


@pytest.fixture
def store(admission_api):
    store = KubernetesWebhookConfigurationStore(MagicMock(), request_timeout=3.0)
    store._admission_api = admission_api
    return store


class TestTranslateApiException:
    def test_404_is_not_found(self):
        error = translate_api_exception(
            ApiException(status=404, reason="Not Found"),
            "read",
            "MutatingWebhookConfiguration",
            "injector",
        )

        assert isinstance(error, ResourceNotFoundError)
        assert not error.retryable
        assert error.name == "injector"

    def test_409_is_conflict(self):
        error = translate_api_exception(
            ApiException(status=409, reason="Conflict"),
            "update",
            "MutatingWebhookConfiguration",
            "injector",
        )

        assert isinstance(error, KubernetesAPIError)
        assert error.is_conflict
        assert error.retryable
        assert "HTTP 409" in str(error)

    def test_namespaced_location(self):
        error = translate_api_exception(
            ApiException(status=403, reason="Forbidden"),
            "read",
            "Secret",
            "certs",
            namespace="mesh-system",
        )

        assert "mesh-system/certs" in str(error)
        assert error.status == 403
        assert not error.is_conflict


class TestKubernetesWebhookConfigurationStore:
    @pytest.mark.asyncio
    async def test_get_reads_by_name_with_timeout(self, store, admission_api):
        configuration = make_configuration()
        admission_api.read_mutating_webhook_configuration.return_value = configuration

        result = await store.get("mesh-sidecar-injector")

        assert result is configuration
        admission_api.read_mutating_webhook_configuration.assert_called_once_with(
            name="mesh-sidecar-injector", _request_timeout=3.0
        )

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, store, admission_api):
        admission_api.read_mutating_webhook_configuration.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await store.get("mesh-sidecar-injector")
        assert isinstance(exc_info.value.__cause__, ApiException)

    @pytest.mark.asyncio
    async def test_get_other_failure_raises_api_error(self, store, admission_api):
        admission_api.read_mutating_webhook_configuration.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await store.get("mesh-sidecar-injector")
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_update_replaces_whole_object(self, store, admission_api):
        configuration = make_configuration(resource_version="42")
        admission_api.replace_mutating_webhook_configuration.return_value = (
            configuration
        )

        await store.update(configuration)

        admission_api.replace_mutating_webhook_configuration.assert_called_once_with(
            name="mesh-sidecar-injector", body=configuration, _request_timeout=3.0
        )

    @pytest.mark.asyncio
    async def test_update_conflict(self, store, admission_api):
        admission_api.replace_mutating_webhook_configuration.side_effect = (
            ApiException(status=409, reason="Conflict")
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await store.update(make_configuration())
        assert exc_info.value.is_conflict

    @pytest.mark.asyncio
    async def test_update_deleted(self, store, admission_api):
        admission_api.replace_mutating_webhook_configuration.side_effect = (
            ApiException(status=404, reason="Not Found")
        )

        with pytest.raises(ResourceNotFoundError):
            await store.update(make_configuration())

    def test_admission_api_built_lazily(self):
        k8s_client = MagicMock()
        store = KubernetesWebhookConfigurationStore(k8s_client)

        with patch(
            "injector_webhook_operator.utils.kubernetes.client.AdmissionregistrationV1Api"
        ) as mock_api:
            first = store.admission_api
            second = store.admission_api

        mock_api.assert_called_once_with(k8s_client)
        assert first is second


class TestLoadKubernetesConfig:
    @patch("injector_webhook_operator.utils.kubernetes.config")
    def test_falls_back_to_kubeconfig(self, mock_config):
        mock_config.ConfigException = config.ConfigException
        mock_config.load_incluster_config.side_effect = config.ConfigException("no")

        load_kubernetes_config()

        mock_config.load_kube_config.assert_called_once()

    @patch("injector_webhook_operator.utils.kubernetes.config")
    def test_raises_when_nothing_loads(self, mock_config):
        mock_config.ConfigException = config.ConfigException
        mock_config.load_incluster_config.side_effect = config.ConfigException("no")
        mock_config.load_kube_config.side_effect = config.ConfigException("none")

        with pytest.raises(config.ConfigException):
            load_kubernetes_config()
