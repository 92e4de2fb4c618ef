"""Unit tests for reading the trust bundle from the webhook certificate secret."""

import base64
import logging
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from injector_webhook_operator.errors import TrustBundleError
from injector_webhook_operator.utils.certificate_source import (
    KubernetesSecretCertificateSource,
    parse_trust_bundle,
)
from tests.fixtures.webhook_configurations import (
    CA_PEM,
    OPERATOR_NAMESPACE,
    SECRET_NAME,
    make_secret,
)


class TestParseTrustBundle:
    def test_parses_chain(self):
        bundle = parse_trust_bundle(make_secret(), OPERATOR_NAMESPACE, SECRET_NAME)

        assert bundle.cert_chain == CA_PEM
        assert bundle.namespace == OPERATOR_NAMESPACE
        assert bundle.secret_name == SECRET_NAME
        assert bundle.expiration is None

    def test_other_keys_ignored(self):
        secret = make_secret(extra={"tls.key": b"private", "tls.crt": b"leaf"})

        bundle = parse_trust_bundle(secret, OPERATOR_NAMESPACE, SECRET_NAME)

        assert bundle.cert_chain == CA_PEM

    def test_parses_expiration(self):
        secret = make_secret(expiration="2030-01-01T00:00:00+00:00")

        bundle = parse_trust_bundle(secret, OPERATOR_NAMESPACE, SECRET_NAME)

        assert bundle.expiration == datetime(2030, 1, 1, tzinfo=UTC)

    def test_unparseable_expiration_warns(self, caplog):
        secret = make_secret(expiration="next tuesday")

        with caplog.at_level(logging.WARNING):
            bundle = parse_trust_bundle(secret, OPERATOR_NAMESPACE, SECRET_NAME)

        assert bundle.expiration is None
        assert "next tuesday" in caplog.text

    def test_missing_ca_key(self):
        with pytest.raises(TrustBundleError, match="no 'ca.crt' key"):
            parse_trust_bundle(
                make_secret(ca_pem=None), OPERATOR_NAMESPACE, SECRET_NAME
            )

    def test_secret_without_data(self):
        with pytest.raises(TrustBundleError):
            parse_trust_bundle(client.V1Secret(), OPERATOR_NAMESPACE, SECRET_NAME)

    def test_not_pem(self):
        with pytest.raises(TrustBundleError, match="not a PEM"):
            parse_trust_bundle(
                make_secret(ca_pem=b"garbage"), OPERATOR_NAMESPACE, SECRET_NAME
            )

    def test_invalid_base64(self):
        secret = client.V1Secret(data={"ca.crt": "%%%not-base64%%%"})

        with pytest.raises(TrustBundleError, match="not valid base64"):
            parse_trust_bundle(secret, OPERATOR_NAMESPACE, SECRET_NAME)


class TestKubernetesSecretCertificateSource:
    @pytest.fixture
    def core_api(self):
        return MagicMock()

    @pytest.fixture
    def source(self, core_api):
        source = KubernetesSecretCertificateSource(MagicMock(), request_timeout=2.0)
        source._v1 = core_api
        return source

    @pytest.mark.asyncio
    async def test_fetch(self, source, core_api):
        core_api.read_namespaced_secret.return_value = make_secret()

        bundle = await source.fetch(OPERATOR_NAMESPACE, SECRET_NAME)

        assert bundle.ca_bundle == base64.b64encode(CA_PEM).decode()
        core_api.read_namespaced_secret.assert_called_once_with(
            name=SECRET_NAME, namespace=OPERATOR_NAMESPACE, _request_timeout=2.0
        )

    @pytest.mark.asyncio
    async def test_missing_secret(self, source, core_api):
        core_api.read_namespaced_secret.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(TrustBundleError, match="secret not found") as exc_info:
            await source.fetch(OPERATOR_NAMESPACE, SECRET_NAME)
        assert exc_info.value.retryable
        assert exc_info.value.category == "trust_bundle"

    @pytest.mark.asyncio
    async def test_forbidden(self, source, core_api):
        core_api.read_namespaced_secret.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(TrustBundleError, match="HTTP 403"):
            await source.fetch(OPERATOR_NAMESPACE, SECRET_NAME)
