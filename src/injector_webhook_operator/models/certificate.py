"""
Trust bundle model.

The trust bundle is the CA certificate chain the injector webhook's clients
use to verify the webhook server. It is read from a Kubernetes secret and
written into the webhook client configuration.
"""

import base64
import binascii
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class TrustBundle(BaseModel):
    """CA certificate chain as read from the webhook certificate secret."""

    model_config = {"frozen": True}

    namespace: str = Field(..., description="Namespace of the source secret")
    secret_name: str = Field(..., description="Name of the source secret")
    cert_chain: bytes = Field(..., description="PEM encoded certificate chain")
    expiration: datetime | None = Field(
        None, description="When the CA certificate expires, if recorded"
    )

    @property
    def ca_bundle(self) -> str:
        """The chain base64 encoded, as carried in a webhook client config."""
        return base64.b64encode(self.cert_chain).decode()

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the recorded expiration lies in the past."""
        if self.expiration is None:
            return False
        now = now or datetime.now(UTC)
        expiration = self.expiration
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=UTC)
        return expiration <= now

    def matches(self, ca_bundle: str | bytes | None) -> bool:
        """
        Compare a webhook client config CA bundle with this chain.

        Args:
            ca_bundle: Base64 encoded bundle from the webhook client config

        Returns:
            True if the bundle decodes to exactly this chain
        """
        if not ca_bundle:
            return False
        try:
            return base64.b64decode(ca_bundle, validate=True) == self.cert_chain
        except (binascii.Error, ValueError):
            return False
