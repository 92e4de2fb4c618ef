"""
Constants used throughout the injector webhook operator.

This module defines all constant values used by the operator including:
- Watched resource coordinates
- Trust bundle secret layout
- Default configuration values
"""

import logging

# Watched resource
WEBHOOK_CONFIGURATION_GROUP = "admissionregistration.k8s.io"
WEBHOOK_CONFIGURATION_VERSION = "v1"
WEBHOOK_CONFIGURATION_PLURAL = "mutatingwebhookconfigurations"
WEBHOOK_CONFIGURATION_KIND = "MutatingWebhookConfiguration"
RESOURCE_TYPE = "mutatingwebhookconfiguration"

# Trust bundle secret keys
SECRET_CA_CERT_KEY = "ca.crt"
SECRET_EXPIRATION_KEY = "expiration"
PEM_CERTIFICATE_HEADER = b"-----BEGIN CERTIFICATE-----"

# Default configuration values
DEFAULT_OPERATOR_NAMESPACE = "mesh-system"
DEFAULT_WEBHOOK_CONFIGURATION_NAME = "mesh-sidecar-injector"
DEFAULT_INJECTOR_WEBHOOK_NAME = "sidecar-injector.mesh.io"
DEFAULT_WEBHOOK_CERT_SECRET_NAME = "mutating-webhook-cert-secret"

# Timeout constants (in seconds)
DEFAULT_RECONCILIATION_TIMEOUT = 30.0
DEFAULT_API_REQUEST_TIMEOUT = 10.0
DEFAULT_WATCH_SERVER_TIMEOUT = 600
DEFAULT_HEALTH_CHECK_TIMEOUT = 5

# Retry configuration
DEFAULT_MAX_RETRIES = 5
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 60.0

# Log level for handler entry logging
HANDLER_ENTRY_LOG_LEVEL = logging.DEBUG

# Reconcile actions
ACTION_IGNORED = "ignored"
ACTION_NOT_FOUND = "not_found"
ACTION_COMPLIANT = "compliant"
ACTION_UPDATED = "updated"
ACTION_DRY_RUN = "dry_run"
ACTION_FAILED = "failed"
