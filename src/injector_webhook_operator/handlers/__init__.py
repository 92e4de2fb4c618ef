"""
Handlers package - Contains the Kopf event handlers of the operator.

- webhook_configuration.py: MutatingWebhookConfiguration watch events
"""
