"""
Tests package - Test suite for the injector webhook operator.

Contains:
- unit/: Unit tests for individual components
- fixtures/: Test data and in-memory stand-ins for Kubernetes access
"""
