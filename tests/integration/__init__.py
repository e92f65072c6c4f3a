"""Integration tests for the claim settlement services.

These tests drive the registry, handling service and garage together
against one database, the way a deployment wires them.

Test categories:
- test_workflow.py: End-to-end settlement workflow tests
"""
