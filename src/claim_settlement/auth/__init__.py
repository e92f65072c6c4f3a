"""Capability checks for cross-service calls."""

from claim_settlement.auth.access import AccessPolicy, Role

__all__ = ["AccessPolicy", "Role"]
