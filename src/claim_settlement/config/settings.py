"""Centralized configuration from environment variables with defaults."""

import os
from dataclasses import dataclass


def _int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _str(key: str, default: str) -> str:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# ---------------------------------------------------------------------------
# Payout tables
# ---------------------------------------------------------------------------

# Base denomination of the payout and repair-cost tables, in the smallest
# currency unit (e.g. cents).
DEFAULT_PAYOUT_UNIT = 1000


def get_payout_unit() -> int:
    """Base monetary unit used by the assessment tables (SETTLEMENT_PAYOUT_UNIT)."""
    unit = _int("SETTLEMENT_PAYOUT_UNIT", DEFAULT_PAYOUT_UNIT)
    return unit if unit > 0 else DEFAULT_PAYOUT_UNIT


# ---------------------------------------------------------------------------
# Service identities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceIdentities:
    """Identities the services present to each other and the authority they trust."""

    authority: str
    registry: str
    handling_service: str
    garage_service: str


def get_service_identities() -> ServiceIdentities:
    """Identities from environment. Ownership is configured here, never inferred."""
    return ServiceIdentities(
        authority=_str("SETTLEMENT_AUTHORITY_ID", "authority"),
        registry=_str("SETTLEMENT_REGISTRY_ID", "claim-registry"),
        handling_service=_str("SETTLEMENT_HANDLING_ID", "claims-handling"),
        garage_service=_str("SETTLEMENT_GARAGE_ID", "garage-service"),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

DB_LOCK_RETRIES = _int("SETTLEMENT_DB_LOCK_RETRIES", 5)
DB_BUSY_TIMEOUT_SECONDS = _int("SETTLEMENT_DB_BUSY_TIMEOUT", 5)
