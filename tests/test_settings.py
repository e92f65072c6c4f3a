"""Tests for centralized configuration (settings)."""

import pytest

from claim_settlement.config import settings


def test_payout_unit_default(monkeypatch):
    """get_payout_unit falls back to the default when unset."""
    monkeypatch.delenv("SETTLEMENT_PAYOUT_UNIT", raising=False)
    assert settings.get_payout_unit() == settings.DEFAULT_PAYOUT_UNIT == 1000


@pytest.mark.parametrize("raw,expected", [("250", 250), ("abc", 1000), ("0", 1000), ("-5", 1000)])
def test_payout_unit_from_env(monkeypatch, raw, expected):
    """SETTLEMENT_PAYOUT_UNIT must be a positive integer; anything else uses the default."""
    monkeypatch.setenv("SETTLEMENT_PAYOUT_UNIT", raw)
    assert settings.get_payout_unit() == expected


def test_service_identities_defaults(monkeypatch):
    """Default identities are distinct."""
    for key in (
        "SETTLEMENT_AUTHORITY_ID",
        "SETTLEMENT_REGISTRY_ID",
        "SETTLEMENT_HANDLING_ID",
        "SETTLEMENT_GARAGE_ID",
    ):
        monkeypatch.delenv(key, raising=False)
    ids = settings.get_service_identities()
    assert ids.authority == "authority"
    assert ids.registry == "claim-registry"
    assert len({ids.authority, ids.registry, ids.handling_service, ids.garage_service}) == 4


def test_service_identities_respect_env(monkeypatch):
    """Blank values are ignored, set values are stripped."""
    monkeypatch.setenv("SETTLEMENT_AUTHORITY_ID", "  insurer-ops ")
    monkeypatch.setenv("SETTLEMENT_GARAGE_ID", "   ")
    ids = settings.get_service_identities()
    assert ids.authority == "insurer-ops"
    assert ids.garage_service == "garage-service"


def test_service_identities_frozen():
    ids = settings.get_service_identities()
    with pytest.raises(AttributeError):
        ids.authority = "someone"


def test_db_constants_positive():
    """Database lock settings are positive integers."""
    assert settings.DB_LOCK_RETRIES > 0
    assert settings.DB_BUSY_TIMEOUT_SECONDS > 0
