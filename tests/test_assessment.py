"""Tests for the deterministic assessment tables."""

import pytest

from claim_settlement.services.assessment import assess_all_risk, assess_third_party

UNIT = 1000


@pytest.mark.parametrize(
    "percentage,amount,positive",
    [
        (0, 7 * UNIT, True),
        (25, 7 * UNIT, True),
        (30, 7 * UNIT, True),
        (31, 3 * UNIT, True),
        (70, 3 * UNIT, True),
        (71, 0, False),
        (80, 0, False),
        (100, 0, False),
    ],
)
def test_third_party_bands(percentage, amount, positive):
    result = assess_third_party(percentage, unit=UNIT)
    assert result.amount == amount
    assert result.positive is positive


@pytest.mark.parametrize(
    "damage,amount",
    [
        (1, 3 * UNIT),
        (30, 3 * UNIT),
        (31, 6 * UNIT),
        (60, 6 * UNIT),
        (61, 8 * UNIT),
        (75, 8 * UNIT),
        (80, 8 * UNIT),
        (81, 10 * UNIT),
        (100, 10 * UNIT),
        (101, 0),
        (500, 0),
    ],
)
def test_all_risk_bands(damage, amount):
    result = assess_all_risk(damage, unit=UNIT)
    assert result.amount == amount
    assert result.positive is (amount > 0)


def test_unit_defaults_from_environment(monkeypatch):
    monkeypatch.setenv("SETTLEMENT_PAYOUT_UNIT", "5")
    assert assess_third_party(10).amount == 35
    assert assess_all_risk(90).amount == 50


def test_negative_values_rejected():
    with pytest.raises(ValueError):
        assess_third_party(-1)
    with pytest.raises(ValueError):
        assess_all_risk(-1)
