"""Deterministic assessment tables for third-party and all-risk claims."""

from claim_settlement.config.settings import get_payout_unit
from claim_settlement.models.claim import AssessmentResult

# (upper bound inclusive, multiple of unit); first matching band wins
THIRD_PARTY_BANDS: tuple[tuple[int, int], ...] = (
    (30, 7),
    (70, 3),
)

ALL_RISK_BANDS: tuple[tuple[int, int], ...] = (
    (30, 3),
    (60, 6),
    (80, 8),
    (100, 10),
)


def _lookup(value: int, bands: tuple[tuple[int, int], ...], unit: int) -> int:
    for upper, multiple in bands:
        if value <= upper:
            return multiple * unit
    return 0


def assess_third_party(percentage: int, unit: int | None = None) -> AssessmentResult:
    """Map the reported fault percentage to a third-party payout.

    p <= 30 pays 7 units, 30 < p <= 70 pays 3 units, p > 70 is rejected.
    """
    if percentage < 0:
        raise ValueError(f"percentage must be non-negative, got {percentage}")
    amount = _lookup(percentage, THIRD_PARTY_BANDS, unit or get_payout_unit())
    return AssessmentResult(positive=amount > 0, amount=amount)


def assess_all_risk(damage: int, unit: int | None = None) -> AssessmentResult:
    """Map the reported damage score to a garage repair cost.

    Bands (0,30], (30,60], (60,80], (80,100] cost 3/6/8/10 units; above 100 is rejected.
    """
    if damage < 0:
        raise ValueError(f"damage must be non-negative, got {damage}")
    amount = _lookup(damage, ALL_RISK_BANDS, unit or get_payout_unit())
    return AssessmentResult(positive=amount > 0, amount=amount)
