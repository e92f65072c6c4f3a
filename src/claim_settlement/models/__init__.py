"""Pydantic models for claims."""

from claim_settlement.models.claim import (
    AssessmentResult,
    Claim,
    ClaimPayoutInfo,
    ClaimStatus,
    ClaimSubmission,
    Customer,
    PolicyKind,
    RepairOrder,
    SettlementEvent,
)

__all__ = [
    "AssessmentResult",
    "Claim",
    "ClaimPayoutInfo",
    "ClaimStatus",
    "ClaimSubmission",
    "Customer",
    "PolicyKind",
    "RepairOrder",
    "SettlementEvent",
]
