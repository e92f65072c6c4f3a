"""Pydantic models for customers, claims, repair orders, and payout snapshots."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PolicyKind(str, Enum):
    """Coverage category a customer is registered under."""

    NONE = "none"
    THIRD_PARTY = "third_party"
    ALL_RISK = "all_risk"


class ClaimStatus(str, Enum):
    """Claim lifecycle status. Only ever moves forward."""

    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    REJECTED = "rejected"
    APPROVED = "approved"
    GARAGE_AUTHORIZED = "garage_authorized"
    PAID_TO_THIRD_PARTY = "paid_to_third_party"
    PAID_TO_GARAGE = "paid_to_garage"


# Allowed forward transitions; anything else is rejected.
STATUS_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.SUBMITTED: frozenset({ClaimStatus.IN_REVIEW}),
    ClaimStatus.IN_REVIEW: frozenset(
        {ClaimStatus.REJECTED, ClaimStatus.APPROVED, ClaimStatus.GARAGE_AUTHORIZED}
    ),
    ClaimStatus.APPROVED: frozenset({ClaimStatus.PAID_TO_THIRD_PARTY}),
    ClaimStatus.GARAGE_AUTHORIZED: frozenset({ClaimStatus.PAID_TO_GARAGE}),
    ClaimStatus.REJECTED: frozenset(),
    ClaimStatus.PAID_TO_THIRD_PARTY: frozenset(),
    ClaimStatus.PAID_TO_GARAGE: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in STATUS_TRANSITIONS.items() if not targets
)


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    """True if target is a legal next status after current."""
    return target in STATUS_TRANSITIONS.get(current, frozenset())


class Customer(BaseModel):
    """Registered customer record, keyed by identity."""

    identity: str = Field(..., min_length=1, description="Customer identity")
    name: str = Field(..., min_length=1, description="Customer display name")
    policy_kind: PolicyKind = Field(..., description="Registered coverage category")
    valid: bool = Field(default=True, description="Whether the customer may submit claims")


class ClaimSubmission(BaseModel):
    """Input payload for a claim form."""

    policy_kind: PolicyKind = Field(..., description="Coverage the claim is filed under")
    percentage_or_damage: int = Field(
        ...,
        ge=0,
        description="Fault percentage (third party) or damage score (all risk)",
    )


class Claim(BaseModel):
    """Stored claim record."""

    id: int = Field(..., ge=1, description="Claim ID, dense from 1")
    claimant: str = Field(..., description="Identity of the submitting customer")
    policy_kind: PolicyKind
    percentage_or_damage: int = Field(..., ge=0)
    status: ClaimStatus = ClaimStatus.SUBMITTED
    positive: bool = False
    third_party_payout_amount: int = Field(default=0, ge=0)
    garage_cost_amount: int = Field(default=0, ge=0)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ClaimPayoutInfo(BaseModel):
    """Live snapshot the handling service uses to authorize payment."""

    claimant: str
    status: ClaimStatus
    third_party_payout_amount: int = 0
    garage_cost_amount: int = 0


class AssessmentResult(BaseModel):
    """Deterministic outcome of an assessment table lookup."""

    positive: bool
    amount: int = Field(..., ge=0)


class RepairOrder(BaseModel):
    """Garage repair order opened for an approved all-risk claim."""

    id: int = Field(..., ge=1)
    claim_id: int = Field(..., ge=1)
    estimated_cost: int = Field(..., ge=0)
    completed: bool = False
    completed_by: Optional[str] = Field(
        default=None, description="Identity that confirmed completion"
    )


class SettlementEvent(BaseModel):
    """Observable signal emitted by one of the services."""

    id: Optional[int] = None
    service: str
    name: str
    claim_id: Optional[int] = None
    order_id: Optional[int] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
