"""Audit actions, counter names, pool ledger kinds, and event names.

Claim statuses live on models.claim.ClaimStatus.
"""

ACTION_CREATED = "created"
ACTION_STATUS_CHANGED = "status_changed"
ACTION_DECIDED = "decided"
ACTION_TRANSFER_FAILED = "transfer_failed"

COUNTER_CLAIMS = "claims"
COUNTER_REPAIR_ORDERS = "repair_orders"

LEDGER_FUNDING = "funding"
LEDGER_PAYOUT_THIRD_PARTY = "payout_third_party"
LEDGER_PAYOUT_GARAGE = "payout_garage"

EVENT_CUSTOMER_ADDED = "CustomerAdded"
EVENT_CLAIM_SUBMITTED = "ClaimSubmitted"
EVENT_CLAIM_DECISION = "ClaimDecision"
EVENT_THIRD_PARTY_ASSESSED = "ThirdPartyAssessed"
EVENT_ALL_RISK_ASSESSED = "AllRiskAssessed"
EVENT_PAID_TO_THIRD_PARTY = "PaidToThirdParty"
EVENT_PAID_TO_GARAGE = "PaidToGarage"
EVENT_REPAIR_REQUESTED = "RepairRequested"
EVENT_REPAIR_COMPLETED = "RepairCompleted"

# All observable signals (single source of truth for validation/docs)
EVENT_NAMES = (
    EVENT_CUSTOMER_ADDED,
    EVENT_CLAIM_SUBMITTED,
    EVENT_CLAIM_DECISION,
    EVENT_THIRD_PARTY_ASSESSED,
    EVENT_ALL_RISK_ASSESSED,
    EVENT_PAID_TO_THIRD_PARTY,
    EVENT_PAID_TO_GARAGE,
    EVENT_REPAIR_REQUESTED,
    EVENT_REPAIR_COMPLETED,
)
