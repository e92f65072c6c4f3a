"""Claim registry: customer onboarding, claim submission, and the authoritative claim state.

The registry is the only writer of claim status. The handling service can
advance a claim only through decision() and mark_paid(), and only while it
holds the handling-service role in the registry's own access policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from claim_settlement.auth.access import AccessPolicy, Role
from claim_settlement.db.constants import (
    ACTION_TRANSFER_FAILED,
    EVENT_CLAIM_DECISION,
    EVENT_CLAIM_SUBMITTED,
    EVENT_CUSTOMER_ADDED,
)
from claim_settlement.db.database import atomic
from claim_settlement.db.repository import ClaimRepository, CustomerRepository
from claim_settlement.exceptions import (
    InvalidStateForPayment,
    PolicyMismatch,
    ServiceNotConfigured,
    Unauthorized,
    UnknownClaim,
)
from claim_settlement.models.claim import (
    Claim,
    ClaimPayoutInfo,
    ClaimStatus,
    ClaimSubmission,
    Customer,
    PolicyKind,
    can_transition,
)
from claim_settlement.observability.events import EventBus, EventEmitter
from claim_settlement.observability.logger import claim_context, get_logger

if TYPE_CHECKING:
    from claim_settlement.services.handling import ClaimsHandlingService


class ClaimRegistry:
    """Owns customer and claim records."""

    def __init__(
        self,
        identity: str,
        authority: str,
        db_path: str | None = None,
        bus: EventBus | None = None,
    ):
        self.identity = identity
        self._db_path = db_path
        self._access = AccessPolicy({Role.AUTHORITY: authority})
        self._handling: ClaimsHandlingService | None = None
        self._customers = CustomerRepository(db_path)
        self._claims = ClaimRepository(db_path)
        self._events = EventEmitter(identity, db_path, bus)
        self._log = get_logger(__name__, service=identity)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def access(self) -> AccessPolicy:
        return self._access

    @property
    def handling_service(self) -> ClaimsHandlingService | None:
        return self._handling

    def set_handling_service(
        self, caller: str, service: ClaimsHandlingService | None
    ) -> None:
        """Bind (or clear) the handling service allowed to decide and mark claims paid."""
        self._access.require(caller, Role.AUTHORITY, "configure the handling service")
        self._handling = service
        if service is None:
            self._access.revoke(Role.HANDLING_SERVICE)
            self._log.info("Handling service unset")
        else:
            self._access.grant(Role.HANDLING_SERVICE, service.identity)
            self._log.info("Handling service set to %s", service.identity)

    def _require_handling(self) -> ClaimsHandlingService:
        if self._handling is None:
            raise ServiceNotConfigured("No handling service configured on the registry")
        return self._handling

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    def add_customer(
        self,
        caller: str,
        identity: str,
        name: str,
        policy_kind: PolicyKind | str,
        valid: bool = True,
    ) -> Customer:
        """Create or overwrite a customer record. Authority only."""
        self._access.require(caller, Role.AUTHORITY, "add customers")
        customer = Customer(
            identity=identity, name=name, policy_kind=policy_kind, valid=valid
        )
        with claim_context(caller=caller, operation="add_customer"), atomic(self._db_path):
            self._customers.upsert_customer(customer)
            self._events.emit(
                EVENT_CUSTOMER_ADDED,
                customer=customer.identity,
                name=customer.name,
                policy_kind=customer.policy_kind.value,
                valid=customer.valid,
            )
        return customer

    def get_customer(self, identity: str) -> Customer | None:
        return self._customers.get_customer(identity)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def submit_claim(
        self,
        caller: str,
        policy_kind: PolicyKind | str,
        percentage_or_damage: int,
    ) -> int:
        """File a claim for the calling customer and have it assessed.

        The submission and the whole assessment it triggers commit together or
        not at all; a failed assessment leaves no claim behind.

        Returns:
            The new claim ID.

        Raises:
            Unauthorized: caller is not a registered, valid customer.
            PolicyMismatch: policy_kind differs from the registered policy.
        """
        submission = ClaimSubmission(
            policy_kind=policy_kind, percentage_or_damage=percentage_or_damage
        )
        with claim_context(caller=caller, operation="submit_claim"):
            with atomic(self._db_path):
                customer = self._customers.get_customer(caller)
                if customer is None or not customer.valid:
                    raise Unauthorized(
                        f"{caller!r} is not a registered, valid customer",
                        details={"caller": caller},
                    )
                if (
                    submission.policy_kind == PolicyKind.NONE
                    or customer.policy_kind != submission.policy_kind
                ):
                    raise PolicyMismatch(
                        f"Claim filed as {submission.policy_kind.value} but customer "
                        f"holds {customer.policy_kind.value}",
                        details={
                            "submitted": submission.policy_kind.value,
                            "registered": customer.policy_kind.value,
                        },
                    )

                claim_id = self._claims.create_claim(
                    caller, submission.policy_kind, submission.percentage_or_damage
                )
                with claim_context(claim_id=claim_id):
                    self._events.emit(
                        EVENT_CLAIM_SUBMITTED,
                        claim_id=claim_id,
                        claimant=caller,
                        policy_kind=submission.policy_kind.value,
                        percentage_or_damage=submission.percentage_or_damage,
                    )
                    # In review before the assessment runs, so its decision moves forward from here
                    self._advance(
                        self._get(claim_id), ClaimStatus.IN_REVIEW, "Forwarded for assessment"
                    )
                    handling = self._require_handling()
                    if submission.policy_kind == PolicyKind.THIRD_PARTY:
                        handling.third_party_assessment(
                            self.identity, claim_id, submission.percentage_or_damage
                        )
                    else:
                        handling.all_risk_assessment(
                            self.identity, claim_id, submission.percentage_or_damage
                        )
        self._log.info("Claim %s submitted by %s", claim_id, caller, extra={"claim_id": claim_id})
        return claim_id

    def decision(
        self,
        caller: str,
        claim_id: int,
        positive: bool,
        third_party_payout: int,
        garage_cost: int,
    ) -> ClaimStatus:
        """Record the assessment outcome and its amounts. Handling service only.

        Amounts are written once; a claim can be decided only while in review.
        """
        self._access.require(caller, Role.HANDLING_SERVICE, "decide claims")
        if third_party_payout < 0 or garage_cost < 0:
            raise ValueError("Decision amounts must be non-negative")
        with claim_context(claim_id=claim_id, caller=caller, operation="decision"):
            with atomic(self._db_path):
                claim = self._get(claim_id)
                if not positive:
                    target = ClaimStatus.REJECTED
                elif claim.policy_kind == PolicyKind.THIRD_PARTY:
                    target = ClaimStatus.APPROVED
                else:
                    target = ClaimStatus.GARAGE_AUTHORIZED
                if claim.status != ClaimStatus.IN_REVIEW or self._claims.is_decided(claim_id):
                    raise InvalidStateForPayment(
                        f"Claim {claim_id} cannot be decided in status {claim.status.value}",
                        claim_id=claim_id,
                        details={"status": claim.status.value},
                    )
                self._claims.record_decision(
                    claim_id, positive, third_party_payout, garage_cost, target
                )
                self._events.emit(
                    EVENT_CLAIM_DECISION,
                    claim_id=claim_id,
                    positive=positive,
                    status=target.value,
                    third_party_payout_amount=third_party_payout,
                    garage_cost_amount=garage_cost,
                )
        return target

    def mark_paid(self, caller: str, claim_id: int, to_garage: bool) -> ClaimStatus:
        """Payment checkpoint. Handling service only.

        Moves approved -> paid_to_third_party or garage_authorized -> paid_to_garage.
        Must commit before any funds move; a second attempt finds the paid
        status and fails here.
        """
        self._access.require(caller, Role.HANDLING_SERVICE, "mark claims paid")
        expected = ClaimStatus.GARAGE_AUTHORIZED if to_garage else ClaimStatus.APPROVED
        target = ClaimStatus.PAID_TO_GARAGE if to_garage else ClaimStatus.PAID_TO_THIRD_PARTY
        with claim_context(claim_id=claim_id, caller=caller, operation="mark_paid"):
            with atomic(self._db_path):
                claim = self._get(claim_id)
                amount = (
                    claim.garage_cost_amount if to_garage else claim.third_party_payout_amount
                )
                if claim.status != expected or amount <= 0:
                    raise InvalidStateForPayment(
                        f"Claim {claim_id} is {claim.status.value}, expected {expected.value}",
                        claim_id=claim_id,
                        details={"status": claim.status.value, "amount": amount},
                    )
                self._advance(claim, target, "Marked paid before transfer")
        return target

    def note_transfer_failure(
        self, caller: str, claim_id: int, recipient: str, amount: int
    ) -> None:
        """Audit a transfer that failed after the claim was marked paid. Handling service only."""
        self._access.require(caller, Role.HANDLING_SERVICE, "record transfer failures")
        self._get(claim_id)
        self._claims.log_action(
            claim_id,
            ACTION_TRANSFER_FAILED,
            details=f"Transfer of {amount} to {recipient} failed; claim remains paid",
        )

    def get_claim_payout_info(self, claim_id: int) -> ClaimPayoutInfo:
        """Live snapshot used to authorize payment."""
        claim = self._get(claim_id)
        return ClaimPayoutInfo(
            claimant=claim.claimant,
            status=claim.status,
            third_party_payout_amount=claim.third_party_payout_amount,
            garage_cost_amount=claim.garage_cost_amount,
        )

    def get_claim(self, claim_id: int) -> Claim:
        return self._get(claim_id)

    def list_claims(self, claimant: str | None = None) -> list[Claim]:
        return self._claims.list_claims(claimant)

    def get_claim_history(self, claim_id: int) -> list[dict[str, Any]]:
        self._get(claim_id)
        return self._claims.get_claim_history(claim_id)

    def _get(self, claim_id: int) -> Claim:
        claim = self._claims.get_claim(claim_id) if claim_id and claim_id > 0 else None
        if claim is None:
            raise UnknownClaim(f"Claim {claim_id} does not exist", claim_id=claim_id)
        return claim

    def _advance(self, claim: Claim, target: ClaimStatus, details: str) -> None:
        if not can_transition(claim.status, target):
            raise InvalidStateForPayment(
                f"Claim {claim.id} cannot move from {claim.status.value} to {target.value}",
                claim_id=claim.id,
                details={"status": claim.status.value, "target": target.value},
            )
        self._claims.update_claim_status(claim.id, target, details=details)
        self._log.info(
            "Claim %s: %s -> %s", claim.id, claim.status.value, target.value,
            extra={"claim_id": claim.id},
        )
