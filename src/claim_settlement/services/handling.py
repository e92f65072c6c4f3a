"""Claims handling: assessment, pooled-fund custody, and payout orchestration.

Payout ordering:
    1. read the registry's live snapshot, check status and pool balance, and
       mark the claim paid, all in one committed transaction;
    2. only then move funds.
A repeated payout for the same claim is therefore rejected by the registry's
status check, never by the balance check. A payout started from inside an open
transaction (a transfer calling back into the service) is refused outright.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from claim_settlement.auth.access import AccessPolicy, Role
from claim_settlement.config.settings import get_payout_unit
from claim_settlement.db.constants import (
    EVENT_ALL_RISK_ASSESSED,
    EVENT_PAID_TO_GARAGE,
    EVENT_PAID_TO_THIRD_PARTY,
    EVENT_THIRD_PARTY_ASSESSED,
    LEDGER_PAYOUT_GARAGE,
    LEDGER_PAYOUT_THIRD_PARTY,
)
from claim_settlement.db.database import atomic, in_transaction
from claim_settlement.db.repository import FundPoolRepository
from claim_settlement.exceptions import (
    InsufficientFunds,
    InvalidStateForPayment,
    ServiceNotConfigured,
    TransferFailed,
)
from claim_settlement.models.claim import AssessmentResult, ClaimStatus
from claim_settlement.observability.events import EventBus, EventEmitter
from claim_settlement.observability.logger import claim_context, get_logger
from claim_settlement.services.assessment import assess_all_risk, assess_third_party
from claim_settlement.services.transfer import FundTransfer, LedgerTransfer

if TYPE_CHECKING:
    from claim_settlement.services.garage import GarageService
    from claim_settlement.services.registry import ClaimRegistry


class ClaimsHandlingService:
    """Assesses claims and pays them out of a pooled balance."""

    def __init__(
        self,
        identity: str,
        authority: str,
        db_path: str | None = None,
        transfer: FundTransfer | None = None,
        bus: EventBus | None = None,
        unit: int | None = None,
    ):
        self.identity = identity
        self._db_path = db_path
        self._access = AccessPolicy({Role.AUTHORITY: authority})
        self._registry: ClaimRegistry | None = None
        self._garage: GarageService | None = None
        self._transfer = transfer or LedgerTransfer()
        self._unit = unit or get_payout_unit()
        self._pool = FundPoolRepository(db_path)
        self._events = EventEmitter(identity, db_path, bus)
        self._log = get_logger(__name__, service=identity)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def access(self) -> AccessPolicy:
        return self._access

    @property
    def unit(self) -> int:
        return self._unit

    @property
    def registry(self) -> ClaimRegistry | None:
        return self._registry

    @property
    def garage_service(self) -> GarageService | None:
        return self._garage

    def set_registry(self, caller: str, registry: ClaimRegistry | None) -> None:
        """Bind (or clear) the registry allowed to request assessments."""
        self._access.require(caller, Role.AUTHORITY, "configure the registry")
        self._registry = registry
        if registry is None:
            self._access.revoke(Role.REGISTRY)
        else:
            self._access.grant(Role.REGISTRY, registry.identity)
        self._log.info("Registry set to %s", registry.identity if registry else None)

    def set_garage_service(self, caller: str, garage: GarageService | None) -> None:
        """Bind (or clear) the garage that receives repair orders."""
        self._access.require(caller, Role.AUTHORITY, "configure the garage service")
        self._garage = garage
        if garage is None:
            self._access.revoke(Role.GARAGE_SERVICE)
        else:
            self._access.grant(Role.GARAGE_SERVICE, garage.identity)
        self._log.info("Garage service set to %s", garage.identity if garage else None)

    def _require_registry(self) -> ClaimRegistry:
        if self._registry is None:
            raise ServiceNotConfigured("No registry configured on the handling service")
        return self._registry

    # ------------------------------------------------------------------
    # Pool
    # ------------------------------------------------------------------

    def fund(self, amount: int, source: str | None = None) -> int:
        """Top up the pool out of band. Returns the new balance."""
        if not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"Funding amount must be a positive integer, got {amount!r}")
        balance = self._pool.credit(amount, counterparty=source)
        self._log.info("Pool funded with %s by %s; balance %s", amount, source, balance)
        return balance

    def pool_balance(self) -> int:
        return self._pool.get_balance()

    def list_disbursements(self, claim_id: int | None = None) -> list[dict[str, Any]]:
        """Pool ledger rows for payouts (negative amounts)."""
        return [
            row for row in self._pool.list_ledger(claim_id)
            if row["kind"] in (LEDGER_PAYOUT_THIRD_PARTY, LEDGER_PAYOUT_GARAGE)
        ]

    # ------------------------------------------------------------------
    # Assessment (registry only)
    # ------------------------------------------------------------------

    def third_party_assessment(
        self, caller: str, claim_id: int, percentage: int
    ) -> AssessmentResult:
        """Decide a third-party claim from the reported fault percentage."""
        self._access.require(caller, Role.REGISTRY, "request assessments")
        registry = self._require_registry()
        result = assess_third_party(percentage, self._unit)
        with claim_context(claim_id=claim_id, operation="third_party_assessment"):
            with atomic(self._db_path):
                registry.decision(self.identity, claim_id, result.positive, result.amount, 0)
                self._events.emit(
                    EVENT_THIRD_PARTY_ASSESSED,
                    claim_id=claim_id,
                    percentage=percentage,
                    amount=result.amount,
                    positive=result.positive,
                )
        return result

    def all_risk_assessment(self, caller: str, claim_id: int, damage: int) -> AssessmentResult:
        """Decide an all-risk claim from the damage score; open a repair order if approved."""
        self._access.require(caller, Role.REGISTRY, "request assessments")
        registry = self._require_registry()
        result = assess_all_risk(damage, self._unit)
        with claim_context(claim_id=claim_id, operation="all_risk_assessment"):
            with atomic(self._db_path):
                registry.decision(self.identity, claim_id, result.positive, 0, result.amount)
                order_id = None
                if result.positive and self._garage is not None:
                    order_id = self._garage.request_repair(self.identity, claim_id, result.amount)
                self._events.emit(
                    EVENT_ALL_RISK_ASSESSED,
                    claim_id=claim_id,
                    order_id=order_id,
                    damage=damage,
                    amount=result.amount,
                    positive=result.positive,
                )
        return result

    # ------------------------------------------------------------------
    # Payout (authority only)
    # ------------------------------------------------------------------

    def pay_to_third(self, caller: str, claim_id: int) -> int:
        """Pay an approved third-party claim to its claimant. Returns the amount paid."""
        self._access.require(caller, Role.AUTHORITY, "trigger payouts")
        with claim_context(claim_id=claim_id, caller=caller, operation="pay_to_third"):
            return self._pay(claim_id, to_garage=False)

    def pay_to_garage(self, caller: str, claim_id: int, garage_recipient: str) -> int:
        """Pay the repair cost of a garage-authorized claim. Returns the amount paid."""
        self._access.require(caller, Role.AUTHORITY, "trigger payouts")
        if not garage_recipient:
            raise ValueError("garage_recipient is required")
        with claim_context(claim_id=claim_id, caller=caller, operation="pay_to_garage"):
            return self._pay(claim_id, to_garage=True, garage_recipient=garage_recipient)

    def _pay(self, claim_id: int, to_garage: bool, garage_recipient: str | None = None) -> int:
        registry = self._require_registry()
        expected = ClaimStatus.GARAGE_AUTHORIZED if to_garage else ClaimStatus.APPROVED

        # mark_paid must commit before funds move, so it cannot join an outer transaction
        if in_transaction(self._db_path):
            raise InvalidStateForPayment(
                f"Claim {claim_id} cannot be paid inside another open transaction",
                claim_id=claim_id,
                details={"reason": "nested_payout"},
            )

        # Check and advance in one transaction; nothing may interleave between them
        with atomic(self._db_path):
            info = registry.get_claim_payout_info(claim_id)
            if info.status != expected:
                raise InvalidStateForPayment(
                    f"Claim {claim_id} is {info.status.value}, expected {expected.value}",
                    claim_id=claim_id,
                    details={"status": info.status.value},
                )
            amount = info.garage_cost_amount if to_garage else info.third_party_payout_amount
            if amount <= 0:
                raise InvalidStateForPayment(
                    f"Claim {claim_id} has no amount to pay",
                    claim_id=claim_id,
                    details={"amount": amount},
                )
            balance = self._pool.get_balance()
            if balance < amount:
                raise InsufficientFunds(
                    f"Pool holds {balance}, payout needs {amount}",
                    claim_id=claim_id,
                    details={"balance": balance, "amount": amount},
                )
            registry.mark_paid(self.identity, claim_id, to_garage)

        recipient = garage_recipient if to_garage else info.claimant
        try:
            self._disburse(claim_id, recipient, amount, to_garage)
        except TransferFailed:
            self._log.error(
                "Transfer of %s to %s failed; claim %s stays marked paid",
                amount, recipient, claim_id,
                extra={"claim_id": claim_id},
            )
            registry.note_transfer_failure(self.identity, claim_id, recipient, amount)
            raise
        return amount

    def _disburse(self, claim_id: int, recipient: str, amount: int, to_garage: bool) -> None:
        kind = LEDGER_PAYOUT_GARAGE if to_garage else LEDGER_PAYOUT_THIRD_PARTY
        with atomic(self._db_path):
            balance = self._pool.get_balance()
            if balance < amount:
                raise TransferFailed(
                    f"Pool holds {balance} at transfer time, payout needs {amount}",
                    claim_id=claim_id,
                    details={"balance": balance, "amount": amount},
                )
            self._pool.debit(amount, claim_id, recipient, kind)
            try:
                ok = self._transfer.transfer(recipient, amount)
            except Exception as exc:
                raise TransferFailed(
                    f"Transfer to {recipient} raised: {exc}",
                    claim_id=claim_id,
                    details={"recipient": recipient, "amount": amount},
                ) from exc
            if not ok:
                raise TransferFailed(
                    f"Transfer to {recipient} was refused",
                    claim_id=claim_id,
                    details={"recipient": recipient, "amount": amount},
                )
            self._events.emit(
                EVENT_PAID_TO_GARAGE if to_garage else EVENT_PAID_TO_THIRD_PARTY,
                claim_id=claim_id,
                recipient=recipient,
                amount=amount,
            )
