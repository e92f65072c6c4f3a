"""
Claim settlement exception hierarchy.

Every error is synchronous and fatal to the top-level call that raised it;
the enclosing transaction is rolled back before the error reaches the caller.

Exception codes follow the pattern: CS_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class SettlementError(Exception):
    """
    Base exception for all claim settlement errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (CS_*)
        details: Additional context about the error
        claim_id: Associated claim ID if applicable
    """
    message: str
    code: str = "CS_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    claim_id: Optional[int] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.claim_id:
            parts.append(f"(claim: {self.claim_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/tool responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.claim_id:
            result["claim_id"] = self.claim_id
        return result


# =============================================================================
# Authorization Errors
# =============================================================================

@dataclass
class Unauthorized(SettlementError):
    """Caller lacks the identity or role required for the operation."""
    code: str = "CS_UNAUTHORIZED"


@dataclass
class PolicyMismatch(SettlementError):
    """Submitted policy kind disagrees with the customer's registered policy."""
    code: str = "CS_POLICY_MISMATCH"


# =============================================================================
# Lookup Errors
# =============================================================================

@dataclass
class UnknownClaim(SettlementError):
    """Claim ID was never issued."""
    code: str = "CS_UNKNOWN_CLAIM"


@dataclass
class UnknownOrder(SettlementError):
    """Repair order ID was never issued."""
    code: str = "CS_UNKNOWN_ORDER"


# =============================================================================
# State and Payment Errors
# =============================================================================

@dataclass
class InvalidStateForPayment(SettlementError):
    """Claim status does not allow the requested transition or payment."""
    code: str = "CS_INVALID_STATE"


@dataclass
class InsufficientFunds(SettlementError):
    """Pool balance is below the amount to disburse."""
    code: str = "CS_INSUFFICIENT_FUNDS"


@dataclass
class TransferFailed(SettlementError):
    """Fund transfer failed after the claim was already marked paid."""
    code: str = "CS_TRANSFER_FAILED"


# =============================================================================
# Wiring Errors
# =============================================================================

@dataclass
class ServiceNotConfigured(SettlementError):
    """A counterpart service slot has not been wired yet."""
    code: str = "CS_SERVICE_NOT_CONFIGURED"
