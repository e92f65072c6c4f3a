"""Settlement services: claim registry, claims handling, and garage."""

from claim_settlement.services.garage import GarageService
from claim_settlement.services.handling import ClaimsHandlingService
from claim_settlement.services.registry import ClaimRegistry
from claim_settlement.services.transfer import FundTransfer, LedgerTransfer
from claim_settlement.services.wiring import SettlementServices, build_services

__all__ = [
    "ClaimRegistry",
    "ClaimsHandlingService",
    "FundTransfer",
    "GarageService",
    "LedgerTransfer",
    "SettlementServices",
    "build_services",
]
