"""Construct the three services and bind their late-bound counterpart slots."""

from dataclasses import dataclass

from claim_settlement.config.settings import ServiceIdentities, get_service_identities
from claim_settlement.observability.events import EventBus
from claim_settlement.services.garage import GarageService
from claim_settlement.services.handling import ClaimsHandlingService
from claim_settlement.services.registry import ClaimRegistry
from claim_settlement.services.transfer import FundTransfer


@dataclass
class SettlementServices:
    """Wired registry, handling service, and garage sharing one database."""

    identities: ServiceIdentities
    registry: ClaimRegistry
    handling: ClaimsHandlingService
    garage: GarageService

    @property
    def authority(self) -> str:
        return self.identities.authority


def build_services(
    db_path: str | None = None,
    transfer: FundTransfer | None = None,
    identities: ServiceIdentities | None = None,
    bus: EventBus | None = None,
    unit: int | None = None,
    with_garage: bool = True,
) -> SettlementServices:
    """Build each service independently, then wire registry <-> handling -> garage.

    All services must share db_path so nested cross-service calls join one transaction.
    """
    ids = identities or get_service_identities()
    if len({ids.registry, ids.handling_service, ids.garage_service, ids.authority}) != 4:
        raise ValueError("Authority and service identities must be distinct")

    registry = ClaimRegistry(ids.registry, ids.authority, db_path=db_path, bus=bus)
    handling = ClaimsHandlingService(
        ids.handling_service, ids.authority, db_path=db_path, transfer=transfer, bus=bus, unit=unit
    )
    garage = GarageService(ids.garage_service, ids.authority, db_path=db_path, bus=bus)

    registry.set_handling_service(ids.authority, handling)
    handling.set_registry(ids.authority, registry)
    if with_garage:
        handling.set_garage_service(ids.authority, garage)
        garage.set_handling_service(ids.authority, handling)

    return SettlementServices(
        identities=ids, registry=registry, handling=handling, garage=garage
    )
