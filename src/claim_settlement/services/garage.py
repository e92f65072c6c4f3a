"""Garage service: repair orders for approved all-risk claims."""

from __future__ import annotations

from typing import TYPE_CHECKING

from claim_settlement.auth.access import AccessPolicy, Role
from claim_settlement.db.constants import EVENT_REPAIR_COMPLETED, EVENT_REPAIR_REQUESTED
from claim_settlement.db.database import atomic
from claim_settlement.db.repository import RepairOrderRepository
from claim_settlement.exceptions import UnknownOrder
from claim_settlement.models.claim import RepairOrder
from claim_settlement.observability.events import EventBus, EventEmitter
from claim_settlement.observability.logger import claim_context, get_logger

if TYPE_CHECKING:
    from claim_settlement.services.handling import ClaimsHandlingService


class GarageService:
    """Tracks repair orders opened by the handling service."""

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
        self._orders = RepairOrderRepository(db_path)
        self._events = EventEmitter(identity, db_path, bus)
        self._log = get_logger(__name__, service=identity)

    @property
    def access(self) -> AccessPolicy:
        return self._access

    def set_handling_service(
        self, caller: str, service: ClaimsHandlingService | None
    ) -> None:
        """Bind (or clear) the handling service allowed to open repair orders."""
        self._access.require(caller, Role.AUTHORITY, "configure the handling service")
        if service is None:
            self._access.revoke(Role.HANDLING_SERVICE)
        else:
            self._access.grant(Role.HANDLING_SERVICE, service.identity)

    def request_repair(self, caller: str, claim_id: int, estimated_cost: int) -> int:
        """Open a repair order. Handling service only. Returns the order ID."""
        self._access.require(caller, Role.HANDLING_SERVICE, "request repairs")
        if estimated_cost < 0:
            raise ValueError("estimated_cost must be non-negative")
        with claim_context(claim_id=claim_id, operation="request_repair"):
            with atomic(self._db_path):
                order_id = self._orders.create_order(claim_id, estimated_cost)
                self._events.emit(
                    EVENT_REPAIR_REQUESTED,
                    claim_id=claim_id,
                    order_id=order_id,
                    estimated_cost=estimated_cost,
                )
        return order_id

    def complete_repair(self, caller: str, order_id: int) -> RepairOrder:
        """Mark an order completed.

        Any caller may confirm completion; the confirming identity is recorded.
        Completing an already completed order changes nothing.
        """
        with claim_context(caller=caller, operation="complete_repair"):
            with atomic(self._db_path):
                order = self.get_order(order_id)
                if order.completed:
                    self._log.info(
                        "Repair order %s already completed by %s", order_id, order.completed_by
                    )
                    return order
                self._orders.mark_completed(order_id, caller)
                self._events.emit(
                    EVENT_REPAIR_COMPLETED,
                    claim_id=order.claim_id,
                    order_id=order_id,
                    completed_by=caller,
                )
        return self.get_order(order_id)

    def get_order(self, order_id: int) -> RepairOrder:
        order = self._orders.get_order(order_id) if order_id and order_id > 0 else None
        if order is None:
            raise UnknownOrder(f"Repair order {order_id} does not exist", details={"order_id": order_id})
        return order

    def list_orders(self, claim_id: int | None = None) -> list[RepairOrder]:
        return self._orders.list_orders(claim_id)
