"""SQLite database module for settlement state, audit logging, and events."""

from claim_settlement.db.database import atomic, get_connection, get_db_path, init_db, on_commit
from claim_settlement.db.repository import (
    ClaimRepository,
    CustomerRepository,
    EventRepository,
    FundPoolRepository,
    RepairOrderRepository,
)

__all__ = [
    "ClaimRepository",
    "CustomerRepository",
    "EventRepository",
    "FundPoolRepository",
    "RepairOrderRepository",
    "atomic",
    "get_connection",
    "get_db_path",
    "init_db",
    "on_commit",
]
