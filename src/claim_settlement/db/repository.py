"""Repositories: customers, claims with audit logging, repair orders, pool, and events."""

import json
from typing import Any

from claim_settlement.db.constants import (
    ACTION_CREATED,
    ACTION_DECIDED,
    ACTION_STATUS_CHANGED,
    COUNTER_CLAIMS,
    COUNTER_REPAIR_ORDERS,
    LEDGER_FUNDING,
)
from claim_settlement.db.database import atomic, get_connection
from claim_settlement.models.claim import (
    Claim,
    ClaimStatus,
    Customer,
    PolicyKind,
    RepairOrder,
    SettlementEvent,
)


def _next_id(conn, counter: str) -> int:
    """Advance a monotonic counter inside the caller's transaction."""
    conn.execute("UPDATE counters SET value = value + 1 WHERE name = ?", (counter,))
    row = conn.execute("SELECT value FROM counters WHERE name = ?", (counter,)).fetchone()
    return int(row["value"])


def _claim_from_row(row) -> Claim:
    return Claim(
        id=row["id"],
        claimant=row["claimant"],
        policy_kind=PolicyKind(row["policy_kind"]),
        percentage_or_damage=row["percentage_or_damage"],
        status=ClaimStatus(row["status"]),
        positive=bool(row["positive"]),
        third_party_payout_amount=row["third_party_payout_amount"],
        garage_cost_amount=row["garage_cost_amount"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _order_from_row(row) -> RepairOrder:
    return RepairOrder(
        id=row["id"],
        claim_id=row["claim_id"],
        estimated_cost=row["estimated_cost"],
        completed=bool(row["completed"]),
        completed_by=row["completed_by"],
    )


class CustomerRepository:
    """Repository for customer records."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def upsert_customer(self, customer: Customer) -> None:
        """Create or overwrite the customer record (no field merging)."""
        with atomic(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO customers (identity, name, policy_kind, valid)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    name = excluded.name,
                    policy_kind = excluded.policy_kind,
                    valid = excluded.valid,
                    updated_at = datetime('now')
                """,
                (
                    customer.identity,
                    customer.name,
                    customer.policy_kind.value,
                    int(customer.valid),
                ),
            )

    def get_customer(self, identity: str) -> Customer | None:
        """Fetch customer by identity."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM customers WHERE identity = ?", (identity,)
            ).fetchone()
        if row is None:
            return None
        return Customer(
            identity=row["identity"],
            name=row["name"],
            policy_kind=PolicyKind(row["policy_kind"]),
            valid=bool(row["valid"]),
        )


class ClaimRepository:
    """Repository for claim persistence and audit logging."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def create_claim(
        self, claimant: str, policy_kind: PolicyKind, percentage_or_damage: int
    ) -> int:
        """Allocate the next claim id, insert with status submitted, log 'created'. Returns claim_id."""
        with atomic(self._db_path) as conn:
            claim_id = _next_id(conn, COUNTER_CLAIMS)
            conn.execute(
                """
                INSERT INTO claims (id, claimant, policy_kind, percentage_or_damage, status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    claimant,
                    policy_kind.value,
                    percentage_or_damage,
                    ClaimStatus.SUBMITTED.value,
                ),
            )
            conn.execute(
                """
                INSERT INTO claim_audit_log (claim_id, action, new_status, details)
                VALUES (?, ?, ?, ?)
                """,
                (claim_id, ACTION_CREATED, ClaimStatus.SUBMITTED.value, "Claim record created"),
            )
        return claim_id

    def get_claim(self, claim_id: int) -> Claim | None:
        """Fetch claim by ID."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM claims WHERE id = ?", (claim_id,)
            ).fetchone()
        if row is None:
            return None
        return _claim_from_row(row)

    def is_decided(self, claim_id: int) -> bool:
        """True once decision amounts have been recorded."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT decided FROM claims WHERE id = ?", (claim_id,)
            ).fetchone()
        return row is not None and bool(row["decided"])

    def update_claim_status(
        self,
        claim_id: int,
        new_status: ClaimStatus,
        details: str | None = None,
    ) -> ClaimStatus:
        """Update status and log the state change to audit. Returns the previous status."""
        with atomic(self._db_path) as conn:
            row = conn.execute(
                "SELECT status FROM claims WHERE id = ?", (claim_id,)
            ).fetchone()
            if row is None:
                raise ValueError(f"Claim not found: {claim_id}")
            old_status = row["status"]
            conn.execute(
                "UPDATE claims SET status = ?, updated_at = datetime('now') WHERE id = ?",
                (new_status.value, claim_id),
            )
            conn.execute(
                """
                INSERT INTO claim_audit_log (claim_id, action, old_status, new_status, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (claim_id, ACTION_STATUS_CHANGED, old_status, new_status.value, details or ""),
            )
        return ClaimStatus(old_status)

    def record_decision(
        self,
        claim_id: int,
        positive: bool,
        third_party_payout: int,
        garage_cost: int,
        new_status: ClaimStatus,
    ) -> None:
        """Write decision amounts once and advance status in the same transaction."""
        with atomic(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE claims
                SET positive = ?, third_party_payout_amount = ?, garage_cost_amount = ?,
                    decided = 1, updated_at = datetime('now')
                WHERE id = ? AND decided = 0
                """,
                (int(positive), third_party_payout, garage_cost, claim_id),
            )
            if cur.rowcount != 1:
                raise ValueError(f"Claim {claim_id} already decided or missing")
            conn.execute(
                """
                INSERT INTO claim_audit_log (claim_id, action, details)
                VALUES (?, ?, ?)
                """,
                (
                    claim_id,
                    ACTION_DECIDED,
                    json.dumps({
                        "positive": positive,
                        "third_party_payout_amount": third_party_payout,
                        "garage_cost_amount": garage_cost,
                    }),
                ),
            )
            self.update_claim_status(claim_id, new_status, details="Assessment decision")

    def log_action(self, claim_id: int, action: str, details: str = "") -> None:
        """Append a non-transition audit entry (status unchanged)."""
        with atomic(self._db_path) as conn:
            row = conn.execute(
                "SELECT status FROM claims WHERE id = ?", (claim_id,)
            ).fetchone()
            status = row["status"] if row is not None else None
            conn.execute(
                """
                INSERT INTO claim_audit_log (claim_id, action, old_status, new_status, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (claim_id, action, status, status, details),
            )

    def get_claim_history(self, claim_id: int) -> list[dict[str, Any]]:
        """Get audit log entries for a claim."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, claim_id, action, old_status, new_status, details, created_at
                FROM claim_audit_log
                WHERE claim_id = ?
                ORDER BY id ASC
                """,
                (claim_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def list_claims(self, claimant: str | None = None) -> list[Claim]:
        """List claims in id order, optionally for one claimant."""
        with get_connection(self._db_path) as conn:
            if claimant:
                rows = conn.execute(
                    "SELECT * FROM claims WHERE claimant = ? ORDER BY id ASC", (claimant,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM claims ORDER BY id ASC").fetchall()
        return [_claim_from_row(r) for r in rows]


class RepairOrderRepository:
    """Repository for garage repair orders."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def create_order(self, claim_id: int, estimated_cost: int) -> int:
        """Allocate the next order id and insert an open order. Returns order_id."""
        with atomic(self._db_path) as conn:
            order_id = _next_id(conn, COUNTER_REPAIR_ORDERS)
            conn.execute(
                """
                INSERT INTO repair_orders (id, claim_id, estimated_cost, completed)
                VALUES (?, ?, ?, 0)
                """,
                (order_id, claim_id, estimated_cost),
            )
        return order_id

    def get_order(self, order_id: int) -> RepairOrder | None:
        """Fetch order by ID."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM repair_orders WHERE id = ?", (order_id,)
            ).fetchone()
        if row is None:
            return None
        return _order_from_row(row)

    def mark_completed(self, order_id: int, completed_by: str) -> None:
        """Set completed and record who confirmed it."""
        with atomic(self._db_path) as conn:
            conn.execute(
                """
                UPDATE repair_orders
                SET completed = 1, completed_by = ?, updated_at = datetime('now')
                WHERE id = ?
                """,
                (completed_by, order_id),
            )

    def list_orders(self, claim_id: int | None = None) -> list[RepairOrder]:
        """List orders in id order, optionally for one claim."""
        with get_connection(self._db_path) as conn:
            if claim_id is not None:
                rows = conn.execute(
                    "SELECT * FROM repair_orders WHERE claim_id = ? ORDER BY id ASC",
                    (claim_id,),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM repair_orders ORDER BY id ASC").fetchall()
        return [_order_from_row(r) for r in rows]


class FundPoolRepository:
    """Repository for the handling service's pooled balance and its ledger."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def get_balance(self) -> int:
        with get_connection(self._db_path) as conn:
            row = conn.execute("SELECT balance FROM fund_pool WHERE id = 1").fetchone()
        return int(row["balance"]) if row is not None else 0

    def credit(self, amount: int, counterparty: str | None = None) -> int:
        """Add funds to the pool. Returns the new balance."""
        with atomic(self._db_path) as conn:
            conn.execute(
                "UPDATE fund_pool SET balance = balance + ?, updated_at = datetime('now') WHERE id = 1",
                (amount,),
            )
            conn.execute(
                "INSERT INTO pool_ledger (kind, counterparty, amount) VALUES (?, ?, ?)",
                (LEDGER_FUNDING, counterparty, amount),
            )
            row = conn.execute("SELECT balance FROM fund_pool WHERE id = 1").fetchone()
        return int(row["balance"])

    def debit(self, amount: int, claim_id: int, recipient: str, kind: str) -> int:
        """Remove funds for a disbursement. Returns the new balance.

        Raises ValueError if the balance would go negative.
        """
        with atomic(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE fund_pool SET balance = balance - ?, updated_at = datetime('now')
                WHERE id = 1 AND balance >= ?
                """,
                (amount, amount),
            )
            if cur.rowcount != 1:
                raise ValueError(f"Pool balance below {amount}")
            conn.execute(
                """
                INSERT INTO pool_ledger (kind, claim_id, counterparty, amount)
                VALUES (?, ?, ?, ?)
                """,
                (kind, claim_id, recipient, -amount),
            )
            row = conn.execute("SELECT balance FROM fund_pool WHERE id = 1").fetchone()
        return int(row["balance"])

    def list_ledger(self, claim_id: int | None = None) -> list[dict[str, Any]]:
        """Pool movements in order; disbursements carry negative amounts."""
        with get_connection(self._db_path) as conn:
            if claim_id is not None:
                rows = conn.execute(
                    "SELECT * FROM pool_ledger WHERE claim_id = ? ORDER BY id ASC",
                    (claim_id,),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM pool_ledger ORDER BY id ASC").fetchall()
        return [dict(r) for r in rows]


class EventRepository:
    """Persisted observable signals."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def append(self, event: SettlementEvent) -> int:
        """Insert event inside the caller's transaction. Returns event id."""
        with atomic(self._db_path) as conn:
            cur = conn.execute(
                """
                INSERT INTO settlement_events (service, name, claim_id, order_id, payload)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.service,
                    event.name,
                    event.claim_id,
                    event.order_id,
                    json.dumps(event.payload, default=str),
                ),
            )
            event_id = int(cur.lastrowid)
        return event_id

    def list_events(
        self, claim_id: int | None = None, name: str | None = None
    ) -> list[SettlementEvent]:
        """Events in emission order, filtered by claim and/or name."""
        clauses: list[str] = []
        params: list[Any] = []
        if claim_id is not None:
            clauses.append("claim_id = ?")
            params.append(claim_id)
        if name:
            clauses.append("name = ?")
            params.append(name)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM settlement_events{where} ORDER BY id ASC", params
            ).fetchall()
        return [
            SettlementEvent(
                id=r["id"],
                service=r["service"],
                name=r["name"],
                claim_id=r["claim_id"],
                order_id=r["order_id"],
                payload=json.loads(r["payload"]) if r["payload"] else {},
                created_at=r["created_at"],
            )
            for r in rows
        ]
