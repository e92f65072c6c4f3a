"""SQLite connection, schema initialization, and nested transactions.

A top-level call opens one transaction with BEGIN IMMEDIATE; nested calls made
from the same thread against the same database join it through SAVEPOINTs.
An exception anywhere unwinds the innermost savepoint and propagates, so the
outermost block rolls back everything done on behalf of the top-level call.
"""

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from claim_settlement.config.settings import DB_BUSY_TIMEOUT_SECONDS, DB_LOCK_RETRIES
from claim_settlement.utils.retry import with_db_retry

logger = logging.getLogger(__name__)

# Tracks which database paths have had schema applied (avoid running on every connection)
_schema_initialized: set[str] = set()
_schema_lock = threading.Lock()

# Per-thread active transactions, keyed by database path
_local = threading.local()

SCHEMA_SQL = """
-- Customers (upserted by onboarding, never deleted)
CREATE TABLE IF NOT EXISTS customers (
    identity TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    policy_kind TEXT NOT NULL,
    valid INTEGER NOT NULL DEFAULT 1,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Claims (append-only; ids are dense from 1)
CREATE TABLE IF NOT EXISTS claims (
    id INTEGER PRIMARY KEY,
    claimant TEXT NOT NULL,
    policy_kind TEXT NOT NULL,
    percentage_or_damage INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'submitted',
    positive INTEGER NOT NULL DEFAULT 0,
    third_party_payout_amount INTEGER NOT NULL DEFAULT 0,
    garage_cost_amount INTEGER NOT NULL DEFAULT 0,
    decided INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (claimant) REFERENCES customers(identity)
);

-- Audit log (state changes)
CREATE TABLE IF NOT EXISTS claim_audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id INTEGER NOT NULL,
    action TEXT NOT NULL,
    old_status TEXT,
    new_status TEXT,
    details TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (claim_id) REFERENCES claims(id)
);

-- Garage repair orders
CREATE TABLE IF NOT EXISTS repair_orders (
    id INTEGER PRIMARY KEY,
    claim_id INTEGER NOT NULL,
    estimated_cost INTEGER NOT NULL,
    completed INTEGER NOT NULL DEFAULT 0,
    completed_by TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Monotonic id counters
CREATE TABLE IF NOT EXISTS counters (
    name TEXT PRIMARY KEY,
    value INTEGER NOT NULL DEFAULT 0
);
INSERT OR IGNORE INTO counters (name, value) VALUES ('claims', 0);
INSERT OR IGNORE INTO counters (name, value) VALUES ('repair_orders', 0);

-- Pooled funds held by the handling service (single row)
CREATE TABLE IF NOT EXISTS fund_pool (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    updated_at TEXT DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO fund_pool (id, balance) VALUES (1, 0);

-- Pool movements (funding and disbursements)
CREATE TABLE IF NOT EXISTS pool_ledger (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    claim_id INTEGER,
    counterparty TEXT,
    amount INTEGER NOT NULL,
    created_at TEXT DEFAULT (datetime('now'))
);

-- Observable signals
CREATE TABLE IF NOT EXISTS settlement_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    service TEXT NOT NULL,
    name TEXT NOT NULL,
    claim_id INTEGER,
    order_id INTEGER,
    payload TEXT,
    created_at TEXT DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_claims_claimant ON claims(claimant);
CREATE INDEX IF NOT EXISTS idx_repair_orders_claim ON repair_orders(claim_id);
CREATE INDEX IF NOT EXISTS idx_events_claim ON settlement_events(claim_id);
"""


class _Transaction:
    """Book-keeping for one thread's open transaction on one database."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.depth = 0
        # One callback list per open level; index 0 is the outermost block
        self.pending: list[list[Callable[[], None]]] = [[]]


def get_db_path() -> str:
    """Return path to SQLite database from CLAIMS_DB_PATH env or default data/settlement.db."""
    path = os.environ.get("CLAIMS_DB_PATH", "data/settlement.db")
    return path


def init_db(path: str | None = None) -> None:
    """Create tables if they do not exist."""
    db_path = path or get_db_path()
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
    conn.close()
    with _schema_lock:
        _schema_initialized.add(db_path)


def _ensure_schema(db_path: str) -> None:
    """Run schema once per path. Thread-safe."""
    with _schema_lock:
        if db_path in _schema_initialized:
            return
    # Run init outside lock to avoid holding it during I/O
    init_db(db_path)


def _transactions() -> dict[str, _Transaction]:
    active = getattr(_local, "transactions", None)
    if active is None:
        active = {}
        _local.transactions = active
    return active


def _active(db_path: str) -> _Transaction | None:
    return _transactions().get(db_path)


def in_transaction(path: str | None = None) -> bool:
    """True if the current thread has an open transaction on the database."""
    return _active(path or get_db_path()) is not None


def _open(db_path: str) -> sqlite3.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    _ensure_schema(db_path)
    conn = sqlite3.connect(
        db_path, timeout=DB_BUSY_TIMEOUT_SECONDS, isolation_level=None
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@with_db_retry(max_attempts=DB_LOCK_RETRIES)
def _begin(conn: sqlite3.Connection) -> None:
    conn.execute("BEGIN IMMEDIATE")


@contextmanager
def atomic(path: str | None = None) -> Iterator[sqlite3.Connection]:
    """All-or-nothing block. Joins the thread's open transaction if there is one."""
    db_path = path or get_db_path()
    tx = _active(db_path)
    if tx is not None:
        yield from _savepoint(tx)
        return

    conn = _open(db_path)
    try:
        _begin(conn)
    except BaseException:
        conn.close()
        raise
    tx = _Transaction(conn)
    _transactions()[db_path] = tx
    committed = False
    try:
        yield conn
        conn.execute("COMMIT")
        committed = True
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        _transactions().pop(db_path, None)
        conn.close()
    if committed:
        _run_callbacks(tx.pending[0])


def _savepoint(tx: _Transaction) -> Iterator[sqlite3.Connection]:
    tx.depth += 1
    name = f"sp_{tx.depth}"
    tx.conn.execute(f"SAVEPOINT {name}")
    tx.pending.append([])
    try:
        yield tx.conn
    except BaseException:
        tx.conn.execute(f"ROLLBACK TO {name}")
        tx.conn.execute(f"RELEASE {name}")
        tx.pending.pop()
        raise
    else:
        tx.conn.execute(f"RELEASE {name}")
        released = tx.pending.pop()
        tx.pending[-1].extend(released)
    finally:
        tx.depth -= 1


def _run_callbacks(callbacks: list[Callable[[], None]]) -> None:
    for callback in callbacks:
        try:
            callback()
        except Exception:
            # State is already committed; a failing subscriber must not mask that.
            logger.exception("Post-commit callback %r failed", callback)


def on_commit(callback: Callable[[], None], path: str | None = None) -> None:
    """Run callback once the outermost transaction commits; drop it on rollback.

    Outside a transaction the callback runs immediately.
    """
    tx = _active(path or get_db_path())
    if tx is None:
        _run_callbacks([callback])
        return
    tx.pending[-1].append(callback)


@contextmanager
def get_connection(path: str | None = None) -> Iterator[sqlite3.Connection]:
    """Context manager yielding a database connection. Ensures schema exists once per path.

    Inside atomic() the open transaction's connection is reused, so reads see
    the block's uncommitted writes.
    """
    db_path = path or get_db_path()
    tx = _active(db_path)
    if tx is not None:
        yield tx.conn
        return
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    _ensure_schema(db_path)
    conn = sqlite3.connect(db_path, timeout=DB_BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
