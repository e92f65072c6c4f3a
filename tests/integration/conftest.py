"""Shared fixtures for integration tests.

Integration tests drive the wired services end to end against a dedicated
SQLite database, with a recording transfer in place of a real payment rail.
"""

import os
import tempfile
from typing import Generator

import pytest

from claim_settlement.config.settings import ServiceIdentities

AUTHORITY = "insurer-ops"
UNIT = 1000


class RecordingTransfer:
    """Transfer that always succeeds and keeps a list of (recipient, amount)."""

    def __init__(self):
        self.transfers: list[tuple[str, int]] = []

    def transfer(self, recipient: str, amount: int) -> bool:
        self.transfers.append((recipient, amount))
        return True


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def integration_db() -> Generator[str, None, None]:
    """Create a temporary SQLite database for integration tests.

    Yields:
        str: Path to the temporary database file.
    """
    from claim_settlement.db.database import init_db

    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    prev = os.environ.get("CLAIMS_DB_PATH")
    try:
        init_db(path)
        os.environ["CLAIMS_DB_PATH"] = path
        yield path
    finally:
        if prev is None:
            os.environ.pop("CLAIMS_DB_PATH", None)
        else:
            os.environ["CLAIMS_DB_PATH"] = prev
        try:
            os.unlink(path)
        except OSError:
            pass


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def recording_transfer() -> RecordingTransfer:
    return RecordingTransfer()


@pytest.fixture
def settlement(integration_db: str, recording_transfer: RecordingTransfer):
    """Wired services with a funded pool and one customer per policy kind."""
    from claim_settlement.services.wiring import build_services

    services = build_services(
        db_path=integration_db,
        transfer=recording_transfer,
        identities=ServiceIdentities(
            authority=AUTHORITY,
            registry="registry-1",
            handling_service="handling-1",
            garage_service="garage-1",
        ),
        unit=UNIT,
    )
    services.handling.fund(50 * UNIT, source=AUTHORITY)
    services.registry.add_customer(AUTHORITY, "carol", "Carol", "third_party")
    services.registry.add_customer(AUTHORITY, "dan", "Dan", "all_risk")
    return services
