"""Shared pytest fixtures for all test files."""

import os
import tempfile

import pytest

from claim_settlement.config.settings import ServiceIdentities
from claim_settlement.db.database import init_db

AUTHORITY = "authority"
UNIT = 1000


@pytest.fixture(autouse=True)
def temp_db():
    """Use a temporary SQLite DB for tests."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    init_db(path)
    prev = os.environ.get("CLAIMS_DB_PATH")
    os.environ["CLAIMS_DB_PATH"] = path
    try:
        yield path
    finally:
        if prev is None:
            os.environ.pop("CLAIMS_DB_PATH", None)
        else:
            os.environ["CLAIMS_DB_PATH"] = prev
        try:
            os.unlink(path)
        except OSError:
            # Ignore errors when cleaning up the temporary DB file (e.g., if already removed).
            pass


@pytest.fixture(autouse=True)
def reset_global_event_bus():
    """Reset the global EventBus singleton before and after each test."""
    from claim_settlement.observability.events import reset_event_bus

    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def identities():
    return ServiceIdentities(
        authority=AUTHORITY,
        registry="claim-registry",
        handling_service="claims-handling",
        garage_service="garage-service",
    )


@pytest.fixture
def services(temp_db, identities):
    """Wired registry, handling service, and garage on the temp DB."""
    from claim_settlement.services.wiring import build_services

    return build_services(db_path=temp_db, identities=identities, unit=UNIT)


@pytest.fixture
def funded(services):
    """Services with a pool large enough for several payouts."""
    services.handling.fund(100 * UNIT, source=AUTHORITY)
    return services


@pytest.fixture
def third_party_customer(services):
    services.registry.add_customer(AUTHORITY, "alice", "Alice", "third_party")
    return "alice"


@pytest.fixture
def all_risk_customer(services):
    services.registry.add_customer(AUTHORITY, "dave", "Dave", "all_risk")
    return "dave"
