"""Unit tests for MCP server tools."""

import json

import pytest

from claim_settlement.mcp_server.server import (
    add_customer,
    complete_repair,
    fund_pool,
    get_claim,
    get_claim_history,
    get_claim_payout_info,
    get_pool_balance,
    list_events,
    list_repair_orders,
    pay_to_garage,
    pay_to_third,
    reset_services,
    submit_claim,
)

AUTHORITY = "authority"


@pytest.fixture(autouse=True)
def fresh_services():
    """Rebuild services against each test's temporary database."""
    reset_services()
    yield
    reset_services()


class TestMcpServerTools:
    """Test MCP server tool wrappers."""

    def test_third_party_flow(self):
        customer = json.loads(add_customer(AUTHORITY, "alice", "Alice", "third_party"))
        assert customer["policy_kind"] == "third_party"

        claim = json.loads(submit_claim("alice", "third_party", 25))
        assert claim["status"] == "approved"
        assert claim["third_party_payout_amount"] == 7000

        assert json.loads(fund_pool(10_000, source=AUTHORITY)) == {"balance": 10_000}
        paid = json.loads(pay_to_third(AUTHORITY, claim["id"]))
        assert paid == {"claim_id": claim["id"], "amount": 7000}
        assert json.loads(get_pool_balance()) == {"balance": 3000}

        info = json.loads(get_claim_payout_info(claim["id"]))
        assert info["status"] == "paid_to_third_party"

    def test_all_risk_flow(self):
        add_customer(AUTHORITY, "dave", "Dave", "all_risk")
        claim = json.loads(submit_claim("dave", "all_risk", 95))
        assert claim["status"] == "garage_authorized"

        orders = json.loads(list_repair_orders(claim["id"]))
        assert [o["estimated_cost"] for o in orders] == [10_000]
        done = json.loads(complete_repair("mechanic-7", orders[0]["id"]))
        assert done["completed"] is True

        fund_pool(10_000)
        paid = json.loads(pay_to_garage(AUTHORITY, claim["id"], "garage-1"))
        assert paid["amount"] == 10_000
        assert json.loads(get_claim(claim["id"]))["status"] == "paid_to_garage"

        names = [e["name"] for e in json.loads(list_events(claim_id=claim["id"]))]
        assert names[-1] == "PaidToGarage"

    def test_errors_are_returned_not_raised(self):
        data = json.loads(get_claim(99))
        assert data["error"]["code"] == "CS_UNKNOWN_CLAIM"

        data = json.loads(add_customer("mallory", "alice", "Alice", "third_party"))
        assert data["error"]["code"] == "CS_UNAUTHORIZED"

        data = json.loads(fund_pool(-1))
        assert data["error"]["code"] == "CS_VALIDATION_ERROR"

    def test_double_payout_reported(self):
        add_customer(AUTHORITY, "alice", "Alice", "third_party")
        claim = json.loads(submit_claim("alice", "third_party", 10))
        fund_pool(20_000)
        json.loads(pay_to_third(AUTHORITY, claim["id"]))
        data = json.loads(pay_to_third(AUTHORITY, claim["id"]))
        assert data["error"]["code"] == "CS_INVALID_STATE"
        assert json.loads(get_pool_balance()) == {"balance": 13_000}

    def test_history_and_event_filter(self):
        add_customer(AUTHORITY, "alice", "Alice", "third_party")
        claim = json.loads(submit_claim("alice", "third_party", 90))
        history = json.loads(get_claim_history(claim["id"]))
        assert history[-1]["new_status"] == "rejected"
        decisions = json.loads(list_events(name="ClaimDecision"))
        assert decisions[0]["payload"]["positive"] is False
