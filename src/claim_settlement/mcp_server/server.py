"""MCP server exposing claim settlement operations via stdio transport.

Every tool takes the acting identity explicitly; the services' own access
policies decide whether the call is allowed. Domain errors come back as
{"error": {...}} payloads instead of raising through the transport.
"""

import json
from typing import Any, Callable

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from claim_settlement.db.repository import EventRepository
from claim_settlement.exceptions import SettlementError
from claim_settlement.services.wiring import SettlementServices, build_services

mcp = FastMCP("claim-settlement", json_response=True)

_services: SettlementServices | None = None


def get_services() -> SettlementServices:
    """Lazily build the wired services for this server process."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def reset_services() -> None:
    """Drop cached services (used by tests after switching databases)."""
    global _services
    _services = None


def _call(action: Callable[[], Any]) -> str:
    try:
        return json.dumps(action(), default=str)
    except SettlementError as e:
        return json.dumps({"error": e.to_dict()})
    except ValidationError as e:
        return json.dumps({"error": {"code": "CS_VALIDATION_ERROR", "message": str(e)}})
    except ValueError as e:
        return json.dumps({"error": {"code": "CS_VALIDATION_ERROR", "message": str(e)}})


@mcp.tool()
def add_customer(
    caller: str, identity: str, name: str, policy_kind: str, valid: bool = True
) -> str:
    """Register or overwrite a customer (authority only). policy_kind: third_party, all_risk, none."""
    registry = get_services().registry
    return _call(
        lambda: registry.add_customer(caller, identity, name, policy_kind, valid=valid).model_dump(
            mode="json"
        )
    )


@mcp.tool()
def submit_claim(caller: str, policy_kind: str, percentage_or_damage: int) -> str:
    """Submit a claim as a registered customer; the claim is assessed immediately."""
    registry = get_services().registry

    def action() -> dict[str, Any]:
        claim_id = registry.submit_claim(caller, policy_kind, percentage_or_damage)
        return registry.get_claim(claim_id).model_dump(mode="json")

    return _call(action)


@mcp.tool()
def get_claim(claim_id: int) -> str:
    """Get the stored claim record."""
    registry = get_services().registry
    return _call(lambda: registry.get_claim(claim_id).model_dump(mode="json"))


@mcp.tool()
def get_claim_payout_info(claim_id: int) -> str:
    """Get the live payout snapshot: claimant, status, and amounts."""
    registry = get_services().registry
    return _call(lambda: registry.get_claim_payout_info(claim_id).model_dump(mode="json"))


@mcp.tool()
def get_claim_history(claim_id: int) -> str:
    """Get the claim's audit log."""
    registry = get_services().registry
    return _call(lambda: registry.get_claim_history(claim_id))


@mcp.tool()
def fund_pool(amount: int, source: str | None = None) -> str:
    """Add funds to the handling service's payout pool."""
    handling = get_services().handling
    return _call(lambda: {"balance": handling.fund(amount, source=source)})


@mcp.tool()
def get_pool_balance() -> str:
    """Get the payout pool balance."""
    handling = get_services().handling
    return _call(lambda: {"balance": handling.pool_balance()})


@mcp.tool()
def pay_to_third(caller: str, claim_id: int) -> str:
    """Pay an approved third-party claim to its claimant (authority only)."""
    handling = get_services().handling
    return _call(lambda: {"claim_id": claim_id, "amount": handling.pay_to_third(caller, claim_id)})


@mcp.tool()
def pay_to_garage(caller: str, claim_id: int, garage_recipient: str) -> str:
    """Pay the repair cost of a garage-authorized claim (authority only)."""
    handling = get_services().handling
    return _call(
        lambda: {
            "claim_id": claim_id,
            "recipient": garage_recipient,
            "amount": handling.pay_to_garage(caller, claim_id, garage_recipient),
        }
    )


@mcp.tool()
def complete_repair(caller: str, order_id: int) -> str:
    """Mark a repair order completed; the confirming identity is recorded."""
    garage = get_services().garage
    return _call(lambda: garage.complete_repair(caller, order_id).model_dump(mode="json"))


@mcp.tool()
def list_repair_orders(claim_id: int | None = None) -> str:
    """List repair orders, optionally for one claim."""
    garage = get_services().garage
    return _call(lambda: [o.model_dump(mode="json") for o in garage.list_orders(claim_id)])


@mcp.tool()
def list_events(claim_id: int | None = None, name: str | None = None) -> str:
    """List persisted settlement events, optionally filtered by claim and event name."""
    return _call(
        lambda: [
            e.model_dump(mode="json")
            for e in EventRepository().list_events(claim_id=claim_id, name=name)
        ]
    )


def main() -> None:
    """Run the MCP server with stdio transport (default)."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
