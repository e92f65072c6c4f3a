"""CLI entry point for claim settlement.

Authority commands act as the configured authority identity
(SETTLEMENT_AUTHORITY_ID); claimant and garage commands take the acting
identity as an argument.
"""

import json
import logging
import sys
from typing import Any, Callable

from dotenv import load_dotenv
from pydantic import ValidationError

from claim_settlement.exceptions import SettlementError


def _setup_logging() -> None:
    """Configure logging for CLI usage."""
    from claim_settlement.observability import get_logger

    get_logger("claim_settlement")
    logging.getLogger("claim_settlement").setLevel(
        logging.DEBUG if "--debug" in sys.argv else logging.INFO
    )


def _usage() -> str:
    return """Usage:
  claim-settlement add-customer <identity> <name> <policy_kind>   Register or overwrite a customer
  claim-settlement submit <claimant> <policy_kind> <value>        Submit a claim (percentage or damage)
  claim-settlement fund <amount>                                  Add funds to the payout pool
  claim-settlement balance                                        Show pool balance
  claim-settlement pay-third <claim_id>                           Pay an approved third-party claim
  claim-settlement pay-garage <claim_id> <recipient>              Pay a garage-authorized claim
  claim-settlement complete-repair <order_id> <caller>            Mark a repair order completed
  claim-settlement status <claim_id>                              Get claim record
  claim-settlement history <claim_id>                             Get claim audit log
  claim-settlement orders [claim_id]                              List repair orders
  claim-settlement events [claim_id]                              List settlement events

policy_kind is one of: third_party, all_risk, none

Options:
  --invalid                            (add-customer) register the customer as not valid
  --debug                              Enable debug logging
  --json                               Use JSON log format
"""


def _services():
    from claim_settlement.services.wiring import build_services

    return build_services()


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _int_arg(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        print(f"Error: {name} must be an integer, got {value!r}", file=sys.stderr)
        sys.exit(1)


def _run(action: Callable[[], Any]) -> Any:
    """Run a service call, turning domain and validation errors into exit 1."""
    try:
        return action()
    except SettlementError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print("Error: Invalid input:", file=sys.stderr)
        print(e.json(), file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_add_customer(identity: str, name: str, policy_kind: str, valid: bool = True) -> None:
    """Register or overwrite a customer as the authority."""
    services = _services()
    customer = _run(
        lambda: services.registry.add_customer(
            services.authority, identity, name, policy_kind, valid=valid
        )
    )
    _print(customer.model_dump(mode="json"))


def cmd_submit(claimant: str, policy_kind: str, value: int) -> None:
    """Submit a claim on behalf of claimant and print the resulting record."""
    services = _services()
    claim_id = _run(lambda: services.registry.submit_claim(claimant, policy_kind, value))
    _print(services.registry.get_claim(claim_id).model_dump(mode="json"))


def cmd_fund(amount: int) -> None:
    """Add funds to the pool."""
    services = _services()
    balance = _run(lambda: services.handling.fund(amount, source=services.authority))
    _print({"balance": balance})


def cmd_balance() -> None:
    """Print pool balance."""
    services = _services()
    _print({"balance": services.handling.pool_balance()})


def cmd_pay_third(claim_id: int) -> None:
    """Pay an approved third-party claim."""
    services = _services()
    amount = _run(lambda: services.handling.pay_to_third(services.authority, claim_id))
    _print({
        "claim_id": claim_id,
        "amount": amount,
        "balance": services.handling.pool_balance(),
    })


def cmd_pay_garage(claim_id: int, recipient: str) -> None:
    """Pay a garage-authorized claim to the given garage."""
    services = _services()
    amount = _run(
        lambda: services.handling.pay_to_garage(services.authority, claim_id, recipient)
    )
    _print({
        "claim_id": claim_id,
        "recipient": recipient,
        "amount": amount,
        "balance": services.handling.pool_balance(),
    })


def cmd_complete_repair(order_id: int, caller: str) -> None:
    """Mark a repair order completed."""
    services = _services()
    order = _run(lambda: services.garage.complete_repair(caller, order_id))
    _print(order.model_dump(mode="json"))


def cmd_status(claim_id: int) -> None:
    """Print claim record."""
    services = _services()
    claim = _run(lambda: services.registry.get_claim(claim_id))
    _print(claim.model_dump(mode="json"))


def cmd_history(claim_id: int) -> None:
    """Print claim audit log."""
    services = _services()
    history = _run(lambda: services.registry.get_claim_history(claim_id))
    _print(history)


def cmd_orders(claim_id: int | None = None) -> None:
    """Print repair orders, optionally for one claim."""
    services = _services()
    _print([o.model_dump(mode="json") for o in services.garage.list_orders(claim_id)])


def cmd_events(claim_id: int | None = None) -> None:
    """Print persisted settlement events, optionally for one claim."""
    from claim_settlement.db.repository import EventRepository

    _print([e.model_dump(mode="json") for e in EventRepository().list_events(claim_id=claim_id)])


def _require(argv: list[str], count: int, command: str, names: str) -> None:
    if len(argv) < count + 1:
        print(f"Error: {command} requires {names}", file=sys.stderr)
        print(_usage(), file=sys.stderr)
        sys.exit(1)


def main() -> None:
    """Run the claim settlement CLI."""
    import os

    load_dotenv()

    argv = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    options = [arg for arg in sys.argv[1:] if arg.startswith("--")]

    if "--json" in options:
        os.environ["CLAIM_SETTLEMENT_LOG_FORMAT"] = "json"
    if "--debug" in options:
        os.environ["CLAIM_SETTLEMENT_LOG_LEVEL"] = "DEBUG"

    _setup_logging()

    if not argv:
        print(_usage(), file=sys.stderr)
        sys.exit(1)

    first = argv[0].lower()

    if first == "add-customer":
        _require(argv, 3, first, "<identity> <name> <policy_kind>")
        cmd_add_customer(argv[1], argv[2], argv[3], valid="--invalid" not in options)
        return

    if first == "submit":
        _require(argv, 3, first, "<claimant> <policy_kind> <value>")
        cmd_submit(argv[1], argv[2], _int_arg(argv[3], "value"))
        return

    if first == "fund":
        _require(argv, 1, first, "<amount>")
        cmd_fund(_int_arg(argv[1], "amount"))
        return

    if first == "balance":
        cmd_balance()
        return

    if first == "pay-third":
        _require(argv, 1, first, "<claim_id>")
        cmd_pay_third(_int_arg(argv[1], "claim_id"))
        return

    if first == "pay-garage":
        _require(argv, 2, first, "<claim_id> <recipient>")
        cmd_pay_garage(_int_arg(argv[1], "claim_id"), argv[2])
        return

    if first == "complete-repair":
        _require(argv, 2, first, "<order_id> <caller>")
        cmd_complete_repair(_int_arg(argv[1], "order_id"), argv[2])
        return

    # Commands that require a claim_id argument
    if first in ("status", "history"):
        _require(argv, 1, first, "<claim_id>")
        claim_id = _int_arg(argv[1], "claim_id")
        if first == "status":
            cmd_status(claim_id)
        else:
            cmd_history(claim_id)
        return

    # Listing commands (optional claim_id)
    if first in ("orders", "events"):
        claim_id = _int_arg(argv[1], "claim_id") if len(argv) > 1 else None
        if first == "orders":
            cmd_orders(claim_id)
        else:
            cmd_events(claim_id)
        return

    print(f"Error: Unknown command: {first}", file=sys.stderr)
    print(_usage(), file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
