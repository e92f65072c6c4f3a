"""Fund transfer primitive used by the handling service to disburse payouts.

A transfer is atomic: it either moves the full amount and returns True, or
moves nothing and returns False (or raises). The recipient side may call back
into the services while a transfer is in flight.
"""

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class FundTransfer(Protocol):
    """Moves funds out of the pool to a recipient."""

    def transfer(self, recipient: str, amount: int) -> bool:
        ...


class LedgerTransfer:
    """Default transfer that settles against the pool ledger only.

    The pool debit and ledger row are written by the handling service in the
    same transaction, so there is nothing further to move here.
    """

    def transfer(self, recipient: str, amount: int) -> bool:
        if not recipient or amount <= 0:
            logger.warning("Rejected transfer of %s to %r", amount, recipient)
            return False
        logger.debug("Settled %s to %s via pool ledger", amount, recipient)
        return True
