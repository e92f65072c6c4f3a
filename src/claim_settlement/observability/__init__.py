"""Observability module.

This module provides:
- Structured logging with claim ID context
- Persisted, post-commit settlement events for subscribers
"""

from claim_settlement.observability.logger import (
    ClaimLogger,
    get_logger,
    claim_context,
    log_claim_event,
)
from claim_settlement.observability.events import (
    EventBus,
    EventEmitter,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    # Logger
    "ClaimLogger",
    "get_logger",
    "claim_context",
    "log_claim_event",
    # Events
    "EventBus",
    "EventEmitter",
    "get_event_bus",
    "reset_event_bus",
]
