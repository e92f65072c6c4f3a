"""Observable settlement signals.

Events are persisted in the same transaction as the state change they
describe and handed to in-process subscribers only after that transaction
commits, so subscribers never see work that was rolled back.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

from claim_settlement.db.constants import EVENT_NAMES
from claim_settlement.db.database import on_commit
from claim_settlement.db.repository import EventRepository
from claim_settlement.models.claim import SettlementEvent
from claim_settlement.observability.logger import log_claim_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[SettlementEvent], None]

WILDCARD = "*"


class EventBus:
    """Thread-safe publish/subscribe for settlement events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, name: str, handler: EventHandler) -> None:
        """Register handler for an event name, or "*" for every event."""
        if name != WILDCARD and name not in EVENT_NAMES:
            raise ValueError(f"Unknown event name: {name}")
        with self._lock:
            self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: SettlementEvent) -> None:
        """Deliver event to its subscribers. Handler failures are logged and skipped."""
        with self._lock:
            handlers = list(self._handlers.get(event.name, [])) + list(
                self._handlers.get(WILDCARD, [])
            )
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event.name)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


_bus: EventBus | None = None
_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get the global event bus instance."""
    global _bus
    with _bus_lock:
        if _bus is None:
            _bus = EventBus()
        return _bus


def reset_event_bus() -> None:
    """Drop all subscriptions (used by tests)."""
    global _bus
    with _bus_lock:
        _bus = None


class EventEmitter:
    """Emits one service's events: persist, log, then publish after commit."""

    def __init__(
        self,
        service: str,
        db_path: str | None = None,
        bus: EventBus | None = None,
    ):
        self._service = service
        self._db_path = db_path
        self._repo = EventRepository(db_path)
        self._bus = bus

    @property
    def bus(self) -> EventBus:
        return self._bus or get_event_bus()

    def emit(
        self,
        name: str,
        /,
        claim_id: int | None = None,
        order_id: int | None = None,
        **payload: Any,
    ) -> SettlementEvent:
        """Record the event in the current transaction and schedule its delivery."""
        event = SettlementEvent(
            service=self._service,
            name=name,
            claim_id=claim_id,
            order_id=order_id,
            payload=payload,
        )
        event.id = self._repo.append(event)
        log_claim_event(logger, name, claim_id=claim_id, service=self._service, **payload)
        bus = self.bus
        on_commit(lambda: bus.publish(event), self._db_path)
        return event
