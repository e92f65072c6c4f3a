"""Tests for settlement events: persistence, post-commit delivery, and the bus."""

import pytest

from claim_settlement.db.database import atomic
from claim_settlement.db.repository import EventRepository
from claim_settlement.exceptions import PolicyMismatch, ServiceNotConfigured
from claim_settlement.models.claim import SettlementEvent
from claim_settlement.observability.events import (
    EventBus,
    EventEmitter,
    get_event_bus,
    reset_event_bus,
)

AUTHORITY = "authority"


class TestEventBus:
    def test_subscribe_and_publish(self):
        bus = EventBus()
        received = []
        bus.subscribe("ClaimSubmitted", received.append)
        event = SettlementEvent(service="s", name="ClaimSubmitted", claim_id=1)
        bus.publish(event)
        bus.publish(SettlementEvent(service="s", name="ClaimDecision", claim_id=1))
        assert received == [event]

    def test_wildcard_receives_everything(self):
        bus = EventBus()
        received = []
        bus.subscribe("*", received.append)
        bus.publish(SettlementEvent(service="s", name="ClaimSubmitted"))
        bus.publish(SettlementEvent(service="s", name="PaidToGarage"))
        assert [e.name for e in received] == ["ClaimSubmitted", "PaidToGarage"]

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError, match="Unknown event name"):
            EventBus().subscribe("ClaimExploded", lambda e: None)

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe("ClaimSubmitted", received.append)
        bus.unsubscribe("ClaimSubmitted", received.append)
        bus.publish(SettlementEvent(service="s", name="ClaimSubmitted"))
        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("subscriber down")

        bus.subscribe("ClaimSubmitted", broken)
        bus.subscribe("ClaimSubmitted", received.append)
        bus.publish(SettlementEvent(service="s", name="ClaimSubmitted"))
        assert len(received) == 1

    def test_global_bus_reset(self):
        bus = get_event_bus()
        assert get_event_bus() is bus
        reset_event_bus()
        assert get_event_bus() is not bus


class TestEventEmitter:
    def test_emit_outside_transaction_delivers_now(self, temp_db):
        bus = EventBus()
        received = []
        bus.subscribe("*", received.append)
        event = EventEmitter("svc", temp_db, bus).emit("ClaimSubmitted", claim_id=3, value=10)
        assert event.id is not None
        assert received == [event]
        stored = EventRepository(temp_db).list_events(claim_id=3)
        assert stored[0].payload == {"value": 10}
        assert stored[0].service == "svc"

    def test_payload_may_carry_name_key(self, temp_db):
        event = EventEmitter("svc", temp_db, EventBus()).emit(
            "CustomerAdded", customer="alice", name="Alice"
        )
        assert event.name == "CustomerAdded"
        assert event.payload == {"customer": "alice", "name": "Alice"}

    def test_customer_onboarding_event(self, services):
        received = []
        get_event_bus().subscribe("CustomerAdded", received.append)
        services.registry.add_customer(AUTHORITY, "alice", "Alice", "third_party")
        assert len(received) == 1
        assert received[0].service == "claim-registry"
        assert received[0].payload["name"] == "Alice"
        assert received[0].payload["policy_kind"] == "third_party"

    def test_delivery_waits_for_commit(self, temp_db):
        bus = EventBus()
        received = []
        bus.subscribe("*", received.append)
        with atomic(temp_db):
            EventEmitter("svc", temp_db, bus).emit("ClaimSubmitted", claim_id=1)
            assert received == []
        assert len(received) == 1

    def test_rolled_back_event_is_neither_stored_nor_delivered(self, temp_db):
        bus = EventBus()
        received = []
        bus.subscribe("*", received.append)
        with pytest.raises(RuntimeError):
            with atomic(temp_db):
                EventEmitter("svc", temp_db, bus).emit("ClaimSubmitted", claim_id=1)
                raise RuntimeError("abort")
        assert received == []
        assert EventRepository(temp_db).list_events() == []


class TestServiceEvents:
    def test_third_party_flow_signals(self, services, third_party_customer):
        received = []
        get_event_bus().subscribe("*", received.append)
        services.handling.fund(10_000)
        claim_id = services.registry.submit_claim(third_party_customer, "third_party", 25)
        services.handling.pay_to_third(AUTHORITY, claim_id)
        assert [e.name for e in received] == [
            "ClaimSubmitted",
            "ClaimDecision",
            "ThirdPartyAssessed",
            "PaidToThirdParty",
        ]
        paid = received[-1]
        assert paid.service == "claims-handling"
        assert paid.payload == {"recipient": third_party_customer, "amount": 7000}

    def test_all_risk_flow_signals(self, services, all_risk_customer):
        received = []
        get_event_bus().subscribe("*", received.append)
        claim_id = services.registry.submit_claim(all_risk_customer, "all_risk", 50)
        assert [e.name for e in received] == [
            "ClaimSubmitted",
            "ClaimDecision",
            "RepairRequested",
            "AllRiskAssessed",
        ]
        assert received[2].service == "garage-service"
        assert received[3].order_id == 1
        assert all(e.claim_id == claim_id for e in received)

    def test_failed_submission_emits_nothing(self, services, all_risk_customer):
        received = []
        get_event_bus().subscribe("*", received.append)
        with pytest.raises(PolicyMismatch):
            services.registry.submit_claim(all_risk_customer, "third_party", 10)
        assert received == []
        assert EventRepository().list_events(name="ClaimSubmitted") == []

    def test_rolled_back_assessment_emits_nothing(self, services, third_party_customer):
        received = []
        get_event_bus().subscribe("*", received.append)
        services.registry.set_handling_service(AUTHORITY, None)
        with pytest.raises(ServiceNotConfigured):
            services.registry.submit_claim(third_party_customer, "third_party", 10)
        assert received == []
        assert EventRepository().list_events(name="ClaimSubmitted") == []
