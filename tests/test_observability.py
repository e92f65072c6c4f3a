"""Tests for the observability module."""

import json
import logging
import threading

import pytest


@pytest.fixture
def isolated_package_logger():
    """Run with no handlers on the package logger, restoring them afterwards."""
    package_logger = logging.getLogger("claim_settlement")
    saved = list(package_logger.handlers)
    for handler in saved:
        package_logger.removeHandler(handler)
    yield package_logger
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    for handler in saved:
        package_logger.addHandler(handler)


class TestStructuredLogging:
    """Tests for structured logging with claim context."""

    def test_get_logger_returns_claim_logger(self):
        """get_logger should return a ClaimLogger instance."""
        from claim_settlement.observability.logger import ClaimLogger, get_logger

        logger = get_logger("test_logger")
        assert isinstance(logger, ClaimLogger)

    def test_only_package_root_gets_handler(self, isolated_package_logger):
        from claim_settlement.observability.logger import get_logger

        get_logger("claim_settlement.services.sample")
        assert logging.getLogger("claim_settlement.services.sample").handlers == []
        root = get_logger("claim_settlement")
        assert len(root.logger.handlers) == 1
        get_logger("claim_settlement")
        assert len(root.logger.handlers) == 1

    def test_claim_logger_adds_claim_and_service(self, caplog):
        """ClaimLogger should attach claim_id and service to records."""
        from claim_settlement.observability.logger import get_logger

        logger = get_logger("test_logger_with_id", claim_id=7, service="claims-handling")
        with caplog.at_level(logging.INFO, logger="test_logger_with_id"):
            logger.info("Test message")

        record = caplog.records[-1]
        assert record.claim_id == 7
        assert record.service == "claims-handling"

    def test_explicit_extra_wins(self, caplog):
        from claim_settlement.observability.logger import get_logger

        logger = get_logger("test_logger_extra", claim_id=7)
        with caplog.at_level(logging.INFO, logger="test_logger_extra"):
            logger.info("Other claim", extra={"claim_id": 9})
        assert caplog.records[-1].claim_id == 9

    def test_claim_context_manager(self):
        """claim_context should set and restore context."""
        from claim_settlement.observability.logger import (
            _get_claim_context,
            claim_context,
        )

        assert _get_claim_context() == {}

        with claim_context(claim_id=3, caller="authority", operation="pay_to_third"):
            ctx = _get_claim_context()
            assert ctx == {"claim_id": 3, "caller": "authority", "operation": "pay_to_third"}

            with claim_context(operation="mark_paid"):
                inner = _get_claim_context()
                assert inner["claim_id"] == 3
                assert inner["operation"] == "mark_paid"

            assert _get_claim_context()["operation"] == "pay_to_third"

        assert _get_claim_context() == {}

    def test_claim_context_is_thread_local(self):
        from claim_settlement.observability.logger import (
            _get_claim_context,
            claim_context,
        )

        seen = []
        with claim_context(claim_id=1):
            t = threading.Thread(target=lambda: seen.append(_get_claim_context()))
            t.start()
            t.join()
        assert seen == [{}]

    def test_structured_formatter_json_output(self):
        """StructuredFormatter should output valid JSON with context fields."""
        from claim_settlement.observability.logger import StructuredFormatter, claim_context

        formatter = StructuredFormatter()
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        record.service = "claim-registry"

        with claim_context(claim_id=5, operation="submit_claim"):
            parsed = json.loads(formatter.format(record))

        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["claim_id"] == 5
        assert parsed["operation"] == "submit_claim"
        assert parsed["service"] == "claim-registry"
        assert "timestamp" in parsed

    def test_human_readable_formatter_prefix(self):
        from claim_settlement.observability.logger import HumanReadableFormatter

        record = logging.LogRecord(
            name="claim_settlement.services.handling",
            level=logging.WARNING,
            pathname="handling.py",
            lineno=10,
            msg="Pool low",
            args=(),
            exc_info=None,
        )
        record.claim_id = 4
        record.service = "claims-handling"
        output = HumanReadableFormatter().format(record)
        assert "[claim=4, service=claims-handling]" in output
        assert output.endswith("claim_settlement.services.handling: Pool low")

    def test_log_claim_event(self, caplog):
        from claim_settlement.observability.logger import log_claim_event

        logger = logging.getLogger("test_events_logger")
        with caplog.at_level(logging.INFO, logger="test_events_logger"):
            log_claim_event(logger, "PaidToGarage", claim_id=2, amount=8000)

        record = caplog.records[-1]
        assert record.getMessage() == "[PaidToGarage] amount=8000"
        assert record.extra_data == {"event": "PaidToGarage", "amount": 8000}
        assert record.claim_id == 2


class TestServiceLogging:
    def test_payout_logs_claim_context(self, services, third_party_customer, caplog):
        """Service logs carry the service identity."""
        services.handling.fund(10_000)
        package_logger = logging.getLogger("claim_settlement")
        package_logger.propagate = True
        try:
            with caplog.at_level(logging.INFO):
                claim_id = services.registry.submit_claim(third_party_customer, "third_party", 25)
        finally:
            package_logger.propagate = False

        submitted = [r for r in caplog.records if "submitted by" in r.getMessage()]
        assert submitted
        assert submitted[0].claim_id == claim_id
        assert submitted[0].service == "claim-registry"
