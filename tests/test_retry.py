"""Tests for retry utility."""

import sqlite3

import pytest

from claim_settlement.utils.retry import is_lock_contention, with_db_retry


@pytest.mark.parametrize(
    "exc,expected",
    [
        (sqlite3.OperationalError("database is locked"), True),
        (sqlite3.OperationalError("database is busy"), True),
        (sqlite3.OperationalError("no such table: claims"), False),
        (sqlite3.IntegrityError("database is locked"), False),
        (ValueError("database is locked"), False),
    ],
)
def test_is_lock_contention(exc, expected):
    assert is_lock_contention(exc) is expected


def test_with_db_retry_succeeds_first_time():
    """Decorated function that succeeds on first call returns result."""
    @with_db_retry(max_attempts=3)
    def ok():
        return 42
    assert ok() == 42


def test_with_db_retry_reraises_domain_errors():
    """Non-lock errors are reraised immediately."""
    attempts = []

    @with_db_retry(max_attempts=3)
    def fail():
        attempts.append(1)
        raise sqlite3.OperationalError("no such table: claims")

    with pytest.raises(sqlite3.OperationalError, match="no such table"):
        fail()
    assert len(attempts) == 1


def test_with_db_retry_retries_on_lock():
    """Retries on a locked database then succeeds."""
    attempts = []

    @with_db_retry(max_attempts=3, min_wait=0.01, max_wait=0.05)
    def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert flaky() == "ok"
    assert len(attempts) == 2


def test_with_db_retry_gives_up_after_max_attempts():
    attempts = []

    @with_db_retry(max_attempts=2, min_wait=0.01, max_wait=0.02)
    def always_locked():
        attempts.append(1)
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(sqlite3.OperationalError, match="locked"):
        always_locked()
    assert len(attempts) == 2
