"""
Tests for the SQL throttle store.

These run the real conditional upsert against the configured test database
(SQLite locally, PostgreSQL in CI).
"""

from concurrent.futures import ThreadPoolExecutor
import datetime
import threading
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from authguard import db
from authguard.errors import StoreUnavailable
from authguard.models import ThrottleRecord, User
from authguard.policies import ThrottlePolicy
from authguard.services import ThrottleLedger
from authguard.stores.base import MAX_IDENTIFIER_LENGTH
from authguard.stores.sql import SQLThrottleStore, _upsert_for

NOW = datetime.datetime(2026, 3, 1, 12, 0, 0)
LOGIN_POLICY = ThrottlePolicy(window_seconds=15 * 60, max_requests=5)
OTP_POLICY = ThrottlePolicy(window_seconds=60, max_requests=1)


@pytest.fixture
def store(app):
    return SQLThrottleStore(db)


def _record(identifier, action):
    return db.session.get(ThrottleRecord, (identifier, action))


class TestConsume:
    def test_first_consume_creates_record(self, store):
        result = store.consume("203.0.113.7", "LOGIN_ATTEMPT", LOGIN_POLICY, NOW)

        assert result.allowed is True
        assert result.count == 1
        assert result.expires_at == NOW + datetime.timedelta(minutes=15)

        record = _record("203.0.113.7", "LOGIN_ATTEMPT")
        assert record.count == 1
        assert record.window_start == NOW

    def test_consume_increments_in_place(self, store):
        for minute in range(3):
            result = store.consume(
                "203.0.113.7",
                "LOGIN_ATTEMPT",
                LOGIN_POLICY,
                NOW + datetime.timedelta(minutes=minute),
            )

        assert result.allowed is True
        assert result.count == 3
        # The window is anchored at the first request
        assert result.expires_at == NOW + datetime.timedelta(minutes=15)
        assert db.session.query(ThrottleRecord).count() == 1

    def test_exhausted_window_denies_without_writing(self, store):
        for _ in range(5):
            store.consume("203.0.113.7", "LOGIN_ATTEMPT", LOGIN_POLICY, NOW)

        result = store.consume(
            "203.0.113.7",
            "LOGIN_ATTEMPT",
            LOGIN_POLICY,
            NOW + datetime.timedelta(minutes=5),
        )

        assert result.allowed is False
        assert result.count == 5
        assert result.expires_at == NOW + datetime.timedelta(minutes=15)
        assert _record("203.0.113.7", "LOGIN_ATTEMPT").count == 5

    def test_denied_at_exact_expiry(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)

        result = store.consume(
            "+15550100", "OTP_REQUEST", OTP_POLICY, NOW + datetime.timedelta(minutes=1)
        )

        assert result.allowed is False

    def test_stale_window_is_renewed(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)
        later = NOW + datetime.timedelta(minutes=1, seconds=1)

        result = store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, later)

        assert result.allowed is True
        assert result.count == 1
        assert result.expires_at == later + datetime.timedelta(minutes=1)
        db.session.expire_all()
        assert _record("+15550100", "OTP_REQUEST").window_start == later

    def test_keys_are_independent(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)

        assert store.consume("+15550199", "OTP_REQUEST", OTP_POLICY, NOW).allowed
        assert store.consume("+15550100", "PASSWORD_RESET", OTP_POLICY, NOW).allowed


class TestDeleteAndPurge:
    def test_delete_reports_existence(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)

        assert store.delete("+15550100", "OTP_REQUEST") is True
        assert store.delete("+15550100", "OTP_REQUEST") is False
        assert _record("+15550100", "OTP_REQUEST") is None

    def test_purge_removes_only_lapsed_records(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)
        store.consume("203.0.113.7", "LOGIN_ATTEMPT", LOGIN_POLICY, NOW)

        purged = store.purge_expired(NOW + datetime.timedelta(minutes=5))

        assert purged == 1
        remaining = store.list_active(NOW + datetime.timedelta(minutes=5))
        assert [record.identifier for record in remaining] == ["203.0.113.7"]

    def test_purge_keeps_record_expiring_now(self, store):
        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)

        assert store.purge_expired(NOW + datetime.timedelta(minutes=1)) == 0

    def test_list_active_filters(self, store):
        store.consume("user@example.com", "OTP_REQUEST", OTP_POLICY, NOW)
        store.consume(
            "user@example.com",
            "PASSWORD_RESET",
            LOGIN_POLICY,
            NOW + datetime.timedelta(seconds=1),
        )
        store.consume("other@example.com", "OTP_REQUEST", OTP_POLICY, NOW)

        by_identifier = store.list_active(NOW, identifier="user@example.com")
        by_action = store.list_active(NOW, action="OTP_REQUEST")

        # Most recently opened window first
        assert [r.action for r in by_identifier] == ["PASSWORD_RESET", "OTP_REQUEST"]
        assert {r.identifier for r in by_action} == {
            "user@example.com",
            "other@example.com",
        }
        assert by_identifier[0].serialize()["count"] == 1


class TestStoreErrors:
    def test_driver_error_becomes_store_unavailable(self, store):
        error = OperationalError("INSERT", {}, Exception("database is locked"))
        with patch.object(store, "_begin", side_effect=error):
            with pytest.raises(StoreUnavailable) as exc_info:
                store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)

        assert "Throttle consume" in exc_info.value.message

    @patch("authguard.services.throttle_ledger.log_store_unavailable")
    def test_ledger_fails_open_on_driver_error(self, mock_log, store):
        ledger = ThrottleLedger(store, clock=lambda: NOW)
        error = OperationalError("INSERT", {}, Exception("could not connect"))

        with patch.object(store, "_begin", side_effect=error):
            decision = ledger.check_and_consume("+15550100", "OTP_REQUEST")

        assert decision.allowed is True
        mock_log.assert_called_once()

    def test_unsupported_dialect(self):
        with pytest.raises(NotImplementedError):
            _upsert_for("mysql")


class TestLedgerOverSQL:
    """End-to-end OTP scenario through the ledger and the SQL store"""

    def test_otp_scenario(self, store, clock):
        ledger = ThrottleLedger(store, clock=clock)

        assert ledger.check_and_consume("+15550100", "OTP_REQUEST").allowed is True
        clock.advance(seconds=30)
        denied = ledger.check_and_consume("+15550100", "OTP_REQUEST")
        clock.advance(seconds=31)
        renewed = ledger.check_and_consume("+15550100", "OTP_REQUEST")

        assert denied.allowed is False
        assert denied.retry_after_seconds == 30
        assert renewed.allowed is True
        assert renewed.remaining == 0

    def test_oversized_identifier_is_still_throttled(self, store, clock):
        """Identifiers wider than the column are counted under a digest"""
        ledger = ThrottleLedger(store, clock=clock)
        identifier = "a" * 300 + "@example.com"

        first = ledger.check_and_consume(identifier, "OTP_REQUEST")
        clock.advance(seconds=10)
        second = ledger.check_and_consume(identifier, "OTP_REQUEST")

        assert first.allowed is True
        assert second.allowed is False
        (record,) = store.list_active(clock.now)
        assert len(record.identifier) <= MAX_IDENTIFIER_LENGTH
        assert ledger.list_active(identifier=identifier) == [record]

        assert ledger.reset(identifier, "OTP_REQUEST") is True
        assert ledger.check_and_consume(identifier, "OTP_REQUEST").allowed is True


class TestSessionIsolation:
    """Store statements never touch the caller's ORM session"""

    def test_consume_does_not_commit_pending_work(self, store):
        db.session.add(User(email="pending@test.com"))

        store.consume("+15550100", "OTP_REQUEST", OTP_POLICY, NOW)
        db.session.rollback()

        assert db.session.query(User).filter_by(email="pending@test.com").count() == 0
        assert store.list_active(NOW)[0].identifier == "+15550100"

    @patch("authguard.services.throttle_ledger.log_store_unavailable")
    def test_store_failure_keeps_pending_work(self, mock_log, store):
        ledger = ThrottleLedger(store, clock=lambda: NOW)
        db.session.add(User(email="pending@test.com"))
        error = OperationalError("INSERT", {}, Exception("could not connect"))

        with patch.object(store, "_begin", side_effect=error):
            assert ledger.check_and_consume("+15550100", "OTP_REQUEST").allowed

        db.session.commit()
        assert db.session.query(User).filter_by(email="pending@test.com").count() == 1


class TestConcurrency:
    """Concurrent writers on one key through the conditional upsert"""

    def test_concurrent_consumes_allow_exactly_max(self, app, store):
        workers = 16
        barrier = threading.Barrier(workers)

        def consume(_):
            with app.app_context():
                barrier.wait()
                return store.consume(
                    "203.0.113.7", "LOGIN_ATTEMPT", LOGIN_POLICY, NOW
                ).allowed

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(consume, range(workers)))

        assert results.count(True) == 5
        assert results.count(False) == workers - 5
        (record,) = store.list_active(NOW)
        assert record.count == 5
