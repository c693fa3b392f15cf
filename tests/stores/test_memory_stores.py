"""Tests for the in-process throttle and account stores"""

import datetime
import threading

from authguard.policies import ThrottlePolicy
from authguard.stores import MemoryAccountStore, MemoryThrottleStore

NOW = datetime.datetime(2026, 3, 1, 12, 0, 0)
POLICY = ThrottlePolicy(window_seconds=60, max_requests=2)


class TestMemoryThrottleStore:
    def test_consume_until_exhausted(self):
        store = MemoryThrottleStore()

        results = [store.consume("key", "OTP_REQUEST", POLICY, NOW) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert [r.count for r in results] == [1, 2, 2]
        assert len(store) == 1

    def test_renews_after_expiry(self):
        store = MemoryThrottleStore()
        store.consume("key", "OTP_REQUEST", POLICY, NOW)
        store.consume("key", "OTP_REQUEST", POLICY, NOW)
        later = NOW + datetime.timedelta(seconds=61)

        result = store.consume("key", "OTP_REQUEST", POLICY, later)

        assert result.allowed is True
        assert result.count == 1
        assert result.expires_at == later + datetime.timedelta(seconds=60)

    def test_purge_expired(self):
        store = MemoryThrottleStore()
        store.consume("old", "OTP_REQUEST", POLICY, NOW)
        store.consume(
            "new", "OTP_REQUEST", POLICY, NOW + datetime.timedelta(seconds=30)
        )

        purged = store.purge_expired(NOW + datetime.timedelta(seconds=61))

        assert purged == 1
        assert len(store) == 1
        assert store.list_active(NOW)[0].identifier == "new"

    def test_single_stripe_still_correct(self):
        store = MemoryThrottleStore(stripes=1)
        store.consume("a", "OTP_REQUEST", POLICY, NOW)
        store.consume("b", "OTP_REQUEST", POLICY, NOW)

        assert store.delete("a", "OTP_REQUEST") is True
        assert store.delete("a", "OTP_REQUEST") is False
        assert [r.identifier for r in store.list_active(NOW)] == ["b"]

    def test_purge_races_with_consume(self):
        store = MemoryThrottleStore(stripes=4)
        policy = ThrottlePolicy(window_seconds=1, max_requests=1000)
        for index in range(200):
            store.consume(f"key-{index}", "OTP_REQUEST", policy, NOW)
        later = NOW + datetime.timedelta(seconds=5)
        barrier = threading.Barrier(2)
        results = {}

        def renew():
            barrier.wait()
            for index in range(200):
                store.consume(f"key-{index}", "OTP_REQUEST", policy, later)

        def purge():
            barrier.wait()
            results["purged"] = store.purge_expired(later)

        threads = [threading.Thread(target=renew), threading.Thread(target=purge)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Every key either survived renewed or was purged and recreated
        assert len(store) == 200
        assert all(r.count == 1 for r in store.list_active(later))
        assert 0 <= results["purged"] <= 200


class TestMemoryAccountStore:
    def test_register_failure_locks_at_threshold(self):
        store = MemoryAccountStore()
        store.add_account("acct-1")
        lock_until = NOW + datetime.timedelta(minutes=30)

        states = [store.register_failure("acct-1", 3, lock_until) for _ in range(3)]

        assert [s.failed_login_attempts for s in states] == [1, 2, 3]
        assert states[1].account_locked_until is None
        assert states[2].account_locked_until == lock_until

    def test_register_failure_unknown_account(self):
        assert MemoryAccountStore().register_failure("nobody", 5, NOW) is None

    def test_reset_without_login_keeps_last_login(self):
        store = MemoryAccountStore()
        store.add_account("acct-1", last_login_at=NOW, failed_login_attempts=2)

        assert store.reset("acct-1") is True

        state = store.get_state("acct-1")
        assert state.failed_login_attempts == 0
        assert state.last_login_at == NOW

    def test_concurrent_failures_are_all_counted(self):
        store = MemoryAccountStore()
        store.add_account("acct-1")
        barrier = threading.Barrier(20)

        def fail():
            barrier.wait()
            store.register_failure("acct-1", 5, NOW)

        threads = [threading.Thread(target=fail) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.get_state("acct-1").failed_login_attempts == 20

    def test_state_serializes(self):
        store = MemoryAccountStore()
        state = store.add_account("acct-1", account_locked_until=NOW)

        assert state.serialize() == {
            "account_id": "acct-1",
            "failed_login_attempts": 0,
            "account_locked_until": "2026-03-01T12:00:00",
            "last_login_at": None,
        }
        assert state.is_locked(NOW) is False
        assert state.is_locked(NOW - datetime.timedelta(seconds=1)) is True
