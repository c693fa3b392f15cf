"""In-process stores for tests and single-process deployments."""

from __future__ import annotations

import dataclasses
import datetime
import threading

from authguard.policies import ThrottlePolicy
from authguard.stores.base import (
    AccountSecurityState,
    AccountStore,
    ConsumeResult,
    ThrottleSnapshot,
    ThrottleStore,
)


class MemoryThrottleStore(ThrottleStore):
    """Dict-backed ledger guarded by striped per-key locks.

    A key always maps to the same stripe, so concurrent consumes of one
    ``(identifier, action)`` pair are serialised while unrelated keys proceed
    in parallel.
    """

    def __init__(self, stripes: int = 64):
        self._records: dict[tuple[str, str], ThrottleSnapshot] = {}
        self._stripes = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, key):
        return self._stripes[hash(key) % len(self._stripes)]

    def consume(
        self,
        identifier: str,
        action: str,
        policy: ThrottlePolicy,
        now: datetime.datetime,
    ) -> ConsumeResult:
        key = (identifier, action)
        with self._lock_for(key):
            record = self._records.get(key)
            if record is None or now > record.expires_at:
                record = ThrottleSnapshot(
                    identifier=identifier,
                    action=action,
                    count=1,
                    window_start=now,
                    expires_at=now + policy.window,
                )
            elif record.count >= policy.max_requests:
                return ConsumeResult(
                    allowed=False, count=record.count, expires_at=record.expires_at
                )
            else:
                record = dataclasses.replace(record, count=record.count + 1)
            self._records[key] = record
            return ConsumeResult(
                allowed=True, count=record.count, expires_at=record.expires_at
            )

    def delete(self, identifier: str, action: str) -> bool:
        key = (identifier, action)
        with self._lock_for(key):
            return self._records.pop(key, None) is not None

    def purge_expired(self, now: datetime.datetime) -> int:
        purged = 0
        for key, record in self._records.copy().items():
            if record.expires_at >= now:
                continue
            with self._lock_for(key):
                # Re-check under the lock: a consume may have renewed it
                current = self._records.get(key)
                if current is not None and current.expires_at < now:
                    del self._records[key]
                    purged += 1
        return purged

    def list_active(
        self,
        now: datetime.datetime,
        action: str | None = None,
        identifier: str | None = None,
    ) -> list[ThrottleSnapshot]:
        active = [
            record
            for record in self._records.copy().values()
            if record.expires_at >= now
            and (action is None or record.action == action)
            and (identifier is None or record.identifier == identifier)
        ]
        return sorted(active, key=lambda record: record.window_start, reverse=True)

    def __len__(self):
        return len(self._records)


class MemoryAccountStore(AccountStore):
    """Account security fields held in a dict under a single lock."""

    def __init__(self):
        self._accounts: dict[str, AccountSecurityState] = {}
        self._lock = threading.Lock()

    def add_account(self, account_id: str, **fields) -> AccountSecurityState:
        state = AccountSecurityState(account_id=str(account_id), **fields)
        with self._lock:
            self._accounts[state.account_id] = state
        return state

    def register_failure(
        self,
        account_id: str,
        threshold: int,
        lock_until: datetime.datetime,
    ) -> AccountSecurityState | None:
        with self._lock:
            state = self._accounts.get(str(account_id))
            if state is None:
                return None
            attempts = state.failed_login_attempts + 1
            state = dataclasses.replace(
                state,
                failed_login_attempts=attempts,
                account_locked_until=lock_until
                if attempts >= threshold
                else state.account_locked_until,
            )
            self._accounts[state.account_id] = state
            return state

    def reset(
        self, account_id: str, last_login_at: datetime.datetime | None = None
    ) -> bool:
        with self._lock:
            state = self._accounts.get(str(account_id))
            if state is None:
                return False
            self._accounts[state.account_id] = dataclasses.replace(
                state,
                failed_login_attempts=0,
                account_locked_until=None,
                last_login_at=last_login_at or state.last_login_at,
            )
            return True

    def get_state(self, account_id: str) -> AccountSecurityState | None:
        with self._lock:
            return self._accounts.get(str(account_id))
