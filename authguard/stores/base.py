"""Store interfaces shared by the SQL and in-process implementations."""

from __future__ import annotations

import abc
from dataclasses import dataclass
import datetime

from authguard.policies import ThrottlePolicy

# Width of the identifier column; longer identifiers are stored as a digest
MAX_IDENTIFIER_LENGTH = 255


@dataclass(frozen=True)
class ThrottleSnapshot:
    identifier: str
    action: str
    count: int
    window_start: datetime.datetime
    expires_at: datetime.datetime

    def serialize(self) -> dict[str, object]:
        return {
            "identifier": self.identifier,
            "action": self.action,
            "count": self.count,
            "window_start": self.window_start.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of one atomic consume against the store.

    ``expires_at`` may be ``None`` for a denial when the record vanished
    between the conditional write and the follow-up read.
    """

    allowed: bool
    count: int
    expires_at: datetime.datetime | None


@dataclass(frozen=True)
class AccountSecurityState:
    account_id: str
    failed_login_attempts: int = 0
    account_locked_until: datetime.datetime | None = None
    last_login_at: datetime.datetime | None = None

    def is_locked(self, now: datetime.datetime) -> bool:
        return (
            self.account_locked_until is not None and self.account_locked_until > now
        )

    def serialize(self) -> dict[str, object]:
        return {
            "account_id": self.account_id,
            "failed_login_attempts": self.failed_login_attempts,
            "account_locked_until": self.account_locked_until.isoformat()
            if self.account_locked_until
            else None,
            "last_login_at": self.last_login_at.isoformat()
            if self.last_login_at
            else None,
        }


class ThrottleStore(abc.ABC):
    """Durable counters keyed by ``(identifier, action)``.

    Implementations raise :class:`authguard.errors.StoreUnavailable` when the
    backing storage cannot be reached.
    """

    @abc.abstractmethod
    def consume(
        self,
        identifier: str,
        action: str,
        policy: ThrottlePolicy,
        now: datetime.datetime,
    ) -> ConsumeResult:
        """Atomically create, renew or increment the record, unless exhausted."""

    @abc.abstractmethod
    def delete(self, identifier: str, action: str) -> bool:
        """Remove one record. Returns whether a record existed."""

    @abc.abstractmethod
    def purge_expired(self, now: datetime.datetime) -> int:
        """Remove every record with ``expires_at < now``."""

    @abc.abstractmethod
    def list_active(
        self,
        now: datetime.datetime,
        action: str | None = None,
        identifier: str | None = None,
    ) -> list[ThrottleSnapshot]:
        """Records whose window has not lapsed, most recently renewed first."""


class AccountStore(abc.ABC):
    """Failed-attempt counter and lock expiry embedded in each account."""

    @abc.abstractmethod
    def register_failure(
        self,
        account_id: str,
        threshold: int,
        lock_until: datetime.datetime,
    ) -> AccountSecurityState | None:
        """Increment the counter and, at or past ``threshold``, set the lock.

        Both fields change in one atomic unit. Returns the new state, or
        ``None`` when the account does not exist.
        """

    @abc.abstractmethod
    def reset(
        self, account_id: str, last_login_at: datetime.datetime | None = None
    ) -> bool:
        """Zero the counter and clear the lock; stamp ``last_login_at`` if given."""

    @abc.abstractmethod
    def get_state(self, account_id: str) -> AccountSecurityState | None:
        pass
