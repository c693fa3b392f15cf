"""LOCKOUT TRACKER SERVICE"""

import datetime
import logging
import math

from authguard.errors import StoreUnavailable
from authguard.stores.base import AccountSecurityState, AccountStore
from authguard.utils.clock import utcnow
from authguard.utils.security_events import (
    log_account_locked,
    log_security_event,
    log_store_unavailable,
)

logger = logging.getLogger(__name__)


class LockoutTracker:
    """Progressive account lockout driven by consecutive failed logins.

    After ``max_failed_attempts`` failures the account is locked for
    ``lock_duration`` measured from the triggering failure; each further
    failure re-applies the lock from that moment. Counters are reset only by a
    successful login or an explicit :meth:`clear_lockout`, never by time.

    Store failures never reach the login path: mutations are logged and
    dropped, and :meth:`is_locked` answers ``False``.
    """

    def __init__(
        self,
        store: AccountStore,
        clock=utcnow,
        max_failed_attempts: int = 5,
        lock_duration: datetime.timedelta = datetime.timedelta(minutes=30),
    ):
        self.store = store
        self.clock = clock
        self.max_failed_attempts = max_failed_attempts
        self.lock_duration = lock_duration

    def record_failed_attempt(self, account_id) -> None:
        now = self.clock()
        try:
            state = self.store.register_failure(
                account_id, self.max_failed_attempts, now + self.lock_duration
            )
        except StoreUnavailable as error:
            logger.error(
                f"[SERVICE]: Failed to increment login attempts for {account_id}"
            )
            log_store_unavailable("lockout_tracker", error)
            return

        if state is None:
            logger.warning(f"[SERVICE]: Failed login for unknown account {account_id}")
            return

        log_security_event(
            "LOGIN_FAILURE",
            user_id=state.account_id,
            details={"failed_login_attempts": state.failed_login_attempts},
        )
        if state.failed_login_attempts >= self.max_failed_attempts:
            logger.warning(
                f"[SERVICE]: Account {state.account_id} locked until "
                f"{state.account_locked_until.isoformat()} after "
                f"{state.failed_login_attempts} failed attempts"
            )
            log_account_locked(
                state.account_id,
                state.failed_login_attempts,
                state.account_locked_until,
            )

    def record_successful_attempt(self, account_id) -> None:
        try:
            found = self.store.reset(account_id, last_login_at=self.clock())
        except StoreUnavailable as error:
            logger.error(f"[SERVICE]: Failed to reset login attempts for {account_id}")
            log_store_unavailable("lockout_tracker", error)
            return

        if not found:
            logger.warning(
                f"[SERVICE]: Successful login for unknown account {account_id}"
            )
            return
        log_security_event("LOGIN_SUCCESS", user_id=str(account_id), level="info")

    def is_locked(self, account_id) -> bool:
        """True iff the account's lock expiry is set and still in the future.

        An expired lock is not cleared here; the stored counter keeps its value
        until the next successful login.
        """
        state = self.get_state(account_id)
        if state is None:
            return False
        return state.is_locked(self.clock())

    def get_state(self, account_id) -> AccountSecurityState | None:
        try:
            return self.store.get_state(account_id)
        except StoreUnavailable as error:
            logger.error(
                f"[SERVICE]: Failed to check account lock status for {account_id}"
            )
            log_store_unavailable("lockout_tracker", error)
            return None

    def minutes_remaining(self, account_id) -> int | None:
        """Whole minutes left on an active lock, or ``None`` when unlocked."""
        state = self.get_state(account_id)
        now = self.clock()
        if state is None or not state.is_locked(now):
            return None
        seconds = (state.account_locked_until - now).total_seconds()
        return max(math.ceil(seconds / 60), 1)

    def clear_lockout(self, account_id) -> bool:
        """Unlock without recording a login, e.g. after a password reset."""
        try:
            found = self.store.reset(account_id)
        except StoreUnavailable as error:
            logger.error(f"[SERVICE]: Failed to clear lockout for {account_id}")
            log_store_unavailable("lockout_tracker", error)
            return False

        if found:
            log_security_event("LOCKOUT_CLEARED", user_id=str(account_id), level="info")
        return found
