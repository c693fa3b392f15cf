"""LOGIN GUARD SERVICE"""

from __future__ import annotations

import logging
from typing import Callable

from authguard.errors import AccountLockedError, ThrottleExceeded
from authguard.policies import ThrottleAction
from authguard.services.lockout_tracker import LockoutTracker
from authguard.services.throttle_ledger import ThrottleDecision, ThrottleLedger

logger = logging.getLogger(__name__)


class LoginGuard:
    """Wires the throttle ledger and lockout tracker into the endpoint flows.

    Login: throttle the source address, refuse locked accounts before any
    credential check, then record the outcome. OTP, password-reset and
    email-verification endpoints only need :meth:`guard`.
    """

    def __init__(self, ledger: ThrottleLedger, tracker: LockoutTracker):
        self.ledger = ledger
        self.tracker = tracker

    def guard(self, action: ThrottleAction | str, identifier: str) -> ThrottleDecision:
        """Consume one unit of ``action`` or raise ThrottleExceeded."""
        decision = self.ledger.check_and_consume(identifier, action)
        if not decision.allowed:
            raise ThrottleExceeded(decision.message, decision=decision)
        return decision

    def attempt(
        self,
        ip_address: str,
        account_id,
        verify_credentials: Callable[[], bool],
    ) -> bool:
        """Run one login attempt for ``account_id`` from ``ip_address``.

        Raises:
            ThrottleExceeded: the address used up its login attempts.
            AccountLockedError: the account is locked; credentials are not checked.

        Returns:
            The result of ``verify_credentials``.
        """
        self.guard(ThrottleAction.LOGIN_ATTEMPT, ip_address)

        if account_id is None:
            # Unknown account: still run the check so timing does not leak
            verify_credentials()
            return False

        if self.tracker.is_locked(account_id):
            minutes = self.tracker.minutes_remaining(account_id)
            logger.warning(f"[AUTH]: Login refused for locked account {account_id}")
            raise AccountLockedError(
                f"Account is locked. Try again in {minutes} minutes."
                if minutes
                else "Account is locked.",
                minutes_remaining=minutes,
            )

        if verify_credentials():
            self.tracker.record_successful_attempt(account_id)
            return True

        self.tracker.record_failed_attempt(account_id)
        return False
