"""THROTTLE LEDGER SERVICE"""

from __future__ import annotations

from dataclasses import dataclass
import datetime
import hashlib
import logging
import math

from authguard.errors import InvalidThrottleRequest, StoreUnavailable
from authguard.policies import DEFAULT_POLICIES, ThrottleAction, ThrottlePolicy
from authguard.stores.base import (
    MAX_IDENTIFIER_LENGTH,
    ThrottleSnapshot,
    ThrottleStore,
)
from authguard.utils.clock import utcnow
from authguard.utils.security_events import (
    log_security_event,
    log_store_unavailable,
    log_throttle_denied,
)

logger = logging.getLogger(__name__)

STORE_FAILURE_MESSAGE = "Rate limit check failed, request allowed"
STORE_FAILURE_DENIED_MESSAGE = "Rate limit check failed, request denied"


@dataclass(frozen=True)
class ThrottleDecision:
    """Answer to "may this (identifier, action) proceed right now?"."""

    allowed: bool
    reset_time: datetime.datetime | None
    remaining: int
    message: str = ""
    checked_at: datetime.datetime | None = None

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until a denied caller may retry; 0 when allowed."""
        if self.allowed or self.reset_time is None or self.checked_at is None:
            return 0
        return max(math.ceil((self.reset_time - self.checked_at).total_seconds()), 1)

    def serialize(self) -> dict[str, object]:
        return {
            "allowed": self.allowed,
            "reset_time": self.reset_time.isoformat() if self.reset_time else None,
            "remaining": self.remaining,
            "message": self.message,
            "retry_after": self.retry_after_seconds,
        }


def _validate_identifier(identifier) -> str:
    if not isinstance(identifier, str) or not identifier.strip():
        raise InvalidThrottleRequest("Throttle identifier must be a non-empty string")
    return identifier


def _storage_key(identifier: str) -> str:
    """Key under which ``identifier`` is counted.

    Identifiers longer than the store column are replaced by their SHA-256
    digest so they are still counted rather than rejected by the database.
    """
    if len(identifier) <= MAX_IDENTIFIER_LENGTH:
        return identifier
    return "sha256:" + hashlib.sha256(identifier.encode("utf-8")).hexdigest()


class ThrottleLedger:
    """Per-identifier, per-action request throttle with a renewing fixed window.

    One instance is built per process with an injected store. The clock is
    injectable so that window arithmetic can be driven from tests.
    """

    def __init__(
        self,
        store: ThrottleStore,
        policies: dict[ThrottleAction, ThrottlePolicy] | None = None,
        clock=utcnow,
        fail_open: bool = True,
        enabled: bool = True,
    ):
        self.store = store
        self.policies = dict(DEFAULT_POLICIES)
        self.policies.update(policies or {})
        self.clock = clock
        self.fail_open = fail_open
        self.enabled = enabled

    def policy_for(self, action: ThrottleAction | str) -> ThrottlePolicy:
        return self.policies[ThrottleAction.coerce(action)]

    def check_and_consume(
        self,
        identifier: str,
        action: ThrottleAction | str,
        policy: ThrottlePolicy | None = None,
    ) -> ThrottleDecision:
        """Consume one unit of ``action`` for ``identifier`` if the window allows.

        Denial is returned as a decision, never raised. Unknown actions and
        blank identifiers raise InvalidThrottleRequest.
        """
        action = ThrottleAction.coerce(action)
        identifier = _validate_identifier(identifier)
        if policy is not None and not isinstance(policy, ThrottlePolicy):
            raise InvalidThrottleRequest("policy must be a ThrottlePolicy")
        policy = policy or self.policies[action]

        now = self.clock()
        if not self.enabled:
            return ThrottleDecision(
                allowed=True,
                reset_time=None,
                remaining=policy.max_requests,
                message="Throttling disabled",
                checked_at=now,
            )

        try:
            result = self.store.consume(
                _storage_key(identifier), action.value, policy, now
            )
        except StoreUnavailable as error:
            return self._on_store_failure(identifier, action, policy, now, error)

        if result.allowed:
            logger.debug(
                f"[SERVICE]: {action.value} allowed for {identifier} "
                f"({result.count}/{policy.max_requests})"
            )
            return ThrottleDecision(
                allowed=True,
                reset_time=result.expires_at,
                remaining=max(policy.max_requests - result.count, 0),
                checked_at=now,
            )

        reset_time = result.expires_at or now + policy.window
        decision = ThrottleDecision(
            allowed=False,
            reset_time=reset_time,
            remaining=0,
            message=(
                "Rate limit exceeded. Try again after "
                f"{reset_time.strftime('%H:%M:%S')} UTC"
            ),
            checked_at=now,
        )
        logger.info(
            f"[SERVICE]: {action.value} denied for {identifier} until "
            f"{reset_time.isoformat()}"
        )
        log_throttle_denied(identifier, action.value, decision.retry_after_seconds)
        return decision

    def _on_store_failure(self, identifier, action, policy, now, error):
        logger.error(
            f"[SERVICE]: Throttle store unavailable for {action.value}:{identifier}: "
            f"{error}"
        )
        log_store_unavailable("throttle_ledger", error)
        if self.fail_open:
            return ThrottleDecision(
                allowed=True,
                reset_time=None,
                remaining=policy.max_requests,
                message=STORE_FAILURE_MESSAGE,
                checked_at=now,
            )
        return ThrottleDecision(
            allowed=False,
            reset_time=now + policy.window,
            remaining=0,
            message=STORE_FAILURE_DENIED_MESSAGE,
            checked_at=now,
        )

    def reset(self, identifier: str, action: ThrottleAction | str) -> bool:
        """Clear the counter for one key. Idempotent; returns whether one existed.

        A storage failure is logged and reported as ``False``.
        """
        action = ThrottleAction.coerce(action)
        identifier = _validate_identifier(identifier)
        try:
            removed = self.store.delete(_storage_key(identifier), action.value)
        except StoreUnavailable as error:
            logger.error(f"[SERVICE]: Could not reset {action.value}:{identifier}")
            log_store_unavailable("throttle_ledger", error)
            return False

        if removed:
            log_security_event(
                "THROTTLE_RESET",
                details={"identifier": identifier, "action": action.value},
                level="info",
            )
        else:
            logger.debug(
                f"[SERVICE]: Throttle reset for {action.value}:{identifier} "
                "(no record)"
            )
        return removed

    def list_active(
        self,
        action: ThrottleAction | str | None = None,
        identifier: str | None = None,
    ) -> list[ThrottleSnapshot]:
        """Records whose window is still open. Storage errors propagate."""
        action_value = ThrottleAction.coerce(action).value if action else None
        if identifier:
            identifier = _storage_key(identifier)
        return self.store.list_active(
            self.clock(), action=action_value, identifier=identifier
        )
