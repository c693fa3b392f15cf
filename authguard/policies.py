"""Throttle actions and their window/quota policies."""

from __future__ import annotations

from dataclasses import dataclass
import datetime
import enum
import logging

from limits import parse as parse_limit

from authguard.errors import InvalidThrottleRequest

logger = logging.getLogger(__name__)


class ThrottleAction(str, enum.Enum):
    """Closed set of throttled operations."""

    OTP_REQUEST = "OTP_REQUEST"
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    PASSWORD_RESET = "PASSWORD_RESET"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"

    @classmethod
    def coerce(cls, action: ThrottleAction | str) -> ThrottleAction:
        """Return the enum member for ``action`` or raise InvalidThrottleRequest."""
        if isinstance(action, cls):
            return action
        try:
            return cls(str(action).upper())
        except ValueError:
            raise InvalidThrottleRequest(
                f"Unknown throttle action: {action!r}"
            ) from None


@dataclass(frozen=True)
class ThrottlePolicy:
    """A fixed renewing window: at most ``max_requests`` per ``window_seconds``."""

    window_seconds: float
    max_requests: int

    def __post_init__(self):
        if self.window_seconds <= 0:
            raise InvalidThrottleRequest("window_seconds must be positive")
        if self.max_requests < 1:
            raise InvalidThrottleRequest("max_requests must be at least 1")

    @property
    def window(self) -> datetime.timedelta:
        return datetime.timedelta(seconds=self.window_seconds)

    @property
    def window_ms(self) -> int:
        return int(self.window_seconds * 1000)

    @classmethod
    def from_millis(cls, window_ms: int, max_requests: int) -> ThrottlePolicy:
        return cls(window_seconds=window_ms / 1000, max_requests=max_requests)

    @classmethod
    def parse(cls, limit_string: str) -> ThrottlePolicy:
        """Build a policy from a limit string such as ``"5 per 15 minutes"``."""
        try:
            item = parse_limit(limit_string)
        except ValueError as exc:
            raise InvalidThrottleRequest(
                f"Invalid throttle limit: {limit_string!r}"
            ) from exc
        return cls(window_seconds=item.get_expiry(), max_requests=item.amount)

    def describe(self) -> str:
        return f"{self.max_requests} per {self.window_seconds:g} seconds"


DEFAULT_POLICIES = {
    ThrottleAction.OTP_REQUEST: ThrottlePolicy(window_seconds=60, max_requests=1),
    ThrottleAction.LOGIN_ATTEMPT: ThrottlePolicy(window_seconds=15 * 60, max_requests=5),
    ThrottleAction.PASSWORD_RESET: ThrottlePolicy(window_seconds=60 * 60, max_requests=3),
    ThrottleAction.EMAIL_VERIFICATION: ThrottlePolicy(
        window_seconds=5 * 60, max_requests=2
    ),
}


def load_policies(configured: dict | None) -> dict[ThrottleAction, ThrottlePolicy]:
    """Merge configured limit strings over the defaults.

    Unknown actions and malformed limit strings are configuration errors and
    raise at startup.
    """
    policies = dict(DEFAULT_POLICIES)
    for action, limit_string in (configured or {}).items():
        if not limit_string:
            continue
        policies[ThrottleAction.coerce(action)] = ThrottlePolicy.parse(limit_string)
        logger.debug(f"[CONFIG]: Throttle policy {action} = {limit_string}")
    return policies
