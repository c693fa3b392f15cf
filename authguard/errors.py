"""AUTHGUARD ERRORS"""


class Error(Exception):
    def __init__(self, message):
        self.message = message
        super().__init__(message)

    @property
    def serialize(self):
        return {"message": self.message}


class StoreUnavailable(Error):
    """Raised by a store when the backing database cannot be reached."""


class InvalidThrottleRequest(Error, ValueError):
    """Raised for contract violations: unknown action, blank identifier, bad policy."""


class ThrottleExceeded(Error):
    """Raised by the login guard when a throttle denies an operation."""

    def __init__(self, message: str, decision=None):
        super().__init__(message)
        self.decision = decision

    @property
    def retry_after_seconds(self) -> int | None:
        if self.decision is None:
            return None
        return self.decision.retry_after_seconds

    @property
    def serialize(self):
        return {
            "message": self.message,
            "error_code": "rate_limit_exceeded",
            "retry_after": self.retry_after_seconds,
        }


class AccountLockedError(Error):
    """Raised when a user account is locked due to too many failed login attempts."""

    def __init__(self, message: str, minutes_remaining: int | None = None):
        super().__init__(message)
        self.minutes_remaining = minutes_remaining

    @property
    def serialize(self):
        return {
            "message": self.message,
            "error_code": "account_locked",
            "minutes_remaining": self.minutes_remaining,
        }
