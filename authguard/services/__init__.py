"""AUTHGUARD SERVICES MODULE"""

import logging
import sys

logger = logging.getLogger()


def handle_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = handle_exception

from authguard.services.lockout_tracker import LockoutTracker  # noqa: E402
from authguard.services.login_guard import LoginGuard  # noqa: E402
from authguard.services.sweeper import Sweeper  # noqa: E402
from authguard.services.throttle_ledger import (  # noqa: E402
    ThrottleDecision,
    ThrottleLedger,
)

__all__ = [
    "LockoutTracker",
    "LoginGuard",
    "Sweeper",
    "ThrottleDecision",
    "ThrottleLedger",
]
