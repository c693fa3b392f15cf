"""AUTHGUARD STORES MODULE"""

from authguard.stores.base import (
    AccountSecurityState,
    AccountStore,
    ConsumeResult,
    ThrottleSnapshot,
    ThrottleStore,
)
from authguard.stores.memory import MemoryAccountStore, MemoryThrottleStore

__all__ = [
    "AccountSecurityState",
    "AccountStore",
    "ConsumeResult",
    "MemoryAccountStore",
    "MemoryThrottleStore",
    "ThrottleSnapshot",
    "ThrottleStore",
]
