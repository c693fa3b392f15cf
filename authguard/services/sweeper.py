"""SWEEPER SERVICE"""

import datetime
import logging

from authguard.stores.base import ThrottleStore
from authguard.utils.clock import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class Sweeper:
    """Purges throttle records whose window has fully lapsed.

    Safe alongside the ledger: a lapsed record would be renewed in place on
    its next use anyway. Storage errors propagate so the scheduler can retry.
    """

    def __init__(self, store: ThrottleStore, clock=utcnow):
        self.store = store
        self.clock = clock

    def purge_expired(self, now: datetime.datetime | None = None) -> int:
        now = to_naive_utc(now) if now is not None else self.clock()
        logger.info(f"[SERVICE]: Purging throttle records expired before {now}")
        purged = self.store.purge_expired(now)
        logger.info(f"[SERVICE]: Purged {purged} expired throttle records")
        return purged
