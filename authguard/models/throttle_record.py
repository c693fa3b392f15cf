"""Model for per-identifier, per-action throttle counters."""

from __future__ import annotations

from authguard import db
from authguard.stores.base import MAX_IDENTIFIER_LENGTH


class ThrottleRecord(db.Model):
    """Usage of one action by one identifier within the current window.

    At most one row exists per ``(identifier, action)``; the composite
    primary key is the conflict target of the ledger's upsert.
    """

    __tablename__ = "throttle_record"

    identifier = db.Column(db.String(MAX_IDENTIFIER_LENGTH), primary_key=True)
    action = db.Column(db.String(50), primary_key=True)
    count = db.Column(db.Integer(), nullable=False, default=1)
    window_start = db.Column(db.DateTime(), nullable=False)
    expires_at = db.Column(db.DateTime(), nullable=False, index=True)

    def __repr__(self):
        return f"<ThrottleRecord {self.action}:{self.identifier} count={self.count}>"

    def serialize(self) -> dict[str, object]:
        return {
            "identifier": self.identifier,
            "action": self.action,
            "count": self.count,
            "window_start": self.window_start.isoformat()
            if self.window_start
            else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
