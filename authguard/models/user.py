"""USER MODEL"""

import datetime
import logging
import uuid

from authguard import db
from authguard.models import GUID
from authguard.utils.clock import utcnow

db.GUID = GUID

logger = logging.getLogger(__name__)


class User(db.Model):
    """User Model

    Only the identity fields and the security field group the lockout tracker
    owns. Credentials live with the identity provider.
    """

    id = db.Column(
        db.GUID(),
        default=lambda: str(uuid.uuid4()),
        primary_key=True,
        autoincrement=False,
    )
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime(), default=utcnow)
    updated_at = db.Column(db.DateTime(), default=utcnow)

    # Account lockout fields, mutated only by the lockout tracker
    failed_login_attempts = db.Column(
        db.Integer(), default=0, nullable=False, server_default="0"
    )
    account_locked_until = db.Column(db.DateTime(), nullable=True, index=True)
    last_login_at = db.Column(db.DateTime(), nullable=True)

    def __init__(self, email, name=None):
        self.email = email
        self.name = name
        self.failed_login_attempts = 0

    def __repr__(self):
        return f"<User {self.email!r}>"

    def is_locked(self, now: datetime.datetime | None = None) -> bool:
        """Check whether the account lock is still in force."""
        if self.account_locked_until is None:
            return False
        return self.account_locked_until > (now or utcnow())

    def serialize(self):
        """Return object data in easily serializable format"""
        return {
            "id": str(self.id) if self.id else None,
            "email": self.email,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "failed_login_attempts": self.failed_login_attempts,
            "account_locked_until": self.account_locked_until.isoformat()
            if self.account_locked_until
            else None,
            "last_login_at": self.last_login_at.isoformat()
            if self.last_login_at
            else None,
        }
