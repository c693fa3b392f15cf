"""SQLAlchemy-backed stores.

Every mutation is one SQL statement: the ledger consume is a conditional
``INSERT ... ON CONFLICT DO UPDATE ... WHERE ... RETURNING`` and the failure
counter is an ``UPDATE ... RETURNING`` whose lock column is computed from the
same incremented value. The database serialises concurrent writers on a row.

Statements run on their own connection and transaction, never on the caller's
``db.session``: a store failure rolls back only the store's own work, and a
store commit never flushes the caller's pending changes.
"""

from __future__ import annotations

import datetime
import logging
import uuid

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from authguard.errors import StoreUnavailable
from authguard.models import ThrottleRecord, User
from authguard.policies import ThrottlePolicy
from authguard.stores.base import (
    AccountSecurityState,
    AccountStore,
    ConsumeResult,
    ThrottleSnapshot,
    ThrottleStore,
)

logger = logging.getLogger(__name__)


def _upsert_for(dialect_name):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(
            f"Throttle store requires PostgreSQL or SQLite, got {dialect_name!r}"
        )
    return insert


class _SQLStore:
    def __init__(self, db):
        self.db = db

    def _begin(self):
        """Connection with its own transaction, committed on clean exit."""
        return self.db.engine.begin()

    def _fail(self, operation, error):
        """Translate a driver error; the store transaction is already rolled back."""
        logger.error(f"[DB]: {operation} failed: {error}")
        return StoreUnavailable(f"{operation} failed: {error}")


class SQLThrottleStore(_SQLStore, ThrottleStore):
    """Throttle ledger persisted in the ``throttle_record`` table."""

    def consume(
        self,
        identifier: str,
        action: str,
        policy: ThrottlePolicy,
        now: datetime.datetime,
    ) -> ConsumeResult:
        expires_at = now + policy.window
        stale = ThrottleRecord.expires_at < now

        try:
            with self._begin() as connection:
                insert = _upsert_for(connection.dialect.name)
                stmt = (
                    insert(ThrottleRecord)
                    .values(
                        identifier=identifier,
                        action=action,
                        count=1,
                        window_start=now,
                        expires_at=expires_at,
                    )
                    .on_conflict_do_update(
                        index_elements=[
                            ThrottleRecord.identifier,
                            ThrottleRecord.action,
                        ],
                        set_={
                            "count": case((stale, 1), else_=ThrottleRecord.count + 1),
                            "window_start": case(
                                (stale, now), else_=ThrottleRecord.window_start
                            ),
                            "expires_at": case(
                                (stale, expires_at), else_=ThrottleRecord.expires_at
                            ),
                        },
                        # Exhausted, still-active windows are left untouched and
                        # return no row
                        where=or_(stale, ThrottleRecord.count < policy.max_requests),
                    )
                    .returning(ThrottleRecord.count, ThrottleRecord.expires_at)
                )
                row = connection.execute(stmt).first()

                if row is None:
                    # Denied: read the window only to report when it reopens
                    row = connection.execute(
                        select(ThrottleRecord.count, ThrottleRecord.expires_at).where(
                            ThrottleRecord.identifier == identifier,
                            ThrottleRecord.action == action,
                        )
                    ).first()
                    allowed = False
                else:
                    allowed = True
        except SQLAlchemyError as error:
            raise self._fail("Throttle consume", error) from error

        if row is None:
            return ConsumeResult(
                allowed=False, count=policy.max_requests, expires_at=None
            )
        # Row.count is the tuple method, so unpack positionally
        count, window_expires_at = row
        return ConsumeResult(
            allowed=allowed, count=count, expires_at=window_expires_at
        )

    def delete(self, identifier: str, action: str) -> bool:
        try:
            with self._begin() as connection:
                removed = connection.execute(
                    delete(ThrottleRecord).where(
                        ThrottleRecord.identifier == identifier,
                        ThrottleRecord.action == action,
                    )
                ).rowcount
        except SQLAlchemyError as error:
            raise self._fail("Throttle reset", error) from error
        return bool(removed)

    def purge_expired(self, now: datetime.datetime) -> int:
        try:
            with self._begin() as connection:
                purged = connection.execute(
                    delete(ThrottleRecord).where(ThrottleRecord.expires_at < now)
                ).rowcount
        except SQLAlchemyError as error:
            raise self._fail("Throttle purge", error) from error
        return int(purged or 0)

    def list_active(
        self,
        now: datetime.datetime,
        action: str | None = None,
        identifier: str | None = None,
    ) -> list[ThrottleSnapshot]:
        query = select(
            ThrottleRecord.identifier,
            ThrottleRecord.action,
            ThrottleRecord.count,
            ThrottleRecord.window_start,
            ThrottleRecord.expires_at,
        ).where(ThrottleRecord.expires_at >= now)
        if action:
            query = query.where(ThrottleRecord.action == action)
        if identifier:
            query = query.where(ThrottleRecord.identifier == identifier)
        query = query.order_by(ThrottleRecord.window_start.desc())

        try:
            with self._begin() as connection:
                rows = connection.execute(query).all()
        except SQLAlchemyError as error:
            raise self._fail("Throttle listing", error) from error

        return [ThrottleSnapshot(*row) for row in rows]


def _account_uuid(account_id) -> uuid.UUID | None:
    if isinstance(account_id, uuid.UUID):
        return account_id
    try:
        return uuid.UUID(str(account_id))
    except (TypeError, ValueError):
        return None


def _state_from_row(row) -> AccountSecurityState:
    return AccountSecurityState(
        account_id=str(row.id),
        failed_login_attempts=row.failed_login_attempts,
        account_locked_until=row.account_locked_until,
        last_login_at=row.last_login_at,
    )


class SQLAccountStore(_SQLStore, AccountStore):
    """Security fields on the ``user`` table."""

    _state_columns = (
        User.id,
        User.failed_login_attempts,
        User.account_locked_until,
        User.last_login_at,
    )

    def register_failure(
        self,
        account_id: str,
        threshold: int,
        lock_until: datetime.datetime,
    ) -> AccountSecurityState | None:
        user_id = _account_uuid(account_id)
        if user_id is None:
            logger.warning(f"[DB]: Not a valid account id: {account_id!r}")
            return None

        attempts = User.failed_login_attempts + 1
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                failed_login_attempts=attempts,
                account_locked_until=case(
                    (attempts >= threshold, lock_until),
                    else_=User.account_locked_until,
                ),
            )
            .returning(*self._state_columns)
        )
        try:
            with self._begin() as connection:
                row = connection.execute(stmt).first()
        except SQLAlchemyError as error:
            raise self._fail("Failed-login increment", error) from error

        return _state_from_row(row) if row is not None else None

    def reset(
        self, account_id: str, last_login_at: datetime.datetime | None = None
    ) -> bool:
        user_id = _account_uuid(account_id)
        if user_id is None:
            logger.warning(f"[DB]: Not a valid account id: {account_id!r}")
            return False

        values = {"failed_login_attempts": 0, "account_locked_until": None}
        if last_login_at is not None:
            values["last_login_at"] = last_login_at

        try:
            with self._begin() as connection:
                found = connection.execute(
                    update(User).where(User.id == user_id).values(**values)
                ).rowcount
        except SQLAlchemyError as error:
            raise self._fail("Failed-login reset", error) from error
        return bool(found)

    def get_state(self, account_id: str) -> AccountSecurityState | None:
        user_id = _account_uuid(account_id)
        if user_id is None:
            return None
        try:
            with self._begin() as connection:
                row = connection.execute(
                    select(*self._state_columns).where(User.id == user_id)
                ).first()
        except SQLAlchemyError as error:
            raise self._fail("Account state lookup", error) from error
        return _state_from_row(row) if row is not None else None
