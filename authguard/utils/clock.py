"""Time helpers.

Timestamps are stored as naive UTC datetimes so that values round-trip
unchanged through SQLite and PostgreSQL ``TIMESTAMP WITHOUT TIME ZONE``
columns.
"""

import datetime


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime.datetime) -> datetime.datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(datetime.UTC).replace(tzinfo=None)
