"""Database utility functions."""

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def engine_options(database_uri, timeout_seconds):
    """
    Build SQLAlchemy engine options that bound every store call.

    Throttle and lockout checks sit on the request path, so a slow or
    unreachable database must surface as an error quickly rather than stall
    the caller.

    Args:
        database_uri: SQLAlchemy database URI
        timeout_seconds: Upper bound for acquiring a connection and for a
                         single statement

    Returns:
        dict suitable for ``SQLALCHEMY_ENGINE_OPTIONS``
    """
    timeout_seconds = max(float(timeout_seconds), 0.1)

    if database_uri.startswith("sqlite"):
        # Busy timeout for the file lock taken by concurrent writers
        return {"connect_args": {"timeout": timeout_seconds}}

    options = {
        # Recycle connections after 1 hour to prevent stale connections
        "pool_recycle": 3600,
        # Enable connection pre-ping to test connections before use
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": timeout_seconds,
        "pool_reset_on_return": "commit",
    }
    if database_uri.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": max(int(timeout_seconds), 1),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    return options


def check_database_connection(db):
    """
    Test database connectivity with a simple query.

    Returns:
        bool: True if connection is working, False otherwise
    """
    try:
        result = db.session.execute(text("SELECT 1")).fetchone()
        return bool(result and result[0] == 1)
    except SQLAlchemyError as e:
        logger.warning(f"Database connection test failed: {e}")
        db.session.rollback()
        return False
