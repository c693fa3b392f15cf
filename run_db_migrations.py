#!/usr/bin/env python3
"""
Database migration script for the throttle and account tables
"""

import atexit
import logging
import os
import sys
import time

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def cleanup():
    logger.info("Script is exiting...")
    sys.stdout.flush()
    sys.stderr.flush()


# Register cleanup function
atexit.register(cleanup)


def wait_for_database(app, max_retries=30, delay_seconds=2):
    """Wait for database to be ready"""
    logger.info("Waiting for database to be ready...")

    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from authguard import db

    for attempt in range(1, max_retries + 1):
        try:
            with app.app_context(), db.engine.connect() as connection:
                connection.execute(text("SELECT 1")).fetchone()
            logger.info("Database is ready!")
            return True
        except SQLAlchemyError as e:
            logger.info(f"Database not ready (attempt {attempt}/{max_retries}): {e}")
            time.sleep(delay_seconds)

    raise RuntimeError("Database did not become ready within timeout period")


def run_migrations():
    """Run database migrations"""
    logger.info("Migration script started")

    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory
    from flask_migrate import upgrade

    from authguard import app, db, migrate

    wait_for_database(app)

    with app.app_context():
        config = migrate.get_config(directory=MIGRATIONS_DIR)
        heads = ScriptDirectory.from_config(config).get_heads()

        with db.engine.connect() as connection:
            current_rev = MigrationContext.configure(connection).get_current_revision()
        logger.info(f"Current database revision: {current_rev}, heads: {heads}")

        if current_rev in heads:
            logger.info("Database is already at head revision")
            return

        upgrade(directory=MIGRATIONS_DIR)
        logger.info("Database migrations completed successfully")


if __name__ == "__main__":
    try:
        run_migrations()
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        sys.exit(1)
