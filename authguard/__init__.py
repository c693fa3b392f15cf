"""The AUTHGUARD MODULE

Throttling and account lockout for abuse-prone authentication operations.
Importing the package builds the Flask host application, the database handle,
the Celery app and one instance of each service bound to the SQL stores.
"""

import datetime
import logging
import os
import sys

from flask import Flask, got_request_exception, jsonify
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
import rollbar
import rollbar.contrib.flask

from authguard.celery import make_celery
from authguard.config import SETTINGS
from authguard.utils.database import check_database_connection, engine_options

# Flask App
app = Flask(__name__)

logger = logging.getLogger()
log_level = SETTINGS.get("logging", {}).get("level", "INFO")
logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

# Ensure all unhandled exceptions are logged, and reported to rollbar
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler = logging.StreamHandler(stream=sys.stdout)
handler.setLevel(logging.INFO)
handler.setFormatter(formatter)
logger.addHandler(handler)

rollbar.init(os.getenv("ROLLBAR_SERVER_TOKEN"), os.getenv("ENVIRONMENT"))
with app.app_context():
    got_request_exception.connect(rollbar.contrib.flask.report_exception, app)

throttling_settings = SETTINGS.get("THROTTLING", {})
lockout_settings = SETTINGS.get("LOCKOUT", {})

app.config["SQLALCHEMY_DATABASE_URI"] = SETTINGS.get("SQLALCHEMY_DATABASE_URI")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(
    app.config["SQLALCHEMY_DATABASE_URI"],
    throttling_settings.get("STORE_TIMEOUT_SECONDS", 2),
)
app.config["SECRET_KEY"] = SETTINGS.get("SECRET_KEY")
app.config["TESTING"] = SETTINGS.get("TESTING", False)
app.config["THROTTLING"] = throttling_settings
app.config["LOCKOUT"] = lockout_settings
app.config["broker_url"] = SETTINGS.get("CELERY_BROKER_URL")
app.config["result_backend"] = SETTINGS.get("CELERY_RESULT_BACKEND")

# Database
db = SQLAlchemy(app)
migrate = Migrate(app, db)

# Celery
celery = make_celery(
    app, sweep_interval_seconds=throttling_settings.get("SWEEP_INTERVAL_SECONDS", 600)
)

# DB has to be ready!
from authguard import models  # noqa: E402,F401
from authguard.policies import load_policies  # noqa: E402
from authguard.services import (  # noqa: E402
    LockoutTracker,
    LoginGuard,
    Sweeper,
    ThrottleLedger,
)
from authguard.stores.sql import SQLAccountStore, SQLThrottleStore  # noqa: E402

throttle_store = SQLThrottleStore(db)
account_store = SQLAccountStore(db)

throttle_ledger = ThrottleLedger(
    throttle_store,
    policies=load_policies(throttling_settings.get("POLICIES")),
    fail_open=throttling_settings.get("FAIL_OPEN", True),
    enabled=throttling_settings.get("ENABLED", True),
)
lockout_tracker = LockoutTracker(
    account_store,
    max_failed_attempts=lockout_settings.get("MAX_FAILED_ATTEMPTS", 5),
    lock_duration=datetime.timedelta(minutes=lockout_settings.get("LOCK_MINUTES", 30)),
)
sweeper = Sweeper(throttle_store)
login_guard = LoginGuard(throttle_ledger, lockout_tracker)

# Import tasks to register them with Celery
from authguard import tasks  # noqa: E402,F401

logger.info(
    "[CONFIG]: Throttling %s (fail %s); lockout after %s failures for %s minutes",
    "enabled" if throttle_ledger.enabled else "disabled",
    "open" if throttle_ledger.fail_open else "closed",
    lockout_tracker.max_failed_attempts,
    lockout_settings.get("LOCK_MINUTES", 30),
)


@app.route("/api-health", methods=["GET"])
def health_check():
    """Simple health check endpoint reporting database status"""
    db_status = "healthy" if check_database_connection(db) else "unhealthy"

    # Return 200 even if database is unhealthy - throttling fails open, so the
    # service is still "up" while database issues are being resolved
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "database": db_status,
            "throttling": {
                "enabled": throttle_ledger.enabled,
                "fail_open": throttle_ledger.fail_open,
            },
        }
    ), 200
