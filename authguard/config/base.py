import logging
import os

logger = logging.getLogger(__name__)


def _redis_url():
    return os.getenv("REDIS_URL") or (
        "redis://"
        + (os.getenv("REDIS_PORT_6379_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("REDIS_PORT_6379_TCP_PORT") or "6379")
    )


def _policy(action, default):
    """Limit string for an action, e.g. "5 per 15 minutes"."""
    return os.getenv(f"THROTTLE_{action}_LIMIT") or default


SETTINGS = {
    "logging": {"level": os.getenv("LOG_LEVEL", "INFO")},
    "service": {"port": 3000},
    "environment": {
        "ROLLBAR_SERVER_TOKEN": os.getenv("ROLLBAR_SERVER_TOKEN"),
    },
    "SQLALCHEMY_DATABASE_URI": os.getenv("DATABASE_URL")
    or (
        "postgresql://"
        + (os.getenv("DATABASE_ENV_POSTGRES_USER") or "postgres")
        + ":"
        + (os.getenv("DATABASE_ENV_POSTGRES_PASSWORD") or "postgres")
        + "@"
        + (os.getenv("DATABASE_PORT_5432_TCP_ADDR") or "localhost")
        + ":"
        + (os.getenv("DATABASE_PORT_5432_TCP_PORT") or "5432")
        + "/"
        + (os.getenv("DATABASE_ENV_POSTGRES_DB") or "postgres")
    ),
    "SECRET_KEY": os.getenv("SECRET_KEY"),
    "CELERY_BROKER_URL": _redis_url(),
    "CELERY_RESULT_BACKEND": _redis_url(),
    # Celery also expects lowercase versions
    "broker_url": _redis_url(),
    "result_backend": _redis_url(),
    # Request throttling for abuse-prone operations
    "THROTTLING": {
        # When disabled every check is allowed without touching the store
        "ENABLED": os.getenv("THROTTLING_ENABLED", "true").lower() == "true",
        # Allow requests when the store is unreachable (availability over
        # strictness). Set to false to deny instead.
        "FAIL_OPEN": os.getenv("THROTTLING_FAIL_OPEN", "true").lower() == "true",
        "STORE_TIMEOUT_SECONDS": float(os.getenv("THROTTLE_STORE_TIMEOUT", "2")),
        "SWEEP_INTERVAL_SECONDS": float(
            os.getenv("THROTTLE_SWEEP_INTERVAL", "600")
        ),  # Every 10 minutes
        "POLICIES": {
            "OTP_REQUEST": _policy("OTP_REQUEST", "1 per minute"),
            "LOGIN_ATTEMPT": _policy("LOGIN_ATTEMPT", "5 per 15 minutes"),
            "PASSWORD_RESET": _policy("PASSWORD_RESET", "3 per hour"),
            "EMAIL_VERIFICATION": _policy("EMAIL_VERIFICATION", "2 per 5 minutes"),
        },
    },
    # Account lockout after consecutive failed logins
    "LOCKOUT": {
        "MAX_FAILED_ATTEMPTS": int(os.getenv("LOCKOUT_MAX_FAILED_ATTEMPTS", "5")),
        "LOCK_MINUTES": int(os.getenv("LOCKOUT_LOCK_MINUTES", "30")),
    },
}

if not os.getenv("ROLLBAR_SERVER_TOKEN"):
    logger.warning(
        "ROLLBAR_SERVER_TOKEN is not set. Security events will only be logged "
        "locally."
    )
