import os

if os.getenv("ENVIRONMENT") == "prod":
    SETTINGS = {
        "logging": {"level": "INFO"},
        "CELERY_BROKER_URL": "redis://"
        + os.getenv("REDIS_PORT_6379_TCP_ADDR", "localhost")
        + ":"
        + os.getenv("REDIS_PORT_6379_TCP_PORT", "6379"),
        "CELERY_RESULT_BACKEND": "redis://"
        + os.getenv("REDIS_PORT_6379_TCP_ADDR", "localhost")
        + ":"
        + os.getenv("REDIS_PORT_6379_TCP_PORT", "6379"),
    }
else:
    SETTINGS = {}
