"""TASKS MODULE"""

# Import tasks to ensure they are registered with Celery
from authguard.tasks import throttle_cleanup  # noqa: F401
