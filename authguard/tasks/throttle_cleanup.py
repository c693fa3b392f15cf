"""THROTTLE CLEANUP TASKS"""

import logging

import rollbar

from authguard import celery

logger = logging.getLogger(__name__)


class ThrottleCleanupTask(celery.Task):
    """Base task for throttle record cleanup (runs inside the app context)"""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Throttle cleanup task failed: {exc}")
        rollbar.report_exc_info()


@celery.task(base=ThrottleCleanupTask, bind=True)
def purge_expired_throttles(self):
    """Celery task to delete throttle records whose window has lapsed"""
    logger.info("[TASK]: Starting purge of expired throttle records")

    try:
        from authguard import sweeper

        purged_count = sweeper.purge_expired()

        logger.info(f"[TASK]: Successfully purged {purged_count} throttle records")
        return {
            "status": "success",
            "purged_count": purged_count,
            "message": f"Purged {purged_count} expired throttle records",
        }
    except Exception as error:
        logger.error(f"[TASK]: Error purging expired throttle records: {str(error)}")
        raise self.retry(exc=error, countdown=60, max_retries=3) from error
