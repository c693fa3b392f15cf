from celery import Celery
from celery.signals import task_failure
import rollbar


def celery_base_data_hook(request, data):
    data["framework"] = "celery"


rollbar.BASE_DATA_HOOK = celery_base_data_hook


@task_failure.connect
def handle_task_failure(**kw):
    rollbar.report_exc_info(extra_data=kw)


def make_celery(app, sweep_interval_seconds=600.0):
    celery = Celery(
        app.import_name,
        backend=app.config["result_backend"],
        broker=app.config["broker_url"],
    )
    celery.conf.update(app.config)

    celery.conf.task_routes = {
        "authguard.tasks.throttle_cleanup.purge_expired_throttles": {
            "queue": "default"
        },
    }

    # Configure periodic tasks
    celery.conf.beat_schedule = {
        "purge-expired-throttles": {
            "task": "authguard.tasks.throttle_cleanup.purge_expired_throttles",
            "schedule": float(sweep_interval_seconds),
            "options": {"queue": "default"},
        },
    }
    celery.conf.timezone = "UTC"

    task_base = celery.Task

    class ContextTask(task_base):
        abstract = True

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return task_base.__call__(self, *args, **kwargs)

    celery.Task = ContextTask
    return celery
