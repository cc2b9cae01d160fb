"""
Celery application for queued page improvements.

Each improvement is one long-running task on the ``improve`` queue; a
worker takes a single task at a time since a run can hold the model
service for the better part of an hour.
"""

from celery import Celery

from ..utils.config import Config, get_config

IMPROVE_QUEUE = 'improve'


def make_celery(config: Config) -> Celery:
    """Build the Celery app from a Config."""
    app = Celery('page_improver')
    app.conf.update(
        broker_url=config.CELERY_BROKER_URL,
        result_backend=config.CELERY_RESULT_BACKEND,
        task_serializer='json',
        result_serializer='json',
        accept_content=['json'],
        enable_utc=True,
        task_track_started=True,
        task_time_limit=config.CELERY_TASK_TIME_LIMIT,
        task_soft_time_limit=config.CELERY_TASK_SOFT_TIME_LIMIT,
        worker_prefetch_multiplier=config.CELERY_WORKER_PREFETCH_MULTIPLIER,
        worker_max_tasks_per_child=config.CELERY_WORKER_MAX_TASKS_PER_CHILD,
        task_default_queue=IMPROVE_QUEUE,
        task_routes={'page_improver.tasks.improve.*': {'queue': IMPROVE_QUEUE}},
    )
    return app


config = get_config()
celery_app = make_celery(config)
