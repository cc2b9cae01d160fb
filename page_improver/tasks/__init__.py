"""
Background execution for Page Improver.
"""

from .celery_app import celery_app
from .improve import improve_page_task, queue_batch, get_task_status

__all__ = ['celery_app', 'improve_page_task', 'queue_batch', 'get_task_status']
