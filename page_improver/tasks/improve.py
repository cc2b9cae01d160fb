"""
Improvement tasks for Page Improver.

Each task runs one full pipeline for one page, so a batch of pages can be
queued and worked off by Celery workers.
"""

import asyncio
import logging
import time
from typing import Dict, Any, List, Optional

from .celery_app import celery_app
from ..core.models.errors import PhaseError
from ..core.models.pipeline import PipelineOptions
from ..pipeline.context import PipelineContext
from ..pipeline.controller import run_pipeline
from ..utils.config import get_config
from ..utils.logging import TaskLogger

logger = logging.getLogger(__name__)
task_logger = TaskLogger()


def run_improvement(page_id: str, options: PipelineOptions, ctx: Optional[PipelineContext] = None) -> Dict[str, Any]:
    """Run the pipeline for one page and return its JSON summary."""
    ctx = ctx or PipelineContext.from_config(get_config())
    result = asyncio.run(run_pipeline(ctx, page_id, options))
    return result.summary()


@celery_app.task(bind=True, name='page_improver.tasks.improve.improve_page_task')
def improve_page_task(self, page_id: str, options: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Improve one page.

    Args:
        page_id: Page id
        options: PipelineOptions fields

    Returns:
        Pipeline run summary
    """
    task_id = self.request.id
    started = time.monotonic()

    try:
        task_logger.log_task_start(task_id, 'improve_page_task', page_id=page_id)

        pipeline_options = PipelineOptions(**(options or {}))

        self.update_state(
            state='PROGRESS',
            meta={
                'current_step': 'running',
                'progress_percent': 10,
                'message': f'Improving {page_id} ({pipeline_options.tier})...',
                'page_id': page_id
            }
        )
        task_logger.log_task_progress(task_id, 10, f'Improving {page_id}')

        summary = run_improvement(page_id, pipeline_options)
        result = {
            'status': 'completed',
            'task_id': task_id,
            **summary
        }

        task_logger.log_task_complete(task_id, 'improve_page_task', time.monotonic() - started)
        return result

    except Exception as e:
        error_msg = f"Improvement of {page_id} failed: {str(e)}"
        logger.error(error_msg, exc_info=True)

        task_logger.log_task_error(task_id, 'improve_page_task', error_msg)

        self.update_state(
            state='FAILURE',
            meta={
                'current_step': 'error',
                'progress_percent': 0,
                'message': error_msg,
                'page_id': page_id,
                'error': error_msg
            }
        )

        raise PhaseError(error_msg, phase='pipeline')


def queue_batch(page_ids: List[str], options: Dict[str, Any] = None) -> List[str]:
    """Queue one task per page. Returns the task ids."""
    return [improve_page_task.delay(page_id, options or {}).id for page_id in page_ids]


def get_task_status(task_id: str) -> Optional[Dict[str, Any]]:
    """
    Get task status.

    Args:
        task_id: Task ID

    Returns:
        Task status or None if not found
    """
    try:
        task = celery_app.AsyncResult(task_id)

        if not task:
            return None

        return {
            'status': task.status,
            'ready': task.ready(),
            'result': task.result if task.ready() and task.successful() else None,
            'info': task.info if not task.ready() else None
        }

    except Exception as e:
        logger.error(f"Failed to get task status: {str(e)}")
        return None
