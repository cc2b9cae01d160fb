"""
Celery worker runner for Page Improver.

Starts a worker that processes the 'improve' queue.
"""

import logging
import sys

from .celery_app import IMPROVE_QUEUE, celery_app, config
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Start the Celery worker."""
    setup_logging(config)
    try:
        logger.info("Starting Page Improver Celery worker...")
        logger.info(f"Worker will process tasks from the '{IMPROVE_QUEUE}' queue")

        worker = celery_app.Worker(
            queues=[IMPROVE_QUEUE],
            concurrency=2,
            loglevel=config.LOG_LEVEL.lower(),
            hostname='page-improver-worker@%h'
        )
        worker.start()

    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Worker failed to start: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
