"""
Logging configuration for Page Improver.

``setup_logging`` wires the root logger once per process (CLI or worker).
Phases and Celery tasks log through the small wrappers below so every
line carries its phase or task id both in the message and in ``extra``.
"""

import logging
import logging.handlers
import os
from datetime import datetime
from typing import Dict, Any, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    'celery': logging.INFO,
    'litellm': logging.WARNING,
    'LiteLLM': logging.WARNING,
    'httpx': logging.WARNING,
    'aiohttp': logging.WARNING,
    'requests': logging.WARNING,
    'urllib3': logging.WARNING,
}


def setup_logging(config: Union[Dict[str, Any], Any]):
    """
    Route page improver logs to the console and, when LOG_FILE is set,
    to a rotating file.

    Args:
        config: Config object or a plain dict with LOG_* keys
    """
    settings = config if isinstance(config, dict) else vars(config)
    level_name = str(settings.get('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler()]

    log_file = settings.get('LOG_FILE', 'logs/page-improver.log')
    if log_file:
        os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=settings.get('LOG_MAX_BYTES', 10 * 1024 * 1024),
            backupCount=settings.get('LOG_BACKUP_COUNT', 5),
        ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    configure_loggers()


def configure_loggers():
    """Cap chatty library loggers so phase output stays readable."""
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


class _ContextLogger:
    """Base for loggers that attach keyword context as ``extra``."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _emit(self, level: int, message: str, **fields):
        fields.setdefault('logged_at', datetime.utcnow().isoformat())
        self.logger.log(level, message, extra=fields)


class PhaseLogger(_ContextLogger):
    """Logger for pipeline phases; messages read as ``[phase] message``."""

    def __init__(self, name: str = 'page_improver.phase'):
        super().__init__(name)

    def log(self, phase: str, message: str, **fields):
        self._emit(logging.INFO, f"[{phase}] {message}", phase=phase, **fields)

    def warn(self, phase: str, message: str, **fields):
        self._emit(logging.WARNING, f"[{phase}] {message}", phase=phase, **fields)

    def error(self, phase: str, message: str, **fields):
        self._emit(logging.ERROR, f"[{phase}] {message}", phase=phase, **fields)

    def log_phase_complete(self, phase: str, duration: float, **fields):
        self._emit(
            logging.INFO,
            f"[{phase}] Phase complete ({duration:.1f}s)",
            phase=phase,
            duration=duration,
            **fields
        )


phase_logger = PhaseLogger()


class TaskLogger(_ContextLogger):
    """Lifecycle logging for queued page improvements."""

    def __init__(self, name: str = 'page_improver.task'):
        super().__init__(name)

    def log_task_start(self, task_id: str, task_name: str, **fields):
        self._emit(logging.INFO, f"{task_name} [{task_id}] started",
                   task_id=task_id, task_name=task_name, **fields)

    def log_task_progress(self, task_id: str, progress: int, message: str, **fields):
        self._emit(logging.INFO, f"[{task_id}] {progress}% {message}",
                   task_id=task_id, progress=progress, status_message=message, **fields)

    def log_task_complete(self, task_id: str, task_name: str, duration: float, **fields):
        self._emit(logging.INFO, f"{task_name} [{task_id}] finished in {duration:.1f}s",
                   task_id=task_id, task_name=task_name, duration=duration, **fields)

    def log_task_error(self, task_id: str, task_name: str, error: str, **fields):
        self._emit(logging.ERROR, f"{task_name} [{task_id}] failed: {error}",
                   task_id=task_id, task_name=task_name, error=error, **fields)
