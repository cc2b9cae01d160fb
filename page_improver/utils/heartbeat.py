"""
Progress heartbeats for long-running calls.

A heartbeat logs ``[label] ... still running (Ns)`` on a fixed interval
until stopped, so a slow model call or phase never looks hung.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional


logger = logging.getLogger(__name__)


def start_heartbeat(label: str, interval: float = 30.0) -> Callable[[], None]:
    """
    Start logging a heartbeat from a background task.

    Must be called from inside a running event loop.

    Args:
        label: Phase or call label shown in the log line
        interval: Seconds between log lines

    Returns:
        Idempotent stop function
    """
    started = time.monotonic()

    async def _beat():
        while True:
            await asyncio.sleep(interval)
            elapsed = int(time.monotonic() - started)
            logger.info(f"[{label}] ... still running ({elapsed}s)")

    task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(_beat())

    def stop():
        nonlocal task
        if task is not None:
            task.cancel()
            task = None

    return stop


@asynccontextmanager
async def heartbeat(label: str, interval: float = 30.0):
    """Async context-manager form of start_heartbeat."""
    stop = start_heartbeat(label, interval)
    try:
        yield stop
    finally:
        stop()
