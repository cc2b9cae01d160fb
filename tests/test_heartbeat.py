"""
Tests for progress heartbeats.
"""

import asyncio
import logging

from page_improver.utils.heartbeat import heartbeat, start_heartbeat


async def test_heartbeat_logs_while_running(caplog):
    """Test that a heartbeat line is logged on each interval."""
    caplog.set_level(logging.INFO, logger="page_improver.utils.heartbeat")

    async with heartbeat("improve", interval=0.01):
        await asyncio.sleep(0.05)

    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("[improve] ... still running") for m in messages)


async def test_heartbeat_stops(caplog):
    """Test that no lines are logged after stop, and stop is idempotent."""
    caplog.set_level(logging.INFO, logger="page_improver.utils.heartbeat")

    stop = start_heartbeat("research", interval=0.01)
    stop()
    stop()
    await asyncio.sleep(0.03)

    assert not [r for r in caplog.records if "still running" in r.getMessage()]


async def test_heartbeat_stops_on_error(caplog):
    """Test that the heartbeat is cancelled when the body raises."""
    caplog.set_level(logging.INFO, logger="page_improver.utils.heartbeat")

    try:
        async with heartbeat("review", interval=0.01):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    count = len(caplog.records)
    await asyncio.sleep(0.03)

    assert len(caplog.records) == count
