"""Background sweep of expired performance samples and stale timers."""

import asyncio
import logging
from typing import Optional

from loftwatch.core.performance import ReservationPerformanceMonitor

logger = logging.getLogger(__name__)


async def sweep_performance_metrics(
    monitor: ReservationPerformanceMonitor, interval_seconds: float
) -> None:
    """Background task evicting old samples and stale timers."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            samples, timers = monitor.cleanup_old_metrics()
            if samples or timers:
                logger.info(
                    "Performance sweep completed",
                    extra={"samples_removed": samples, "timers_removed": timers},
                )
        except Exception as e:
            logger.error(f"Performance sweep failed: {e}")


def start_sweeper_task(
    monitor: ReservationPerformanceMonitor, interval_seconds: float
) -> "asyncio.Task[None]":
    """Start background sweep task."""
    task = asyncio.create_task(sweep_performance_metrics(monitor, interval_seconds))
    logger.info(
        f"Performance sweep task started with {interval_seconds} second intervals"
    )
    return task


async def stop_sweeper_task(task: Optional["asyncio.Task[None]"]) -> None:
    """Cancel the sweep task and wait for it to finish."""
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
