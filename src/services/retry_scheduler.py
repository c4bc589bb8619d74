"""
Background driver for the calendar retry queue.

Runs as a background task so queued calendar operations are replayed even
when no new bookings arrive.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from src.services.calendar_sync import CalendarSyncService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


class RetryScheduler:
    """Calls ``process_retries`` on the sync service at a fixed interval."""

    def __init__(
        self,
        service: CalendarSyncService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            service: Sync service whose retry queue is drained
            interval_seconds: Seconds between drains
            sleep: Awaitable sleep (tests pass a fake)
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.interval_seconds = interval_seconds
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """
        Drain the retry queue once, waiting for every attempt to finish.

        Returns:
            True if the drain completed, False if it raised (logged)
        """
        self.runs += 1
        try:
            await self.service.process_retries(wait=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"Error processing calendar retries: {e}", exc_info=True)
            return False
        return True

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        """Start the background loop. Must be called with a running event loop."""
        if self.is_running:
            logger.debug("Retry scheduler already running")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="calendar-retry-scheduler"
        )
        logger.info(f"Calendar retry scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Calendar retry scheduler stopped")

    def get_stats(self) -> dict:
        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "failures": self.failures,
        }
