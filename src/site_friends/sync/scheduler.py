"""Periodic feed refresh.

Runs :meth:`FeedSyncEngine.sync_all` on an APScheduler interval job. Only one
batch runs at a time; a tick that fires while a batch is still running is
skipped. Stopping the scheduler cancels the batch in flight.
"""

import asyncio
import contextlib
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from site_friends.sync.engine import BatchSyncReport, FeedSyncEngine


logger = get_logger(__name__)

REFRESH_JOB_ID = "friends_feed_refresh"


class FeedRefreshScheduler:
    """Background scheduler for the hourly feed refresh."""

    def __init__(
        self,
        engine: FeedSyncEngine,
        interval_hours: float = 1.0,
        shutdown_timeout: float = 10.0,
        run_on_start: bool = False,
    ):
        """Initialize the refresh scheduler.

        Args:
            engine: Sync engine whose batch run is scheduled
            interval_hours: Hours between batch runs
            shutdown_timeout: Seconds to wait for a running batch on stop
                before cancelling it
            run_on_start: Run a batch immediately after starting
        """
        self.engine = engine
        self.interval_hours = interval_hours
        self.shutdown_timeout = shutdown_timeout
        self.run_on_start = run_on_start
        self._scheduler: Any = None  # AsyncIOScheduler from apscheduler
        self._batch_task: asyncio.Task[BatchSyncReport] | None = None
        self._startup_run: asyncio.Task[BatchSyncReport | None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def batch_in_progress(self) -> bool:
        return self._batch_task is not None and not self._batch_task.done()

    async def start(self) -> None:
        """Start the refresh scheduler."""
        if self._running:
            logger.warning("feed_refresh_scheduler_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_batch,
            "interval",
            hours=self.interval_hours,
            id=REFRESH_JOB_ID,
            name="Friends Feed Refresh",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "feed_refresh_scheduler_started", interval_hours=self.interval_hours
        )

        if self.run_on_start:
            self._startup_run = asyncio.create_task(self.run_batch())

    async def stop(self) -> None:
        """Stop the scheduler and cancel any batch still running."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        startup_run, self._startup_run = self._startup_run, None
        if startup_run is not None and self._batch_task is None:
            # Scheduled but the batch has not begun
            startup_run.cancel()

        task = self._batch_task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), self.shutdown_timeout)
            except TimeoutError:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                logger.warning("feed_refresh_batch_cancelled")

        self._batch_task = None
        self._running = False
        logger.info("feed_refresh_scheduler_stopped")

    async def run_batch(self) -> BatchSyncReport | None:
        """Run one batch unless another one is still in progress."""
        if self.batch_in_progress:
            logger.info("feed_refresh_skipped", reason="batch_in_progress")
            return None

        self._batch_task = asyncio.create_task(self.engine.sync_all())
        return await self._batch_task
