"""
Sync engine for NPS Sync.

This module decides between serving the cache, fetching incrementally and
running a full historical backfill, and keeps a periodic refresh going for
the lifetime of the session.
"""

import asyncio
import enum
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import schedule

from nps_sync.core.clock import Clock, SystemClock
from nps_sync.core.config import settings
from nps_sync.core.errors import MalformedDataError, NpsSyncError
from nps_sync.core.logging import logger
from nps_sync.models.feedback import FeedbackRecord
from nps_sync.services.nps_client import FeedbackSource
from nps_sync.services.persistence_cache import PersistenceCache
from nps_sync.services.progress import NullProgress, ProgressObserver
from nps_sync.services.record_store import RecordStore
from nps_sync.utils.helpers import subtract_months


class SyncOutcome(str, enum.Enum):
    """How a session start was served."""
    CACHED = "cached"
    REFRESHING = "refreshing"
    BACKFILLED = "backfilled"
    FAILED = "failed"


def normalize_rows(rows: Iterable[Dict[str, Any]]) -> List[FeedbackRecord]:
    """
    Normalize raw API rows, dropping the malformed ones.

    Args:
        rows: Raw rows from the data source.

    Returns:
        Normalized records in input order.
    """
    records = []
    dropped = 0
    for row in rows:
        try:
            records.append(FeedbackRecord.from_raw(row))
        except (MalformedDataError, ValueError) as e:
            dropped += 1
            logger.debug(f"Dropping malformed row: {e}")

    if dropped:
        logger.warning(f"Dropped {dropped} malformed rows")
    return records


class SyncEngine:
    """
    Cache-first loader for the record store.

    Backfill windows are fetched one after another, never concurrently, so
    progress only moves forward and the upstream API sees one request at a
    time.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: PersistenceCache,
        source: FeedbackSource,
        progress: Optional[ProgressObserver] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[schedule.Scheduler] = None,
        refresh_interval_hours: int = settings.REFRESH_INTERVAL_HOURS,
        windows: int = settings.BACKFILL_WINDOWS,
        window_months: int = settings.WINDOW_MONTHS,
        page_size: int = settings.PAGE_SIZE,
    ):
        """
        Initialize the sync engine.

        Args:
            store: Record store to fill.
            cache: Persistence cache read at start.
            source: Remote data source.
            progress: Observer of backfill progress.
            clock: Clock for fetch windows.
            scheduler: Scheduler for the periodic refresh, a private one by default.
            refresh_interval_hours: Hours between periodic refreshes.
            windows: Number of backfill windows.
            window_months: Calendar months per backfill window.
            page_size: Rows requested per window.
        """
        self.store = store
        self.cache = cache
        self.source = source
        self.progress = progress or NullProgress()
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or schedule.Scheduler()
        self.refresh_interval_hours = refresh_interval_hours
        self.windows = windows
        self.window_months = window_months
        self.page_size = page_size
        self.refresh_job: Optional[schedule.Job] = None
        self.background_task: Optional[asyncio.Task] = None
        self.refreshing = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def initialize(self) -> SyncOutcome:
        """
        Load the session's data, cache first.

        Returns:
            How the start was served.
        """
        self.store.filter_engine.restore()
        entry = self.cache.load()

        if entry is None or not entry.records:
            logger.info("No cache found, running full backfill")
            count = await self.backfill()
            outcome = SyncOutcome.FAILED if count is None else SyncOutcome.BACKFILLED

        else:
            self.store.load(entry)
            if self.cache.is_expired(entry.last_fetch_date):
                logger.info(f"Cache from {entry.last_fetch_date} is stale, refreshing in background")
                self.background_task = asyncio.create_task(self.refresh())
                outcome = SyncOutcome.REFRESHING
            else:
                logger.info(f"Serving {len(entry.records)} cached records")
                outcome = SyncOutcome.CACHED

        self.schedule_refresh()
        return outcome

    def backfill_windows(self, now: datetime) -> List[tuple]:
        """
        Backfill windows, most recent first.

        Returns:
            List of (start, end) pairs covering ``windows * window_months``
            months back from ``now``.
        """
        return [
            (
                subtract_months(now, (index + 1) * self.window_months),
                subtract_months(now, index * self.window_months),
            )
            for index in range(self.windows)
        ]

    async def backfill(self) -> Optional[int]:
        """
        Fetch the full history and replace the record set.

        The progress observer is always finished, even on failure. Existing
        data is left untouched when a window fails.

        Returns:
            Size of the new record set, or None if the backfill failed.
        """
        self.progress.start("Loading NPS history...")
        now = self.clock.now()
        rows: List[Dict[str, Any]] = []

        try:
            for index, (start, end) in enumerate(self.backfill_windows(now)):
                rows.extend(await self.source.fetch_feedback(start, end, self.page_size, 1))
                self.progress.update(
                    round((index + 1) * 100 / self.windows),
                    f"Loaded {index + 1} of {self.windows} periods",
                )

            records = normalize_rows(rows)
            count = self.store.replace_all(records, now)
            logger.info(f"Backfill complete: {count} records")
            return count

        except NpsSyncError as e:
            logger.error(f"Backfill failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error during backfill: {e}", exc_info=True)
            return None
        finally:
            self.progress.finish()

    async def refresh(self) -> int:
        """
        Fetch the records created since the last fetch and merge them.

        Without a known last fetch time, looks back the full backfill span.
        Errors are logged and leave the store untouched.
        Rows fetched across a clear or a full replace are discarded.

        Returns:
            Number of new records inserted.
        """
        if self.refreshing:
            logger.warning("Refresh already running, skipping")
            return 0

        self.refreshing = True
        try:
            now = self.clock.now()
            generation = self.store.generation
            since = self.store.last_fetch_date or subtract_months(
                now, self.windows * self.window_months
            )
            rows = await self.source.fetch_feedback(since, now, self.page_size, 1)

            if self.store.generation != generation:
                logger.warning(
                    f"Record set was replaced or cleared during refresh, discarding {len(rows)} rows"
                )
                return 0

            inserted = self.store.insert_all(normalize_rows(rows), fetched_at=now)
            logger.info(f"Refresh complete: {inserted} new records")
            return inserted

        except NpsSyncError as e:
            logger.error(f"Refresh failed: {e}")
            return 0
        except Exception as e:
            logger.error(f"Unexpected error during refresh: {e}", exc_info=True)
            return 0
        finally:
            self.refreshing = False

    def schedule_refresh(self) -> schedule.Job:
        """
        Schedule the periodic refresh, replacing any earlier schedule.

        Returns:
            The scheduled job.
        """
        self.cancel_refresh()
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        logger.info(f"Scheduling refresh every {self.refresh_interval_hours} hours")
        self.refresh_job = self.scheduler.every(self.refresh_interval_hours).hours.do(
            self._start_background_refresh
        )
        return self.refresh_job

    def cancel_refresh(self) -> None:
        """Cancel the periodic refresh if one is scheduled."""
        if self.refresh_job is not None:
            self.scheduler.cancel_job(self.refresh_job)
            self.refresh_job = None

    def run_pending(self) -> None:
        """Run scheduled jobs that are due."""
        self.scheduler.run_pending()

    def _start_background_refresh(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("No event loop available for scheduled refresh")
                return
        self.background_task = loop.create_task(self.refresh())

    def cancel_background(self) -> bool:
        """
        Cancel an in-flight background refresh.

        Returns:
            True if a running refresh was cancelled.
        """
        if self.background_task is None or self.background_task.done():
            return False
        logger.info("Cancelling background refresh")
        self.background_task.cancel()
        return True

    async def wait_background(self) -> None:
        """Wait for an in-flight background refresh, if any."""
        if self.background_task is not None:
            try:
                await self.background_task
            except asyncio.CancelledError:
                if not self.background_task.cancelled():
                    raise

    async def run(self, stop_event: asyncio.Event, poll_interval: float = 1.0) -> None:
        """
        Drive the scheduler until ``stop_event`` is set.

        Args:
            stop_event: Event ending the loop.
            poll_interval: Seconds between scheduler checks.
        """
        while not stop_event.is_set():
            self.run_pending()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        """Stop the periodic refresh and release the data source."""
        self.cancel_refresh()
        self.cancel_background()
        await self.wait_background()
        await self.source.close()
