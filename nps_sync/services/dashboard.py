"""
Dashboard service for NPS Sync.

This module wires storage, cache, filter engine, record store and sync
engine into one explicitly constructed service. Each instance owns its own
state; nothing is shared through module globals.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Union

from nps_sync.core.clock import Clock, SystemClock
from nps_sync.core.config import settings
from nps_sync.core.logging import logger
from nps_sync.models.feedback import FeedbackRecord, FilterCriteria, Period, Role, View
from nps_sync.services.filter_engine import FilterEngine
from nps_sync.services.nps_client import FeedbackSource, NpsApiClient
from nps_sync.services.persistence_cache import PersistenceCache
from nps_sync.services.progress import ProgressObserver, ProgressTracker
from nps_sync.services.record_store import RecordStore
from nps_sync.services.storage import KeyValueStorage, SqlStorage
from nps_sync.services.sync_engine import SyncEngine, SyncOutcome


class NpsDashboard:
    """
    Facade over the sync, cache, filter and analytics components.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        source: Optional[FeedbackSource] = None,
        progress: Optional[ProgressObserver] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Build the service graph.

        Args:
            storage: Durable storage, SQLite at ``settings.STORAGE_URL`` by default.
            source: Remote data source, the 3C Plus API client by default.
            progress: Progress observer, a ProgressTracker by default.
            clock: Clock shared by every component.
        """
        self.clock = clock or SystemClock()
        self.storage = storage if storage is not None else SqlStorage(settings.STORAGE_URL)
        self.source = source or NpsApiClient()
        self.progress = progress or ProgressTracker()
        self.cache = PersistenceCache(self.storage, clock=self.clock)
        self.filter_engine = FilterEngine(self.cache, clock=self.clock)
        self.store = RecordStore(self.cache, self.filter_engine)
        self.sync = SyncEngine(
            self.store,
            self.cache,
            self.source,
            progress=self.progress,
            clock=self.clock,
        )

    async def start(self) -> SyncOutcome:
        """Load data for the session and schedule the periodic refresh."""
        outcome = await self.sync.initialize()
        logger.info(f"Session started ({outcome.value}): {self.store.total_count()} records")
        return outcome

    async def refresh(self) -> int:
        """Fetch and merge records created since the last fetch."""
        return await self.sync.refresh()

    def set_filters(
        self,
        period: Union[Period, str] = Period.ALL,
        roles: Iterable[Union[Role, str]] = (),
        scores: Iterable[int] = (),
        custom_start: Optional[Union[datetime, date]] = None,
        custom_end: Optional[Union[datetime, date]] = None,
    ) -> int:
        """
        Apply new filter criteria.

        Returns:
            Size of the filtered view.
        """
        criteria = FilterCriteria(
            period=period,
            roles=frozenset(Role(role) for role in roles),
            scores=frozenset(scores),
            custom_start=custom_start,
            custom_end=custom_end,
        )
        return len(self.store.apply_filters(criteria))

    def add_records(self, records: Iterable[Union[FeedbackRecord, Dict[str, Any]]]) -> int:
        """
        Insert records by hand.

        Dicts are validated as FeedbackRecord fields; a dict without a
        ``uid`` gets a random one.

        Returns:
            Number of records inserted.
        """
        prepared = [
            record if isinstance(record, FeedbackRecord) else FeedbackRecord.model_validate(record)
            for record in records
        ]
        return self.store.insert_all(prepared)

    def clear_all(self) -> None:
        """Drop all records, purge the cache and reset the filters."""
        self.sync.cancel_background()
        self.store.clear()

    def summary(self, view: View = View.FILTERED) -> Dict[str, Any]:
        """
        Aggregates of a view for display.

        Returns:
            Counts, NPS overall and per role, and the promoter breakdown.
        """
        return {
            "total": self.store.total_count(),
            "filtered": self.store.filtered_count(),
            "nps": self.store.nps_score(view),
            "nps_by_role": {
                role.value: self.store.nps_score_by_role(role, view) for role in Role
            },
            "breakdown": self.store.nps_breakdown(view),
            "last_fetch_date": (
                self.store.last_fetch_date.isoformat() if self.store.last_fetch_date else None
            ),
            "period": self.store.criteria.period.value,
        }

    async def close(self) -> None:
        """Stop background work and release resources."""
        await self.sync.close()
        if isinstance(self.storage, SqlStorage):
            self.storage.close()
