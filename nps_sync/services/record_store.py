"""
Record store for NPS Sync.

This module holds the full record set and its filtered view, keeps both in
step with the persistence cache and the filter engine, and serves memoized
NPS aggregates.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple

from nps_sync.core.config import settings
from nps_sync.core.logging import logger
from nps_sync.models.feedback import CacheEntry, FeedbackRecord, FilterCriteria, Role, View
from nps_sync.services import analytics
from nps_sync.services.filter_engine import FilterEngine
from nps_sync.services.persistence_cache import PersistenceCache

Listener = Callable[[str], None]


class RecordStore:
    """
    In-memory record set with a filtered view and aggregate memoization.

    Every mutation bumps a version counter, clears the aggregate cache,
    recomputes the filtered view and notifies listeners. The generation
    counter only moves when the whole set is discarded (replace or clear);
    an incremental fetch started in an older generation must not be merged.
    """

    def __init__(
        self,
        cache: PersistenceCache,
        filter_engine: FilterEngine,
        cache_size: int = settings.AGGREGATE_CACHE_SIZE,
    ):
        """
        Initialize an empty store.

        Args:
            cache: Persistence cache written on every insert.
            filter_engine: Engine producing the filtered view.
            cache_size: Maximum number of memoized aggregates.
        """
        self.cache = cache
        self.filter_engine = filter_engine
        self.cache_size = cache_size
        self.version = 0
        self.generation = 0
        self.last_fetch_date: Optional[datetime] = None
        self._records: List[FeedbackRecord] = []
        self._uids: Set[str] = set()
        self._filtered: Tuple[FeedbackRecord, ...] = ()
        self._aggregates: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._listeners: List[Listener] = []

    # Listeners

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving the name of each mutation."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Record store listener failed on {event}: {e}")

    # Mutations

    def insert_all(self, records: Iterable[FeedbackRecord], fetched_at: Optional[datetime] = None) -> int:
        """
        Merge records into the full set, skipping uids already present.

        Accepted records are prepended in the order given. The merged set is
        persisted whenever something was accepted or a fetch time is given.

        Args:
            records: Incoming records.
            fetched_at: Time of the fetch that produced them, None for manual
                insertion (the stored last fetch time is kept).

        Returns:
            Number of records actually inserted.
        """
        accepted = self._dedupe(records, self._uids)

        if accepted:
            self._records = accepted + self._records
            self._uids.update(record.uid for record in accepted)

        if fetched_at is not None:
            self.last_fetch_date = fetched_at

        if accepted or fetched_at is not None:
            self.cache.save(self._records, fetched_at)

        if accepted:
            self._changed("inserted")

        logger.info(f"Inserted {len(accepted)} new records ({len(self._records)} total)")
        return len(accepted)

    def replace_all(self, records: Iterable[FeedbackRecord], fetched_at: datetime) -> int:
        """
        Replace the full set with a freshly fetched one.

        Args:
            records: Complete record set, duplicates dropped.
            fetched_at: Time of the fetch.

        Returns:
            Size of the new set.
        """
        self.generation += 1
        self._records = self._dedupe(records, set())
        self._uids = {record.uid for record in self._records}
        self.last_fetch_date = fetched_at
        self.cache.save(self._records, fetched_at)
        self._changed("replaced")
        logger.info(f"Replaced record set with {len(self._records)} records")
        return len(self._records)

    def load(self, entry: CacheEntry) -> int:
        """
        Install a cached snapshot without writing it back.

        Returns:
            Size of the loaded set.
        """
        self._records = self._dedupe(entry.records, set())
        self._uids = {record.uid for record in self._records}
        self.last_fetch_date = entry.last_fetch_date
        self._changed("loaded")
        return len(self._records)

    def apply_filters(self, criteria: Optional[FilterCriteria] = None) -> Tuple[FeedbackRecord, ...]:
        """
        Recompute the filtered view, activating ``criteria`` if given.

        Returns:
            The new filtered view.
        """
        self._filtered = self.filter_engine.apply(self._records, criteria)
        self._bump()
        self._notify("filtered")
        return self._filtered

    def clear(self) -> None:
        """Drop every record, purge the persisted cache and reset the filters."""
        self.generation += 1
        self._records = []
        self._uids = set()
        self._filtered = ()
        self.last_fetch_date = None
        self.cache.clear()
        self.filter_engine.reset()
        self._bump()
        self._notify("cleared")
        logger.info("Record store cleared")

    @staticmethod
    def _dedupe(records: Iterable[FeedbackRecord], seen: Set[str]) -> List[FeedbackRecord]:
        seen = set(seen)
        accepted = []
        for record in records:
            if record.uid in seen:
                continue
            seen.add(record.uid)
            accepted.append(record)
        return accepted

    def _bump(self) -> None:
        self.version += 1
        self._aggregates.clear()

    def _changed(self, event: str) -> None:
        self._filtered = self.filter_engine.apply(self._records)
        self._bump()
        self._notify(event)

    # Queries

    @property
    def criteria(self) -> FilterCriteria:
        return self.filter_engine.criteria

    def records(self, view: View = View.FULL) -> Tuple[FeedbackRecord, ...]:
        """Snapshot of a view, newest insertions first."""
        if view == View.FILTERED:
            return self._filtered
        return tuple(self._records)

    def total_count(self) -> int:
        return len(self._records)

    def filtered_count(self) -> int:
        return len(self._filtered)

    def signature(self, view: View) -> Tuple[int, int]:
        """Cheap cache key of a view: its size and the store version."""
        size = len(self._filtered) if view == View.FILTERED else len(self._records)
        return size, self.version

    def _memoized(self, name: str, view: View, args: Tuple, compute: Callable[[], Any]) -> Any:
        key = (name, view, args, self.signature(view))
        if key in self._aggregates:
            self._aggregates.move_to_end(key)
            return self._aggregates[key]

        value = compute()
        self._aggregates[key] = value
        while len(self._aggregates) > self.cache_size:
            self._aggregates.popitem(last=False)
        return value

    def nps_score(self, view: View = View.FILTERED) -> int:
        """NPS of a view, 0 when it is empty."""
        return self._memoized("nps", view, (), lambda: analytics.nps_for(self.records(view)))

    def nps_score_by_role(self, role: Role, view: View = View.FILTERED) -> int:
        """NPS of the records of one role within a view."""
        role = Role(role)
        return self._memoized(
            "nps_by_role", view, (role,), lambda: analytics.nps_for(self.records(view), role)
        )

    def nps_breakdown(self, view: View = View.FILTERED) -> Dict[str, int]:
        """Promoter, passive and detractor counts of a view."""
        return dict(self._memoized(
            "breakdown", view, (), lambda: analytics.nps_breakdown(self.records(view))
        ))

    def score_distribution(self, view: View = View.FILTERED) -> Dict[int, int]:
        """Responses per score of a view."""
        return dict(self._memoized(
            "distribution", view, (), lambda: analytics.score_distribution(self.records(view))
        ))
