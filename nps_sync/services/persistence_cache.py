"""
Persistence cache for NPS Sync.

This module serializes the record set, the last fetch time and the active
filter configuration to durable storage. Every failure here degrades to
"no cache": it is logged and never raised.
"""

import json
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from pydantic import ValidationError

from nps_sync.core.clock import Clock, SystemClock
from nps_sync.core.config import settings
from nps_sync.core.logging import logger
from nps_sync.models.feedback import CacheEntry, FeedbackRecord, FilterCriteria
from nps_sync.services.storage import KeyValueStorage
from nps_sync.utils.helpers import ensure_utc, parse_date


class PersistenceCache:
    """
    Cache of fetched records on top of a KeyValueStorage.

    Records, the last fetch time and the filter configuration live under
    separate keys so each can be cleared on its own.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Optional[Clock] = None,
        ttl: timedelta = timedelta(hours=settings.CACHE_TTL_HOURS),
        key_prefix: str = settings.STORAGE_KEY_PREFIX,
    ):
        """
        Initialize the cache.

        Args:
            storage: Durable key-value storage.
            clock: Clock used to clamp timestamps and judge staleness.
            ttl: Age after which a cache is expired.
            key_prefix: Prefix of every storage key.
        """
        self.storage = storage
        self.clock = clock or SystemClock()
        self.ttl = ttl
        self.records_key = f"{key_prefix}_feedback_data"
        self.last_fetch_key = f"{key_prefix}_last_fetch_date"
        self.filters_key = f"{key_prefix}_filters"

    def save(self, records: Sequence[FeedbackRecord], timestamp: Optional[datetime]) -> bool:
        """
        Persist the record set and the last fetch time.

        A timestamp in the future is clamped to now. Records are written
        before the timestamp, so a failed records write never advances it.

        Args:
            records: Full record set, in store order.
            timestamp: Time of the last successful fetch, or None to leave
                the stored value untouched.

        Returns:
            True if everything was written, False otherwise.
        """
        try:
            payload = json.dumps([record.model_dump(mode="json") for record in records])
            self.storage.set(self.records_key, payload)

            if timestamp is not None:
                timestamp = min(ensure_utc(timestamp), self.clock.now())
                self.storage.set(self.last_fetch_key, timestamp.isoformat())

            logger.debug(f"Saved {len(records)} records to cache")
            return True

        except Exception as e:
            logger.error(f"Failed to save cache: {e}")
            return False

    def load(self) -> Optional[CacheEntry]:
        """
        Read the cached record set.

        Returns:
            CacheEntry, or None if nothing usable is stored.
        """
        try:
            raw_records = self.storage.get(self.records_key)
            raw_timestamp = self.storage.get(self.last_fetch_key)
        except Exception as e:
            logger.error(f"Failed to read cache: {e}")
            return None

        if raw_records is None:
            return None

        try:
            items = json.loads(raw_records)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable cache: {e}")
            return None

        if not isinstance(items, list):
            logger.warning("Discarding cache with unexpected shape")
            return None

        records: List[FeedbackRecord] = []
        dropped = 0
        for item in items:
            try:
                records.append(FeedbackRecord.model_validate(item))
            except ValidationError:
                dropped += 1

        if dropped:
            logger.warning(f"Dropped {dropped} invalid cached records")

        last_fetch_date = parse_date(raw_timestamp) if raw_timestamp else None
        if last_fetch_date is not None:
            last_fetch_date = min(last_fetch_date, self.clock.now())

        logger.info(f"Loaded {len(records)} records from cache (last fetch: {last_fetch_date})")
        return CacheEntry(records=records, last_fetch_date=last_fetch_date)

    def is_expired(self, last_fetch_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
        """
        Check whether a cache fetched at ``last_fetch_date`` is stale.

        Args:
            last_fetch_date: Time of the last successful fetch.
            now: Reference time, the clock's current time by default.

        Returns:
            True when older than the TTL or when no fetch time is known.
        """
        if last_fetch_date is None:
            return True
        now = ensure_utc(now) if now is not None else self.clock.now()
        return now - ensure_utc(last_fetch_date) > self.ttl

    def save_filters(self, criteria: FilterCriteria) -> bool:
        """Persist the active filter configuration."""
        try:
            self.storage.set(self.filters_key, criteria.model_dump_json())
            return True
        except Exception as e:
            logger.error(f"Failed to save filters: {e}")
            return False

    def load_filters(self) -> FilterCriteria:
        """
        Read the last used filter configuration.

        Returns:
            Saved criteria, or the defaults if none are stored or they are invalid.
        """
        try:
            raw = self.storage.get(self.filters_key)
        except Exception as e:
            logger.error(f"Failed to read filters: {e}")
            return FilterCriteria()

        if raw is None:
            return FilterCriteria()

        try:
            return FilterCriteria.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding invalid saved filters: {e}")
            return FilterCriteria()

    def clear_records(self) -> None:
        """Remove the record set and the last fetch time."""
        for key in (self.records_key, self.last_fetch_key):
            self._remove(key)

    def clear(self) -> None:
        """Remove every key owned by the cache, filters included."""
        for key in (self.records_key, self.last_fetch_key, self.filters_key):
            self._remove(key)
        logger.info("Cache cleared")

    def _remove(self, key: str) -> None:
        try:
            self.storage.remove(key)
        except Exception as e:
            logger.error(f"Failed to remove {key}: {e}")
