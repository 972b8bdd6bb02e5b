"""
Filter engine for NPS Sync.

This module computes the filtered view of the record set from a
FilterCriteria and persists the active criteria.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple

from nps_sync.core.clock import Clock, SystemClock
from nps_sync.core.logging import logger
from nps_sync.models.feedback import FeedbackRecord, FilterCriteria, Period
from nps_sync.services.persistence_cache import PersistenceCache
from nps_sync.utils.helpers import end_of_day, ensure_utc, start_of_day

# Look-back window of each rolling period
PERIOD_DAYS = {
    Period.TODAY: 1,
    Period.WEEK: 7,
    Period.MONTH: 30,
    Period.QUARTER: 90,
    Period.YEAR: 365,
}

Predicate = Callable[[FeedbackRecord], bool]


def date_predicate(criteria: FilterCriteria, now: datetime) -> Predicate:
    """
    Build the date-window test for a criteria.

    Rolling periods keep records strictly after ``now`` minus the window.
    The custom period keeps records between the start of the first day and
    the end of the last day, both inclusive.
    """
    if criteria.period == Period.ALL:
        return lambda record: True

    if criteria.period == Period.CUSTOM:
        lower = start_of_day(criteria.custom_start)
        upper = end_of_day(criteria.custom_end)
        return lambda record: lower <= record.created_at <= upper

    cutoff = ensure_utc(now) - timedelta(days=PERIOD_DAYS[criteria.period])
    return lambda record: record.created_at > cutoff


def apply_filters(
    records: Sequence[FeedbackRecord],
    criteria: FilterCriteria,
    now: datetime,
) -> Tuple[FeedbackRecord, ...]:
    """
    Filter a record set. Pure: same inputs, same output.

    Args:
        records: Full record set.
        criteria: Active criteria.
        now: Reference time for rolling periods.

    Returns:
        Records passing the role, score and date tests, in input order.
    """
    if not records:
        return tuple(records)

    roles = criteria.roles
    scores = criteria.scores
    in_window = date_predicate(criteria, now)

    return tuple(
        record
        for record in records
        if (not roles or record.role in roles)
        and (not scores or record.score in scores)
        and in_window(record)
    )


class FilterEngine:
    """
    Applies and remembers the active filter criteria.
    """

    def __init__(self, cache: PersistenceCache, clock: Optional[Clock] = None):
        """
        Initialize the filter engine.

        Args:
            cache: Persistence cache holding the saved criteria.
            clock: Clock used for rolling periods.
        """
        self.cache = cache
        self.clock = clock or SystemClock()
        self.criteria = FilterCriteria()

    def activate(self, criteria: FilterCriteria) -> FilterCriteria:
        """
        Make ``criteria`` the active configuration and persist it.

        Args:
            criteria: New criteria.

        Returns:
            The active criteria.
        """
        self.criteria = criteria
        self.cache.save_filters(criteria)
        return criteria

    def apply(
        self,
        records: Sequence[FeedbackRecord],
        criteria: Optional[FilterCriteria] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[FeedbackRecord, ...]:
        """
        Filter ``records`` with ``criteria`` (the active one by default).

        New criteria are persisted before the view is computed.

        Args:
            records: Full record set.
            criteria: Criteria to activate, or None to reuse the active one.
            now: Reference time, the clock's time by default.

        Returns:
            The filtered view.
        """
        if criteria is not None and criteria != self.criteria:
            self.activate(criteria)

        filtered = apply_filters(records, self.criteria, now or self.clock.now())
        logger.debug(
            f"Filtered {len(filtered)} of {len(records)} records "
            f"(period={self.criteria.period.value})"
        )
        return filtered

    def restore(self) -> FilterCriteria:
        """Load the last saved criteria and make them active."""
        self.criteria = self.cache.load_filters()
        logger.info(f"Restored filters: period={self.criteria.period.value}")
        return self.criteria

    def reset(self) -> FilterCriteria:
        """Return to the default criteria and persist them."""
        return self.activate(FilterCriteria())
