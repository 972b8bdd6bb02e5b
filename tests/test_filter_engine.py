"""
Tests for the filter engine.
"""

import os
import sys
import unittest
from datetime import date, datetime, timedelta, timezone

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from nps_sync.core.clock import FixedClock
from nps_sync.models.feedback import FeedbackRecord, FilterCriteria, Period, Role
from nps_sync.services.filter_engine import FilterEngine, apply_filters
from nps_sync.services.persistence_cache import PersistenceCache
from nps_sync.services.storage import MemoryStorage

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_record(uid, created_at, score=9, role=Role.AGENT):
    return FeedbackRecord(uid=uid, score=score, role=role, created_at=created_at)


class TestApplyFilters(unittest.TestCase):
    """Tests for the pure apply_filters function."""

    def setUp(self):
        """Set up test fixtures."""
        self.records = (
            make_record("a", NOW - timedelta(hours=2), score=10, role=Role.MANAGER),
            make_record("b", NOW - timedelta(days=3), score=3, role=Role.AGENT),
            make_record("c", NOW - timedelta(days=20), score=7, role=Role.SUPERVISOR),
            make_record("d", NOW - timedelta(days=60), score=9, role=Role.AGENT),
            make_record("e", NOW - timedelta(days=200), score=0, role=Role.MANAGER),
            make_record("f", NOW - timedelta(days=400), score=8, role=Role.AGENT),
        )

    def uids(self, criteria):
        return [record.uid for record in apply_filters(self.records, criteria, NOW)]

    def test_all_keeps_everything(self):
        self.assertEqual(self.uids(FilterCriteria()), ["a", "b", "c", "d", "e", "f"])

    def test_rolling_periods(self):
        self.assertEqual(self.uids(FilterCriteria(period=Period.TODAY)), ["a"])
        self.assertEqual(self.uids(FilterCriteria(period=Period.WEEK)), ["a", "b"])
        self.assertEqual(self.uids(FilterCriteria(period=Period.MONTH)), ["a", "b", "c"])
        self.assertEqual(self.uids(FilterCriteria(period=Period.QUARTER)), ["a", "b", "c", "d"])
        self.assertEqual(self.uids(FilterCriteria(period=Period.YEAR)), ["a", "b", "c", "d", "e"])

    def test_week_window(self):
        now = datetime(2024, 3, 15, tzinfo=timezone.utc)
        records = (
            make_record("old", datetime(2024, 3, 1, tzinfo=timezone.utc)),
            make_record("recent", datetime(2024, 3, 14, tzinfo=timezone.utc)),
        )

        filtered = apply_filters(records, FilterCriteria(period=Period.WEEK), now)

        self.assertEqual([record.uid for record in filtered], ["recent"])

    def test_rolling_cutoff_is_exclusive(self):
        records = (make_record("edge", NOW - timedelta(days=7)),)

        self.assertEqual(apply_filters(records, FilterCriteria(period=Period.WEEK), NOW), ())

    def test_custom_range_covers_whole_days(self):
        records = (
            make_record("before", datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc)),
            make_record("first", datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)),
            make_record("last", datetime(2024, 3, 10, 23, 59, 59, tzinfo=timezone.utc)),
            make_record("after", datetime(2024, 3, 11, 0, 0, tzinfo=timezone.utc)),
        )
        criteria = FilterCriteria(
            period=Period.CUSTOM,
            custom_start=date(2024, 3, 1),
            custom_end=date(2024, 3, 10),
        )

        filtered = apply_filters(records, criteria, NOW)

        self.assertEqual([record.uid for record in filtered], ["first", "last"])

    def test_roles_and_scores(self):
        self.assertEqual(self.uids(FilterCriteria(roles={Role.MANAGER})), ["a", "e"])
        self.assertEqual(self.uids(FilterCriteria(scores={9, 10})), ["a", "d"])
        self.assertEqual(
            self.uids(FilterCriteria(roles={Role.AGENT}, scores={9}, period=Period.QUARTER)),
            ["d"],
        )

    def test_empty_result_is_valid(self):
        self.assertEqual(self.uids(FilterCriteria(roles={Role.SUPERVISOR}, scores={10})), [])

    def test_empty_input(self):
        self.assertEqual(apply_filters((), FilterCriteria(period=Period.WEEK), NOW), ())

    def test_is_pure(self):
        criteria = FilterCriteria(period=Period.YEAR, roles={Role.AGENT, Role.MANAGER})

        first = apply_filters(self.records, criteria, NOW)
        second = apply_filters(self.records, criteria, NOW)

        self.assertEqual(first, second)
        self.assertEqual(len(self.records), 6)


class TestFilterEngine(unittest.TestCase):
    """Tests for the FilterEngine persistence behaviour."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = FixedClock(NOW)
        self.cache = PersistenceCache(MemoryStorage(), clock=self.clock)
        self.engine = FilterEngine(self.cache, clock=self.clock)
        self.records = (
            make_record("a", NOW - timedelta(days=2), role=Role.MANAGER),
            make_record("b", NOW - timedelta(days=40)),
        )

    def test_apply_persists_new_criteria(self):
        criteria = FilterCriteria(period=Period.WEEK, roles={Role.MANAGER})

        filtered = self.engine.apply(self.records, criteria)

        self.assertEqual([record.uid for record in filtered], ["a"])
        self.assertEqual(self.engine.criteria, criteria)
        self.assertEqual(self.cache.load_filters(), criteria)

    def test_apply_without_criteria_reuses_active(self):
        self.engine.activate(FilterCriteria(period=Period.MONTH))

        filtered = self.engine.apply(self.records)

        self.assertEqual([record.uid for record in filtered], ["a"])

    def test_apply_uses_clock(self):
        self.engine.activate(FilterCriteria(period=Period.WEEK))
        self.clock.advance(days=6)

        self.assertEqual(self.engine.apply(self.records), ())

    def test_restore_and_reset(self):
        self.cache.save_filters(FilterCriteria(period=Period.QUARTER))

        self.assertEqual(self.engine.restore().period, Period.QUARTER)
        self.assertEqual(self.engine.criteria.period, Period.QUARTER)

        self.engine.reset()

        self.assertEqual(self.engine.criteria, FilterCriteria())
        self.assertEqual(self.cache.load_filters(), FilterCriteria())


if __name__ == '__main__':
    unittest.main()
