"""
Tests for the NPS aggregates.
"""

import os
import random
import sys
import unittest
from datetime import datetime, timezone

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from nps_sync.models.feedback import FeedbackRecord, Role
from nps_sync.services.analytics import (
    calculate_nps,
    nps_breakdown,
    nps_for,
    score_distribution,
)


def make_record(score, role=Role.AGENT):
    return FeedbackRecord(
        score=score,
        role=role,
        created_at=datetime(2024, 3, 14, tzinfo=timezone.utc),
    )


class TestCalculateNps(unittest.TestCase):
    """Tests for calculate_nps."""

    def test_empty_is_zero(self):
        self.assertEqual(calculate_nps([]), 0)

    def test_mixed_scores(self):
        # 2 promoters, 1 passive, 1 detractor
        self.assertEqual(calculate_nps([9, 9, 3, 7]), 25)

    def test_extremes(self):
        self.assertEqual(calculate_nps([10, 9, 10]), 100)
        self.assertEqual(calculate_nps([0, 6, 3]), -100)
        self.assertEqual(calculate_nps([7, 8]), 0)

    def test_rounding(self):
        # 1 / 3 * 100 = 33.3
        self.assertEqual(calculate_nps([9, 7, 7]), 33)
        # 2 / 3 * 100 = 66.7
        self.assertEqual(calculate_nps([9, 9, 7]), 67)
        # 1 / 8 * 100 = 12.5 rounds up
        self.assertEqual(calculate_nps([9, 7, 7, 7, 7, 7, 7, 7]), 13)
        # -1 / 8 * 100 = -12.5 rounds up too
        self.assertEqual(calculate_nps([3, 7, 7, 7, 7, 7, 7, 7]), -12)

    def test_always_in_range(self):
        rng = random.Random(1234)
        for _ in range(200):
            scores = [rng.randint(0, 10) for _ in range(rng.randint(1, 50))]
            with self.subTest(scores=scores):
                self.assertTrue(-100 <= calculate_nps(scores) <= 100)

    def test_accepts_generators(self):
        self.assertEqual(calculate_nps(score for score in [9, 9, 3, 7]), 25)


class TestRecordAggregates(unittest.TestCase):
    """Tests for the record-level aggregates."""

    def setUp(self):
        """Set up test fixtures."""
        self.records = [
            make_record(10, Role.MANAGER),
            make_record(2, Role.MANAGER),
            make_record(9, Role.AGENT),
            make_record(8, Role.AGENT),
            make_record(5, Role.SUPERVISOR),
        ]

    def test_nps_for_role(self):
        self.assertEqual(nps_for(self.records, Role.MANAGER), 0)
        self.assertEqual(nps_for(self.records, Role.AGENT), 50)
        self.assertEqual(nps_for(self.records, Role.SUPERVISOR), -100)
        self.assertEqual(nps_for(self.records), 0)

    def test_nps_for_missing_role_is_zero(self):
        self.assertEqual(nps_for(self.records[:2], Role.SUPERVISOR), 0)

    def test_breakdown(self):
        self.assertEqual(nps_breakdown(self.records), {
            "promoters": 2,
            "passives": 1,
            "detractors": 2,
            "total": 5,
            "score": 0,
        })

    def test_distribution(self):
        distribution = score_distribution(self.records)

        self.assertEqual(sorted(distribution), list(range(11)))
        self.assertEqual(distribution[10], 1)
        self.assertEqual(distribution[8], 1)
        self.assertEqual(distribution[0], 0)
        self.assertEqual(sum(distribution.values()), 5)


if __name__ == '__main__':
    unittest.main()
