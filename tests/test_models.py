"""
Tests for the feedback models.

This module contains tests for role normalization, raw row normalization
and filter criteria validation.
"""

import os
import sys
import unittest
from datetime import date, datetime, timezone

from pydantic import ValidationError

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from nps_sync.core.errors import MalformedDataError
from nps_sync.models.feedback import (
    FeedbackRecord,
    FilterCriteria,
    Period,
    Role,
    normalize_role,
)


class TestNormalizeRole(unittest.TestCase):
    """Tests for normalize_role."""

    def test_gestor_is_manager(self):
        self.assertEqual(normalize_role("Gestor"), Role.MANAGER)
        self.assertEqual(normalize_role("GESTOR"), Role.MANAGER)

    def test_supervisor(self):
        self.assertEqual(normalize_role("Supervisor"), Role.SUPERVISOR)

    def test_anything_else_is_agent(self):
        self.assertEqual(normalize_role("Agente"), Role.AGENT)
        self.assertEqual(normalize_role(""), Role.AGENT)
        self.assertEqual(normalize_role(None), Role.AGENT)

    def test_normalized_labels_are_stable(self):
        for role in Role:
            self.assertEqual(normalize_role(role.value), role)


class TestFeedbackRecordFromRaw(unittest.TestCase):
    """Tests for FeedbackRecord.from_raw."""

    def setUp(self):
        """Set up test fixtures."""
        self.raw = {
            "user_id": 42,
            "company_id": 7,
            "user_name": "Ana",
            "company_name": "Acme",
            "score": "9",
            "reason": "Great support",
            "created_at": "2024-03-14T10:00:00Z",
            "role": "Gestor",
        }

    def test_normalizes_fields(self):
        record = FeedbackRecord.from_raw(self.raw)

        self.assertEqual(record.user_id, "42")
        self.assertEqual(record.company_id, "7")
        self.assertEqual(record.user_name, "Ana")
        self.assertEqual(record.company_name, "Acme")
        self.assertEqual(record.score, 9)
        self.assertEqual(record.reason, "Great support")
        self.assertEqual(record.role, Role.MANAGER)
        self.assertEqual(record.created_at, datetime(2024, 3, 14, 10, tzinfo=timezone.utc))

    def test_camel_case_and_nested_fields(self):
        record = FeedbackRecord.from_raw({
            "userId": "u1",
            "score": 3,
            "createdAt": "2024-03-14T10:00:00+00:00",
            "user": {"name": "Bruno", "role": "Supervisor"},
            "company": {"id": "c1", "name": "Beta"},
        })

        self.assertEqual(record.user_id, "u1")
        self.assertEqual(record.user_name, "Bruno")
        self.assertEqual(record.role, Role.SUPERVISOR)
        self.assertEqual(record.company_id, "c1")
        self.assertEqual(record.company_name, "Beta")

    def test_missing_optional_fields_default_to_empty(self):
        record = FeedbackRecord.from_raw({
            "user_id": "u1",
            "score": 10,
            "created_at": "2024-03-14",
        })

        self.assertEqual(record.reason, "")
        self.assertEqual(record.user_name, "")
        self.assertEqual(record.company_id, "")
        self.assertEqual(record.role, Role.AGENT)

    def test_uid_is_stable_across_fetches(self):
        first = FeedbackRecord.from_raw(self.raw)
        second = FeedbackRecord.from_raw(dict(self.raw, created_at="2024-03-14T10:00:00+00:00"))

        self.assertEqual(first.uid, second.uid)

    def test_uid_uses_upstream_id_when_present(self):
        first = FeedbackRecord.from_raw(dict(self.raw, id=1))
        second = FeedbackRecord.from_raw(dict(self.raw, id=2))

        self.assertNotEqual(first.uid, second.uid)

    def test_rejects_missing_user_id(self):
        raw = dict(self.raw)
        del raw["user_id"]
        with self.assertRaises(MalformedDataError):
            FeedbackRecord.from_raw(raw)

    def test_rejects_bad_scores(self):
        for score in (None, "abc", 11, -1, 7.5, True):
            with self.subTest(score=score):
                with self.assertRaises(MalformedDataError):
                    FeedbackRecord.from_raw(dict(self.raw, score=score))

    def test_rejects_bad_created_at(self):
        with self.assertRaises(MalformedDataError):
            FeedbackRecord.from_raw(dict(self.raw, created_at="yesterday"))

    def test_rejects_non_dict(self):
        with self.assertRaises(MalformedDataError):
            FeedbackRecord.from_raw(["not", "a", "row"])

    def test_manual_records_get_random_uid(self):
        first = FeedbackRecord(score=5, created_at="2024-03-14T10:00:00Z")
        second = FeedbackRecord(score=5, created_at="2024-03-14T10:00:00Z")

        self.assertNotEqual(first.uid, second.uid)

    def test_records_are_immutable(self):
        record = FeedbackRecord.from_raw(self.raw)
        with self.assertRaises(ValidationError):
            record.score = 1


class TestFilterCriteria(unittest.TestCase):
    """Tests for FilterCriteria validation."""

    def test_defaults(self):
        criteria = FilterCriteria()

        self.assertEqual(criteria.period, Period.ALL)
        self.assertEqual(criteria.roles, frozenset())
        self.assertEqual(criteria.scores, frozenset())

    def test_custom_requires_both_dates(self):
        with self.assertRaises(ValidationError):
            FilterCriteria(period=Period.CUSTOM, custom_start=date(2024, 3, 1))

        criteria = FilterCriteria(
            period=Period.CUSTOM,
            custom_start=date(2024, 3, 1),
            custom_end=date(2024, 3, 10),
        )
        self.assertEqual(criteria.period, Period.CUSTOM)

    def test_scores_must_be_in_range(self):
        with self.assertRaises(ValidationError):
            FilterCriteria(scores={11})

    def test_json_round_trip(self):
        criteria = FilterCriteria(
            period="week",
            roles={"manager", "agent"},
            scores={9, 10},
        )

        restored = FilterCriteria.model_validate_json(criteria.model_dump_json())

        self.assertEqual(restored, criteria)
        self.assertEqual(restored.roles, frozenset({Role.MANAGER, Role.AGENT}))


if __name__ == '__main__':
    unittest.main()
