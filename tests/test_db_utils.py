"""
test_db_utils.py

Tests for the SQLite rating store. Every test gets its own database file
in a temporary directory.
"""

import os
import sqlite3
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from db_utils import RatingStore
from errors import PersistenceFailure
from models import (
    AIAssessment,
    CachedRating,
    DeveloperProfile,
    ProfileMetrics,
    ScoreBreakdown,
    ScoreDetails,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _rating(username="octocat", total=57, when=T0, persona="The Architect"):
    return CachedRating(
        profile=DeveloperProfile(username=username, name="The Octocat", location="SF"),
        metrics=ProfileMetrics(followers=120, org_count=2, total_commits=900, total_stars=40),
        assessment=AIAssessment(multiplier=1.05, commit_score=11, persona=persona, summary="Solid."),
        breakdown=ScoreBreakdown(
            health_score=11.5,
            quality_raw=52.0,
            quality_score=41.6,
            ai_multiplier=1.05,
            total=total,
            details=ScoreDetails(followers=3.5, organizations=2, volume=6.0),
        ),
        last_updated=when,
    )


class TestRatingStore(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = RatingStore(os.path.join(self.tmp.name, "test.db"))

    def tearDown(self):
        self.tmp.cleanup()

    def test_unknown_user_is_none(self):
        self.assertIsNone(self.store.get_latest_rating("nobody"))

    def test_save_and_load(self):
        original = _rating()
        rating_id = self.store.save_rating(original)
        self.assertIsInstance(rating_id, int)

        loaded = self.store.get_latest_rating("octocat")

        self.assertEqual(loaded.profile, original.profile)
        self.assertEqual(loaded.metrics, original.metrics)
        self.assertEqual(loaded.assessment, original.assessment)
        self.assertEqual(loaded.breakdown, original.breakdown)
        self.assertEqual(loaded.last_updated, T0)

    def test_newest_row_wins_and_lookup_ignores_case(self):
        self.store.save_rating(_rating(total=40, when=T0))
        self.store.save_rating(_rating(username="OctoCat", total=65, when=T0 + timedelta(hours=30)))

        latest = self.store.get_latest_rating("OCTOCAT")

        self.assertEqual(latest.breakdown.total, 65)
        self.assertEqual(latest.username, "OctoCat")

    def test_init_db_is_idempotent(self):
        self.store.init_db()
        self.store.init_db()
        self.store.save_rating(_rating())
        self.assertIsNotNone(self.store.get_latest_rating("octocat"))

    def test_search_history_upsert_and_join(self):
        self.store.save_rating(_rating(persona="The Bug Slayer"))
        self.store.record_search_history("alice", "octocat", searched_at=T0)
        self.store.record_search_history("alice", "never-rated", searched_at=T0 + timedelta(minutes=1))
        self.store.record_search_history("alice", "Octocat", searched_at=T0 + timedelta(minutes=2))
        self.store.record_search_history("bob", "octocat", searched_at=T0)

        history = self.store.get_search_history("alice")

        self.assertEqual([h["searched_profile"] for h in history], ["octocat", "never-rated"])
        self.assertEqual(history[0]["total_score"], 57)
        self.assertEqual(history[0]["persona"], "The Bug Slayer")
        self.assertIsNone(history[1]["total_score"])
        self.assertIsNone(history[1]["persona"])

    def test_delete_profile(self):
        self.store.save_rating(_rating())
        self.store.record_search_history("alice", "octocat", searched_at=T0)

        self.assertTrue(self.store.delete_profile("Octocat"))
        self.assertIsNone(self.store.get_latest_rating("octocat"))
        self.assertEqual(self.store.get_search_history("alice"), [])
        self.assertFalse(self.store.delete_profile("octocat"))

    def test_corrupt_row_raises_persistence_failure(self):
        self.store.save_rating(_rating())
        conn = sqlite3.connect(self.store.db_path)
        with conn:
            conn.execute("UPDATE ratings SET breakdown = '{not json', ai_analysis = '[1, 2]'")
        conn.close()

        with self.assertRaises(PersistenceFailure):
            self.store.get_latest_rating("octocat")

        self.store.record_search_history("alice", "octocat", searched_at=T0)
        self.assertIsNone(self.store.get_search_history("alice")[0]["persona"])

    def test_unwritable_path_raises_persistence_failure(self):
        # a directory can't be opened as a database file
        store = RatingStore(self.tmp.name)
        with self.assertRaises(PersistenceFailure):
            store.save_rating(_rating())
        with self.assertRaises(PersistenceFailure):
            store.get_latest_rating("octocat")


if __name__ == "__main__":
    unittest.main()
