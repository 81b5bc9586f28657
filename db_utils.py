# db_utils.py
#
# Purpose:
# This file saves and loads ratings in a local SQLite database (devrate.db).
#
# Storage model:
# - github_profiles: one row per fetch cycle (identity + metrics JSON)
# - ratings:         one row per computation, linked to its profile snapshot
# - search_history:  "user U looked up profile P at time T", one row per pair
# - schema_version:  single-row table used by the migrations below
#
# Nothing is updated in place. A recomputation appends a new profile row and
# a new rating row; "latest" simply means newest created_at. That is what makes
# two concurrent recomputations of the same user harmless: both rows land and
# the newer one wins on the next read.
#
# Usernames are matched case-insensitively (GitHub logins are), through the
# username_key column.

import json
import logging
import os
import sqlite3

from cache_utils import format_timestamp, parse_timestamp, utc_now
from errors import PersistenceFailure
from models import AIAssessment, CachedRating, DeveloperProfile, ProfileMetrics, ScoreBreakdown

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DEVRATE_DB_PATH", "devrate.db")

SCHEMA_VERSION = 1


def _username_key(username):
    return (username or "").strip().lower()


# ----------------------------
# Schema helpers
# ----------------------------
def _table_exists(conn, table_name):
    """Return True if a table exists (sqlite_master is SQLite's schema table)."""
    cur = conn.cursor()
    cur.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,)
    )
    return cur.fetchone() is not None


def _get_table_columns(conn, table_name):
    """
    Return a set of column names for a table.

    PRAGMA table_info returns rows like:
      (cid, name, type, notnull, dflt_value, pk)
    """
    cur = conn.cursor()
    cur.execute(f"PRAGMA table_info({table_name})")
    return set(r[1] for r in cur.fetchall())


def _ensure_schema_version_table(conn):
    """Create the single-row schema_version table if needed."""
    cur = conn.cursor()
    cur.execute("""
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL
    )
    """)
    cur.execute("SELECT version FROM schema_version WHERE id = 1")
    if cur.fetchone() is None:
        cur.execute("INSERT INTO schema_version (id, version) VALUES (1, 0)")


def _get_schema_version(conn):
    cur = conn.cursor()
    cur.execute("SELECT version FROM schema_version WHERE id = 1")
    return int(cur.fetchone()[0])


def _set_schema_version(conn, version):
    cur = conn.cursor()
    cur.execute("UPDATE schema_version SET version = ? WHERE id = 1", (int(version),))


def _create_base_tables(conn):
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS github_profiles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL,
        username_key TEXT NOT NULL,
        name TEXT,
        avatar_url TEXT,
        bio TEXT,
        location TEXT,
        blog TEXT,
        twitter_username TEXT,
        company TEXT,
        email TEXT,
        metrics TEXT NOT NULL,
        fetched_at TEXT NOT NULL
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS ratings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        profile_id INTEGER NOT NULL,
        username_key TEXT NOT NULL,
        total_score INTEGER NOT NULL,
        health_score REAL,
        quality_score REAL,
        breakdown TEXT NOT NULL,
        ai_analysis TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY(profile_id) REFERENCES github_profiles(id)
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS search_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        searched_profile TEXT NOT NULL,
        searched_at TEXT NOT NULL,
        UNIQUE(user_id, searched_profile)
    )
    """)

    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_ratings_user_created "
        "ON ratings (username_key, created_at)"
    )


def _migration_ensure_ratings_columns(conn):
    """
    Add any rating columns an older database is missing.
    Idempotent: SQLite can only ADD columns, so we check first.
    """
    expected = {
        "health_score": "REAL",
        "quality_score": "REAL",
    }
    cols = _get_table_columns(conn, "ratings")
    cur = conn.cursor()
    for col, col_type in expected.items():
        if col not in cols:
            cur.execute(f"ALTER TABLE ratings ADD COLUMN {col} {col_type}")


class RatingStore:
    """
    SQLite-backed persistence for ratings and search history.

    Write methods raise PersistenceFailure; the orchestrator decides
    whether that matters.
    """

    def __init__(self, db_path=DB_PATH):
        self.db_path = db_path
        self._initialized = False

    def _connect(self):
        # check_same_thread=False: the orchestrator may be driven from a
        # worker thread; each call still opens its own connection.
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """
        Create tables and run migrations. Safe to call repeatedly.
        """
        conn = self._connect()
        try:
            with conn:
                _ensure_schema_version_table(conn)
                _create_base_tables(conn)
                _migration_ensure_ratings_columns(conn)
                if _get_schema_version(conn) < SCHEMA_VERSION:
                    _set_schema_version(conn, SCHEMA_VERSION)
        finally:
            conn.close()
        self._initialized = True

    def _ensure_ready(self):
        if not self._initialized:
            self.init_db()

    # ----------------------------
    # Ratings
    # ----------------------------
    def get_latest_rating(self, username):
        """
        Newest CachedRating for username, or None if we never rated them.
        """
        try:
            self._ensure_ready()
            conn = self._connect()
            try:
                cur = conn.cursor()
                cur.execute("""
                SELECT p.username, p.name, p.avatar_url, p.bio, p.location, p.blog,
                       p.twitter_username, p.company, p.email, p.metrics,
                       r.breakdown, r.ai_analysis, r.created_at
                FROM ratings r
                JOIN github_profiles p ON p.id = r.profile_id
                WHERE r.username_key = ?
                ORDER BY r.created_at DESC, r.id DESC
                LIMIT 1
                """, (_username_key(username),))
                row = cur.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not read rating for {username}: {e}") from e

        if row is None:
            return None

        # A row we can't decode is as unusable as one we can't read.
        try:
            return CachedRating(
                profile=DeveloperProfile.from_dict(dict(row)),
                metrics=ProfileMetrics.from_dict(json.loads(row["metrics"] or "{}")),
                assessment=AIAssessment.from_dict(json.loads(row["ai_analysis"] or "{}")),
                breakdown=ScoreBreakdown.from_dict(json.loads(row["breakdown"] or "{}")),
                last_updated=parse_timestamp(row["created_at"]),
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise PersistenceFailure(f"Stored rating for {username} is corrupt: {e}") from e

    def save_rating(self, rating):
        """
        Append a CachedRating (profile snapshot + rating row).
        Returns the new rating id.
        """
        try:
            self._ensure_ready()
            conn = self._connect()
            try:
                with conn:
                    cur = conn.cursor()
                    profile = rating.profile
                    stamp = format_timestamp(rating.last_updated)

                    cur.execute("""
                    INSERT INTO github_profiles (
                        username, username_key, name, avatar_url, bio, location,
                        blog, twitter_username, company, email, metrics, fetched_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        profile.username,
                        _username_key(profile.username),
                        profile.name,
                        profile.avatar_url,
                        profile.bio,
                        profile.location,
                        profile.blog,
                        profile.twitter_username,
                        profile.company,
                        profile.email,
                        json.dumps(rating.metrics.to_dict()),
                        stamp,
                    ))
                    profile_id = cur.lastrowid

                    cur.execute("""
                    INSERT INTO ratings (
                        profile_id, username_key, total_score, health_score,
                        quality_score, breakdown, ai_analysis, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        profile_id,
                        _username_key(profile.username),
                        int(rating.breakdown.total),
                        rating.breakdown.health_score,
                        rating.breakdown.quality_score,
                        json.dumps(rating.breakdown.to_dict()),
                        json.dumps(rating.assessment.to_dict()),
                        stamp,
                    ))
                    return cur.lastrowid
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not save rating for {rating.username}: {e}") from e

    def delete_profile(self, username):
        """
        Remove every snapshot, rating and history row of a username.
        Returns True if anything was deleted.
        """
        key = _username_key(username)
        try:
            self._ensure_ready()
            conn = self._connect()
            try:
                with conn:
                    cur = conn.cursor()
                    cur.execute("DELETE FROM ratings WHERE username_key = ?", (key,))
                    deleted = cur.rowcount
                    cur.execute("DELETE FROM github_profiles WHERE username_key = ?", (key,))
                    deleted += cur.rowcount
                    cur.execute("DELETE FROM search_history WHERE searched_profile = ?", (key,))
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not delete {username}: {e}") from e
        return deleted > 0

    # ----------------------------
    # Search history
    # ----------------------------
    def record_search_history(self, user_id, username, searched_at=None):
        """
        Remember that user_id looked up username. Looking the same profile
        up again just refreshes searched_at.
        """
        stamp = format_timestamp(searched_at or utc_now())
        try:
            self._ensure_ready()
            conn = self._connect()
            try:
                with conn:
                    conn.execute("""
                    INSERT INTO search_history (user_id, searched_profile, searched_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT (user_id, searched_profile)
                    DO UPDATE SET searched_at = excluded.searched_at
                    """, (str(user_id), _username_key(username), stamp))
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not record search history: {e}") from e

    def get_search_history(self, user_id):
        """
        Profiles user_id looked up, newest first, each joined with the
        latest rating we have for it (rating fields are None if the
        profile was never successfully rated).
        """
        try:
            self._ensure_ready()
            conn = self._connect()
            try:
                cur = conn.cursor()
                cur.execute("""
                SELECT sh.searched_profile, sh.searched_at,
                       p.username, p.name, p.avatar_url,
                       r.total_score, r.health_score, r.quality_score, r.ai_analysis
                FROM search_history sh
                LEFT JOIN ratings r ON r.id = (
                    SELECT r2.id FROM ratings r2
                    WHERE r2.username_key = sh.searched_profile
                    ORDER BY r2.created_at DESC, r2.id DESC
                    LIMIT 1
                )
                LEFT JOIN github_profiles p ON p.id = r.profile_id
                WHERE sh.user_id = ?
                ORDER BY sh.searched_at DESC, sh.id DESC
                """, (str(user_id),))
                rows = cur.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Could not read search history: {e}") from e

        history = []
        for row in rows:
            try:
                ai = json.loads(row["ai_analysis"]) if row["ai_analysis"] else {}
            except ValueError:
                logger.warning("Unreadable AI analysis for %s in search history", row["searched_profile"])
                ai = {}
            if not isinstance(ai, dict):
                ai = {}
            history.append({
                "searched_profile": row["username"] or row["searched_profile"],
                "searched_at": row["searched_at"],
                "name": row["name"],
                "avatar_url": row["avatar_url"],
                "total_score": row["total_score"],
                "health_score": row["health_score"],
                "quality_score": row["quality_score"],
                "persona": ai.get("persona"),
            })
        return history
