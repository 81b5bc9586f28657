# cache_utils.py
#
# Purpose:
# The "is this rating still fresh?" policy, plus the timestamp helpers the
# store and the orchestrator share.
#
# A rating is never marked stale in the database. Staleness is decided when
# we read it: if the newest row for a username is younger than the TTL we
# serve it, otherwise we recompute and append a new row.
#
# All timestamps are timezone-aware UTC. SQLite gets ISO-8601 strings.

import os
from datetime import datetime, timedelta, timezone

RATING_TTL_HOURS = float(os.getenv("RATING_TTL_HOURS", "24"))


def utc_now():
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value):
    """
    Turn a stored timestamp into an aware UTC datetime.

    Accepts datetime objects, ISO strings ("2026-01-01T12:00:00+00:00"),
    GitHub style strings ending in "Z" and SQLite's "YYYY-MM-DD HH:MM:SS".
    Naive values are assumed to be UTC. Returns None when it can't parse.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt):
    """Aware datetime -> ISO string with seconds precision."""
    return parse_timestamp(dt).isoformat(timespec="seconds")


def rating_age(last_updated, now=None):
    """timedelta since last_updated, or None if the timestamp is unusable."""
    ts = parse_timestamp(last_updated)
    if ts is None:
        return None
    return (now or utc_now()) - ts


def is_fresh(last_updated, now=None, ttl_hours=RATING_TTL_HOURS):
    """
    True when last_updated is less than ttl_hours old.

    Exactly ttl_hours old counts as stale. A missing or unparseable
    timestamp is stale too. A timestamp from the future (clock skew
    between writers) is treated as fresh.
    """
    age = rating_age(last_updated, now=now)
    if age is None:
        return False
    return age < timedelta(hours=ttl_hours)
