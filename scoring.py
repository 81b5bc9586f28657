# scoring.py
#
# What this file is:
# The Developer Impact score. It turns a ProfileMetrics snapshot plus the
# AI assessment into a bounded 0-100 total and a tier label.
#
# Layout of the 100 points:
#   Health  (20) = followers (5) + organizations (5) + commit volume (10)
#   Quality (80) = [acceptance (35) + impact (35) + issues (15) + commits (15)] * 0.8
#   Total        = round(clamp((health + quality) * ai_multiplier, 0, 100))
#
# Log scaling:
# Followers, stars and commits are heavy-tailed, so they go through log10.
# "10x more" is the same step everywhere and max_expected says where 100 is
# for each metric.
#
# compose_score() is pure. Logging of the intermediate numbers lives in
# log_breakdown() so the math stays easy to test.

import logging
import math

from models import ScoreBreakdown, ScoreDetails

logger = logging.getLogger(__name__)

# "100" anchors for log_scale()
MAX_FOLLOWERS = 1000
MAX_TOTAL_COMMITS = 10000
MAX_TOTAL_STARS = 5000
MAX_CLOSED_ISSUES = 50

# Health weights (points)
FOLLOWER_POINTS = 5
ORG_POINTS = 5
VOLUME_POINTS = 10

# Quality weights (points out of 100, scaled by QUALITY_SCALE afterwards)
ACCEPTANCE_POINTS = 35
IMPACT_POINTS = 35
ISSUES_POINTS = 15
COMMIT_QUALITY_POINTS = 15
NEUTRAL_COMMIT_SCORE = 10
QUALITY_SCALE = 0.8

AI_MULTIPLIER_MIN = 0.8
AI_MULTIPLIER_MAX = 1.2

# Inclusive lower bounds, checked highest first.
TIER_THRESHOLDS = [
    (90, "Legendary"),
    (75, "Elite"),
    (60, "Senior"),
    (40, "Mid-Level"),
]
DEFAULT_TIER = "Junior"


def clamp(x, lo=0, hi=100):
    """
    Clamp a number into [lo, hi].
    """
    if x < lo:
        return lo
    if x > hi:
        return hi
    return x


def log_scale(value, max_expected):
    """
    Map a non-negative count onto 0-100 with a base-10 log curve.

      log_scale(0, m)    -> 0
      log_scale(m, m)    -> 100
      log_scale(10, 100) -> 50

    Anything at or below zero is 0 (log10 is undefined there), anything
    above max_expected is capped at 100.
    """
    if value is None or value <= 0:
        return 0
    return min(100, (math.log10(value) / math.log10(max_expected)) * 100)


def _safe_number(value, default):
    """Coerce untrusted input to float; NaN and junk become default."""
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(n):
        return default
    return n


def health_components(metrics):
    """
    Account-level signals (max 20 points).

    Followers and commit volume are log scaled. Organization count stays
    linear and is capped at 5 because it is a small integer in practice.
    """
    followers = log_scale(metrics.followers, MAX_FOLLOWERS) * (FOLLOWER_POINTS / 100)
    organizations = min(max(metrics.org_count, 0), ORG_POINTS)
    volume = log_scale(metrics.total_commits, MAX_TOTAL_COMMITS) * (VOLUME_POINTS / 100)
    return followers, organizations, volume


def quality_components(metrics, commit_score):
    """
    Contribution outcomes (raw max 100 points, before the 0.8 scale).

    Acceptance is merged / closed PRs. With no closed PRs the ratio is 0,
    not 100% and not an error.
    """
    closed = max(metrics.closed_prs, 0)
    merged = clamp(metrics.merged_prs, 0, closed)
    ratio = (merged / closed) if closed > 0 else 0

    acceptance = ratio * ACCEPTANCE_POINTS
    impact = log_scale(metrics.total_stars, MAX_TOTAL_STARS) * (IMPACT_POINTS / 100)
    issues = log_scale(metrics.issues_closed, MAX_CLOSED_ISSUES) * (ISSUES_POINTS / 100)
    commit_quality = clamp(
        _safe_number(commit_score, NEUTRAL_COMMIT_SCORE), 0, COMMIT_QUALITY_POINTS
    )
    return acceptance, impact, issues, commit_quality


def compose_score(metrics, assessment):
    """
    Combine metrics and AI judgment into a ScoreBreakdown.

    Inputs:
      metrics    (ProfileMetrics)
      assessment (AIAssessment) - untrusted; multiplier is clamped to
                 [0.8, 1.2] and commit_score to [0, 15] here regardless
                 of what the assessor already did.

    The multiplier is applied to the combined health + quality subtotal,
    not to each part, so it can move a profile by up to 20% either way.

    Pure function: same inputs, same breakdown, no I/O.
    """
    followers, organizations, volume = health_components(metrics)
    health = followers + organizations + volume

    acceptance, impact, issues, commit_quality = quality_components(
        metrics, assessment.commit_score
    )
    quality_raw = acceptance + impact + issues + commit_quality
    quality = quality_raw * QUALITY_SCALE

    multiplier = clamp(
        _safe_number(assessment.multiplier, 1.0),
        AI_MULTIPLIER_MIN,
        AI_MULTIPLIER_MAX,
    )
    total = int(round(clamp((health + quality) * multiplier, 0, 100)))

    return ScoreBreakdown(
        health_score=health,
        quality_raw=quality_raw,
        quality_score=quality,
        ai_multiplier=multiplier,
        total=total,
        details=ScoreDetails(
            followers=followers,
            organizations=organizations,
            volume=volume,
            acceptance=acceptance,
            impact=impact,
            issues=issues,
            commit_quality=commit_quality,
        ),
    )


def classify_tier(total):
    """
    Map a total score to a tier label.

    >= 90 Legendary, >= 75 Elite, >= 60 Senior, >= 40 Mid-Level, else Junior.
    Out-of-range input falls through to the nearest bound.
    """
    for threshold, label in TIER_THRESHOLDS:
        if total >= threshold:
            return label
    return DEFAULT_TIER


def log_breakdown(username, breakdown):
    """Write every sub-score of a breakdown to the debug log."""
    d = breakdown.details
    logger.debug(
        "Score for %s: health=%.2f (followers=%.2f orgs=%.2f volume=%.2f)",
        username, breakdown.health_score, d.followers, d.organizations, d.volume,
    )
    logger.debug(
        "Score for %s: quality=%.2f raw=%.2f (acceptance=%.2f impact=%.2f issues=%.2f commits=%.2f)",
        username, breakdown.quality_score, breakdown.quality_raw,
        d.acceptance, d.impact, d.issues, d.commit_quality,
    )
    logger.debug(
        "Score for %s: multiplier=%.2f total=%d tier=%s",
        username, breakdown.ai_multiplier, breakdown.total, classify_tier(breakdown.total),
    )
