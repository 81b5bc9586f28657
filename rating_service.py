# rating_service.py
#
# Purpose:
# The Rating Orchestrator. For one username it decides whether the stored
# rating can be reused or a fresh one must be computed:
#
#   CHECK_CACHE -> (fresh row)  -> return it, cached=True
#               -> (none/stale) -> FETCH_FRESH (6 GitHub calls, concurrent)
#                               -> RUN_AI (<=5 merged PRs, <=20 commits)
#                               -> COMPOSE_SCORE
#                               -> PERSIST (append a new row)
#                               -> return it, cached=False
#
# Both paths return the same response shape (format_response()).
#
# What may fail and what happens then:
#   GitHub 404 / rate limit / other upstream error -> raised to the caller
#   AI assessor fails                              -> neutral default assessment
#   store read fails                               -> treated as a cache miss
#   store write fails                              -> warning, result still returned
#
# The GitHub client, AI assessor and store are passed in, so tests can use
# fakes and never touch the network.

import logging

from analytics import (
    build_commit_logs,
    build_developer_profile,
    build_profile_metrics,
    extract_username,
)
from cache_utils import RATING_TTL_HOURS, format_timestamp, is_fresh, utc_now
from db_utils import RatingStore
from errors import (
    PersistenceFailure,
    RatingError,
    UpstreamNotFound,
    UpstreamRateLimited,
)
from github_api import GitHubClient
from llm_utils import GroqAssessor, default_assessment
from models import CachedRating
from scoring import classify_tier, compose_score, log_breakdown

logger = logging.getLogger(__name__)


def format_response(rating, cached):
    """
    The uniform response for a CachedRating, whichever path produced it.
    """
    profile = rating.profile
    metrics = rating.metrics
    breakdown = rating.breakdown
    ai = rating.assessment

    return {
        "cached": cached,
        "last_updated": format_timestamp(rating.last_updated) if rating.last_updated else None,
        "data": {
            "username": profile.username,
            "name": profile.name,
            "avatar_url": profile.avatar_url,
            "bio": profile.bio,
            "location": profile.location,
            "email": profile.email,
            "blog": profile.blog,
            "twitter_username": profile.twitter_username,
            "company": profile.company,
            "followers": metrics.followers,
            "following": 0,
            "public_repos": metrics.public_repos,
            "total_commits": metrics.total_commits,
            "total_stars": metrics.total_stars,
            "merged_prs": metrics.merged_prs,
            "pr_acceptance_rate": round(metrics.pr_acceptance_rate, 2),
            "issues_closed": metrics.issues_closed,
            "language_breadth": metrics.language_breadth,
            "developer_impact_score": breakdown.total,
            "tier": classify_tier(breakdown.total),
            "score_breakdown": {
                "health_score": round(breakdown.health_score, 2),
                "quality_score": round(breakdown.quality_score, 2),
                "ai_score": ai.commit_score,
            },
            "ai_analysis": {
                "summary": ai.summary,
                "persona": ai.persona,
                "job_fit_score": ai.job_fit_score,
                "match_reason": ai.match_reason,
            },
        },
    }


def error_response(exc):
    """
    Describe a request-terminating error for callers that render results
    (CLI, bulk exports). Only rate limiting carries a retry hint.
    """
    if isinstance(exc, UpstreamRateLimited):
        return {"error": "rate_limited", "message": str(exc), "retry_after": exc.retry_after}
    if isinstance(exc, UpstreamNotFound):
        return {"error": "not_found", "message": str(exc), "retry_after": None}
    return {"error": "failed", "message": str(exc), "retry_after": None}


class RatingOrchestrator:
    """
    Cache-or-recompute for developer ratings.

    Args:
      github:    object with fetch_all(username) and fetch_pr_details_for_ai(prs)
      assessor:  object with analyze_profile(username, prs, commits, job_description)
      store:     object with get_latest_rating, save_rating, record_search_history
      ttl_hours: staleness window
      clock:     callable returning an aware UTC datetime
    """

    def __init__(self, github, assessor, store, ttl_hours=RATING_TTL_HOURS, clock=utc_now):
        self.github = github
        self.assessor = assessor
        self.store = store
        self.ttl_hours = ttl_hours
        self.clock = clock

    def get_or_calculate_rating(self, username, user_id=None, job_description=None):
        """
        Return the response dict for username.

        user_id, when given, is recorded in search history on both paths.
        job_description only affects fresh computations; a cached rating is
        returned verbatim.

        Raises UpstreamNotFound, UpstreamRateLimited or UpstreamError when
        GitHub can't provide the data, ValueError for an empty username or
        one that is not a GitHub login or profile URL.
        """
        raw = (username or "").strip()
        if raw == "":
            raise ValueError("username cannot be empty")
        username = extract_username(raw)
        if username == "":
            raise ValueError(f"not a GitHub username or profile URL: {raw!r}")

        now = self.clock()
        cached = self._load_cached(username)

        if cached is not None and is_fresh(cached.last_updated, now=now, ttl_hours=self.ttl_hours):
            logger.info(
                "Returning cached rating for %s (last updated %s)",
                username, format_timestamp(cached.last_updated),
            )
            self._record_history(user_id, cached.username)
            return format_response(cached, cached=True)

        if cached is None:
            logger.info("No stored rating for %s, fetching fresh data from GitHub", username)
        else:
            logger.info("Stored rating for %s is stale, fetching fresh data from GitHub", username)

        rating = self._compute_fresh(username, job_description, now)
        self._persist(rating)
        self._record_history(user_id, rating.username)
        return format_response(rating, cached=False)

    def rate_bulk(self, entries, user_id=None, job_description=None):
        """
        Rate a list of usernames or profile URLs one after another.

        A failing entry becomes an error row instead of stopping the batch.
        Every row has the same keys so it can go straight into a CSV.
        """
        rows = []
        for entry in entries:
            username = extract_username(entry)
            row = {
                "input": entry,
                "username": username,
                "developer_impact_score": None,
                "tier": None,
                "cached": None,
                "job_fit_score": None,
                "match_reason": None,
                "error": None,
                "retry_after": None,
            }

            if username == "":
                row["error"] = "Not a GitHub username or profile URL."
                rows.append(row)
                continue

            logger.info("Processing bulk entry: %s", username)
            try:
                result = self.get_or_calculate_rating(username, user_id, job_description)
            except RatingError as e:
                logger.error("Failed to rate %s: %s", username, e)
                err = error_response(e)
                row["error"] = err["message"]
                row["retry_after"] = err["retry_after"]
                rows.append(row)
                continue

            data = result["data"]
            row.update({
                "username": data["username"],
                "developer_impact_score": data["developer_impact_score"],
                "tier": data["tier"],
                "cached": result["cached"],
                "job_fit_score": data["ai_analysis"]["job_fit_score"],
                "match_reason": data["ai_analysis"]["match_reason"],
            })
            rows.append(row)

        return rows

    # ----------------------------
    # Steps
    # ----------------------------
    def _load_cached(self, username):
        try:
            return self.store.get_latest_rating(username)
        except PersistenceFailure as e:
            logger.warning("Could not read stored rating for %s, recomputing: %s", username, e)
            return None

    def _compute_fresh(self, username, job_description, now):
        data = self.github.fetch_all(username)

        prs = data["prs"]
        logger.info(
            "Fetched %d repos, %d PRs (%d merged), %d total commits for %s",
            len(data["repos"]), len(prs), len([p for p in prs if p.get("merged")]),
            data["total_commits"], username,
        )

        pr_details = self.github.fetch_pr_details_for_ai(prs)
        commit_logs = build_commit_logs(data["recent_commits"])
        logger.debug("AI sample for %s: %d PRs, %d commits", username, len(pr_details), len(commit_logs))

        assessment = self._assess(username, pr_details, commit_logs, job_description)

        profile = build_developer_profile(data["profile"])
        metrics = build_profile_metrics(
            data["profile"], data["repos"], prs, data["issues"], data["total_commits"]
        )
        breakdown = compose_score(metrics, assessment)
        log_breakdown(profile.username, breakdown)

        return CachedRating(
            profile=profile,
            metrics=metrics,
            assessment=assessment,
            breakdown=breakdown,
            last_updated=now,
        )

    def _assess(self, username, pr_details, commit_logs, job_description):
        try:
            return self.assessor.analyze_profile(username, pr_details, commit_logs, job_description)
        except Exception as e:
            # the AI never fails a rating; multiplier 1.0 is a no-op
            logger.warning("AI analysis unavailable for %s, using default assessment: %s", username, e)
            return default_assessment()

    def _persist(self, rating):
        try:
            self.store.save_rating(rating)
            logger.info("Saved rating for %s", rating.username)
        except PersistenceFailure as e:
            logger.warning("Rating for %s computed but not saved: %s", rating.username, e)

    def _record_history(self, user_id, username):
        if not user_id:
            return
        try:
            self.store.record_search_history(user_id, username)
        except PersistenceFailure as e:
            logger.warning("Could not record search history for %s: %s", username, e)


def build_default_orchestrator():
    """Wire the real collaborators from environment variables."""
    return RatingOrchestrator(
        github=GitHubClient(),
        assessor=GroqAssessor(),
        store=RatingStore(),
    )
