# github_api.py
#
# Purpose:
# This file is the "data ingestion" layer. It pulls raw data from the GitHub
# REST API and hands back plain Python dicts/lists for analytics.py.
#
# What a rating needs from GitHub:
#   1) profile (+ organization count)
#   2) up to 100 owned repos
#   3) up to 100 PRs authored by the user (search API)
#   4) up to 50 closed issues assigned to the user (search API)
#   5) a sample of up to 50 recent commit messages
#   6) the lifetime commit count (commit search total_count)
# plus, for the AI prompt, review detail on the 5 most recently merged PRs.
#
# Errors:
# _get() raises instead of returning error strings, because fetch_all()
# must be able to abort the whole group on the first failure:
#   404            -> UpstreamNotFound
#   429 / 403 with rate-limit signals -> UpstreamRateLimited (with retry_after)
#   anything else  -> UpstreamError

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests

from analytics import top_merged_prs
from errors import UpstreamError, UpstreamNotFound, UpstreamRateLimited

logger = logging.getLogger(__name__)

# ----------------------------
# Config
# ----------------------------

# Read the GitHub token from the environment (never hard-coded).
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")

API_BASE = "https://api.github.com"

# Accept tells GitHub I want the modern JSON format.
BASE_HEADERS = {"Accept": "application/vnd.github+json"}

MAX_SAMPLE_COMMITS = 50
MIN_EVENT_COMMITS = 20
FALLBACK_REPOS = 10


def _is_rate_limited(resp):
    """
    GitHub uses 403 both for "forbidden" and for "slow down". The rate-limit
    flavour either has X-RateLimit-Remaining: 0, a Retry-After header
    (secondary limits) or says so in the message.
    """
    if resp.status_code == 429:
        return True
    if resp.headers.get("X-RateLimit-Remaining") == "0":
        return True
    if resp.headers.get("Retry-After"):
        return True
    try:
        message = str(resp.json().get("message", ""))
    except (ValueError, AttributeError):
        message = ""
    return "rate limit" in message.lower()


def _retry_after(resp, now=None):
    """Seconds to wait, from Retry-After or X-RateLimit-Reset. None if unknown."""
    retry_after = resp.headers.get("Retry-After")
    if retry_after:
        try:
            return max(0, int(retry_after))
        except ValueError:
            pass

    reset = resp.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0, int(reset) - int(now if now is not None else time.time()))
        except ValueError:
            pass
    return None


def _repo_name_from_url(url):
    """'https://api.github.com/repos/owner/repo' -> 'owner/repo'"""
    parts = (url or "").rstrip("/").split("/")
    if len(parts) < 2:
        return ""
    return f"{parts[-2]}/{parts[-1]}"


def _truncate(text, limit):
    text = (text or "").strip()
    return text[:limit]


class GitHubClient:
    """
    Thin wrapper around the GitHub REST API.

    session is injectable so tests can hand in a mock instead of hitting
    the network.
    """

    def __init__(self, token=GITHUB_TOKEN, session=None, timeout=20, api_base=API_BASE):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

        self.headers = dict(BASE_HEADERS)
        # A token raises the rate limit from 60 to 5000 requests/hour.
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    # ----------------------------
    # HTTP
    # ----------------------------
    def _get(self, path, params=None):
        """
        GET a path (or full URL) and return the parsed JSON body.
        Raises one of the errors.Upstream* exceptions on failure.
        """
        url = path if path.startswith("http") else f"{self.api_base}{path}"

        try:
            resp = self.session.get(url, headers=self.headers, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            # Timeouts, DNS issues, no internet, etc.
            raise UpstreamError(f"Network error calling GitHub API: {e}") from e

        if resp.status_code == 404:
            raise UpstreamNotFound(f"Not found (404): {url}")

        if resp.status_code in (403, 429) and _is_rate_limited(resp):
            retry_after = _retry_after(resp)
            raise UpstreamRateLimited(
                f"GitHub rate limit exceeded ({resp.status_code}).",
                retry_after=retry_after,
                status_code=resp.status_code,
            )

        if resp.status_code == 401:
            raise UpstreamError("Unauthorized (401). Check your GITHUB_TOKEN.", status_code=401)

        if resp.status_code != 200:
            raise UpstreamError(
                f"GitHub API error: status {resp.status_code}", status_code=resp.status_code
            )

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError("GitHub response was not valid JSON.") from e

    # ----------------------------
    # Sub-fetches
    # ----------------------------
    def fetch_user_profile(self, username):
        """Profile fields plus the number of public organizations."""
        logger.info("Fetching GitHub profile for %s", username)
        data = self._get(f"/users/{username}")
        orgs = self._get(f"/users/{username}/orgs", params={"per_page": 100})

        return {
            "username": data.get("login", username),
            "name": data.get("name"),
            "avatar_url": data.get("avatar_url"),
            "bio": data.get("bio"),
            "followers": int(data.get("followers", 0) or 0),
            "public_repos": int(data.get("public_repos", 0) or 0),
            "company": data.get("company"),
            "location": data.get("location"),
            "blog": data.get("blog"),
            "email": data.get("email"),
            "twitter_username": data.get("twitter_username"),
            "org_count": len(orgs) if isinstance(orgs, list) else 0,
        }

    def fetch_user_repos(self, username):
        """Up to 100 repos owned by the user, most recently pushed first."""
        logger.info("Fetching repos for %s", username)
        data = self._get(
            f"/users/{username}/repos",
            params={"type": "owner", "sort": "pushed", "per_page": 100},
        )
        if not isinstance(data, list):
            raise UpstreamError("Unexpected response format for repos.")

        return [
            {
                "name": r.get("name"),
                "full_name": r.get("full_name"),
                "description": r.get("description"),
                "stars": int(r.get("stargazers_count", 0) or 0),
                "forks": int(r.get("forks_count", 0) or 0),
                "language": r.get("language"),
                "is_fork": bool(r.get("fork", False)),
            }
            for r in data
        ]

    def fetch_recent_prs(self, username):
        """
        Up to 100 public PRs authored by the user, in any repo.
        The search API only tells us "merged" through pull_request.merged_at.
        """
        data = self._get(
            "/search/issues",
            params={"q": f"author:{username} type:pr is:public", "per_page": 100},
        )

        prs = []
        for item in data.get("items", []) or []:
            merged_at = (item.get("pull_request") or {}).get("merged_at")
            prs.append({
                "id": item.get("id"),
                "number": item.get("number"),
                "title": item.get("title", ""),
                "state": item.get("state"),
                "merged": bool(merged_at),
                "merged_at": merged_at,
                "created_at": item.get("created_at"),
                "repo_name": _repo_name_from_url(item.get("repository_url")),
            })
        return prs

    def fetch_resolved_issues(self, username):
        """Up to 50 closed public issues assigned to the user."""
        data = self._get(
            "/search/issues",
            params={"q": f"assignee:{username} type:issue state:closed is:public", "per_page": 50},
        )
        return [
            {
                "id": item.get("id"),
                "title": item.get("title", ""),
                "state": item.get("state"),
                "created_at": item.get("created_at"),
                "closed_at": item.get("closed_at"),
            }
            for item in data.get("items", []) or []
        ]

    def fetch_recent_commits(self, username):
        """
        Sample of up to 50 recent commits: [{message, date, repo_name}, ...]

        Push events are cheap (one request) but only cover ~90 days. If they
        give fewer than 20 commits, top up from the user's most recently
        pushed repos. A repo we can't read is skipped; rate limiting is not.
        """
        logger.info("Fetching recent commits for %s", username)
        events = self._get(f"/users/{username}/events/public", params={"per_page": 50})

        commits = []
        for event in events or []:
            if event.get("type") != "PushEvent":
                continue
            for c in (event.get("payload") or {}).get("commits", []) or []:
                commits.append({
                    "message": c.get("message", ""),
                    "date": event.get("created_at", ""),
                    "repo_name": (event.get("repo") or {}).get("name", ""),
                })

        logger.debug("Commits from push events for %s: %d", username, len(commits))
        if len(commits) >= MIN_EVENT_COMMITS:
            return commits[:MAX_SAMPLE_COMMITS]

        try:
            repos = self._get(
                f"/users/{username}/repos",
                params={"type": "owner", "sort": "pushed", "per_page": FALLBACK_REPOS},
            )
        except UpstreamRateLimited:
            raise
        except UpstreamError as e:
            logger.warning("Could not list repos for commit sampling of %s: %s", username, e)
            return commits

        for repo in repos or []:
            if len(commits) >= MAX_SAMPLE_COMMITS:
                break
            name = repo.get("name")
            try:
                repo_commits = self._get(
                    f"/repos/{username}/{name}/commits",
                    params={"author": username, "per_page": 10},
                )
            except UpstreamRateLimited:
                raise
            except UpstreamError as e:
                # Empty repos answer 409, private forks 404, etc.
                logger.debug("Skipping commits of %s/%s: %s", username, name, e)
                continue

            for c in repo_commits or []:
                if len(commits) >= MAX_SAMPLE_COMMITS:
                    break
                info = c.get("commit") or {}
                commits.append({
                    "message": info.get("message", ""),
                    "date": (info.get("author") or {}).get("date", ""),
                    "repo_name": f"{username}/{name}",
                })

        logger.debug("Total commits sampled for %s: %d", username, len(commits))
        return commits

    def fetch_total_commits(self, username):
        """
        Lifetime commit count from the commit search API.
        GitHub answers 422 when the author can't be searched; that is 0.
        """
        try:
            data = self._get("/search/commits", params={"q": f"author:{username}", "per_page": 1})
        except UpstreamNotFound:
            raise
        except UpstreamRateLimited:
            raise
        except UpstreamError as e:
            if e.status_code == 422:
                logger.warning("Commit search rejected for %s, using 0 total commits", username)
                return 0
            raise
        return int(data.get("total_count", 0) or 0)

    def fetch_pr_details_for_ai(self, prs):
        """
        Text summaries of the 5 most recently merged PRs, enriched with
        review verdicts and a few review comments.

        Enrichment is best effort: if the extra calls fail for a PR we
        still send a one-line summary of it.
        """
        details = []
        for pr in top_merged_prs(prs):
            repo_name = pr.get("repo_name", "")
            number = pr.get("number")
            try:
                base = f"/repos/{repo_name}/pulls/{number}"
                pr_data = self._get(base)
                reviews = self._get(f"{base}/reviews") or []
                comments = self._get(f"{base}/comments") or []
            except UpstreamError as e:
                logger.warning("Could not fetch details for PR #%s in %s: %s", number, repo_name, e)
                details.append(f"PR #{number}: {pr.get('title', '')} ({repo_name}) - MERGED")
                continue

            lines = [
                f"PR #{number}: {pr.get('title', '')}",
                f"Repo: {repo_name} | Status: MERGED",
                f"Description: {_truncate(pr_data.get('body'), 200) or 'No description'}",
                f"Changes: +{pr_data.get('additions', 0)} -{pr_data.get('deletions', 0)} lines",
            ]

            if reviews:
                states = ", ".join(str(r.get("state", "")) for r in reviews)
                lines.append(f"Reviews ({len(reviews)}): {states}")
                for r in reviews:
                    if r.get("body"):
                        login = (r.get("user") or {}).get("login", "unknown")
                        lines.append(f"  Review by {login}: {_truncate(r['body'], 150)}...")

            if comments:
                lines.append(f"Review Comments ({len(comments)}):")
                for c in comments[:3]:
                    login = (c.get("user") or {}).get("login", "unknown")
                    lines.append(f"  - {login}: {_truncate(c.get('body'), 100)}...")

            details.append("\n".join(lines))

        return details

    # ----------------------------
    # Fan-out
    # ----------------------------
    def fetch_all(self, username):
        """
        Run the six sub-fetches concurrently and wait for all of them.

        Returns a dict with keys: profile, repos, prs, issues,
        recent_commits, total_commits.

        All six calls start at once, one thread each. If any of them fails,
        the group waits for the calls already in flight to finish and then
        re-raises the first failure; we never return partially filled data.

        The threads share self.session. It is only used for GETs, and its
        connection pool (10 connections by default) covers six workers.
        """
        tasks = {
            "profile": self.fetch_user_profile,
            "repos": self.fetch_user_repos,
            "prs": self.fetch_recent_prs,
            "issues": self.fetch_resolved_issues,
            "recent_commits": self.fetch_recent_commits,
            "total_commits": self.fetch_total_commits,
        }

        results = {}
        with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
            futures = {executor.submit(fn, username): key for key, fn in tasks.items()}
            for future in as_completed(futures):
                # leaving the with block still joins the other workers
                results[futures[future]] = future.result()

        return results
