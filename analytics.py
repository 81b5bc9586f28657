# analytics.py
#
# Purpose:
# The "transform" step between github_api.py and scoring.py. GitHub gives us
# lists of dicts; this file boils them down to the counters the score needs
# and picks the small samples we send to the AI.
#
# Everything here is a pure function over plain dicts, so it is easy to test
# without the network.

import re
from datetime import datetime, timezone

from models import DeveloperProfile, ProfileMetrics

MAX_AI_PRS = 5
MAX_AI_COMMITS = 20

# GitHub logins: alphanumerics and single hyphens, at most 39 characters.
GITHUB_LOGIN_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")


def _parse_github_datetime(dt_str):
    """
    GitHub timestamps look like: '2024-01-01T12:34:56Z'
    Convert that string into a Python datetime object.
    Return None if dt_str is missing or invalid.
    """
    if not dt_str:
        return None
    try:
        # fromisoformat doesn't understand "Z", so we replace it with "+00:00"
        return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


def total_stars(repos):
    """Sum of stars across the user's owned repos."""
    return sum(int(r.get("stars", 0) or 0) for r in repos)


def language_breadth(repos):
    """Number of distinct primary languages across repos (None ignored)."""
    return len({r.get("language") for r in repos if r.get("language")})


def closed_prs(prs):
    """PRs in the closed state. Merged PRs are also 'closed' in the search API."""
    return [p for p in prs if p.get("state") == "closed"]


def merged_prs(prs):
    """Closed PRs that were actually merged."""
    return [p for p in closed_prs(prs) if p.get("merged")]


def acceptance_rate(prs):
    """
    Percent of closed PRs that were merged (0-100).
    No closed PRs means 0, not 100.
    """
    closed = closed_prs(prs)
    if not closed:
        return 0.0
    return len(merged_prs(prs)) / len(closed) * 100


def build_developer_profile(profile):
    """Identity fields from a github_api profile dict."""
    return DeveloperProfile(
        username=profile.get("username", ""),
        name=profile.get("name"),
        avatar_url=profile.get("avatar_url"),
        bio=profile.get("bio"),
        location=profile.get("location"),
        blog=profile.get("blog"),
        twitter_username=profile.get("twitter_username"),
        company=profile.get("company"),
        email=profile.get("email"),
    )


def build_profile_metrics(profile, repos, prs, issues, total_commits):
    """
    Collapse one fetch cycle into a ProfileMetrics snapshot.

    Inputs are the return values of the GitHubClient fetch_* methods.
    """
    return ProfileMetrics(
        followers=int(profile.get("followers", 0) or 0),
        org_count=int(profile.get("org_count", 0) or 0),
        public_repos=int(profile.get("public_repos", 0) or 0),
        total_commits=int(total_commits or 0),
        total_stars=total_stars(repos),
        merged_prs=len(merged_prs(prs)),
        closed_prs=len(closed_prs(prs)),
        pr_acceptance_rate=acceptance_rate(prs),
        issues_closed=len([i for i in issues if i.get("state") == "closed"]),
        language_breadth=language_breadth(repos),
    )


def top_merged_prs(prs, n=MAX_AI_PRS):
    """
    The n most recently merged PRs, newest first.
    PRs with an unparseable merge date sort last.
    """
    oldest = datetime.min.replace(tzinfo=timezone.utc)
    merged = [p for p in prs if p.get("merged")]
    return sorted(
        merged,
        key=lambda p: _parse_github_datetime(p.get("merged_at")) or oldest,
        reverse=True,
    )[:n]


def build_commit_logs(commits, n=MAX_AI_COMMITS):
    """
    Format up to n commits as "date: message" lines for the AI prompt.
    Only the first line of each message is kept.
    """
    logs = []
    for c in commits[:n]:
        message = (c.get("message") or "").strip().splitlines()
        first_line = message[0] if message else ""
        logs.append(f"{c.get('date', '')}: {first_line}")
    return logs


def extract_username(value):
    """
    Accept either a bare username or a profile URL and return the username.

      "octocat"                         -> "octocat"
      "https://github.com/octocat/"     -> "octocat"
      "github.com/octocat/hello-world"  -> "octocat"

    Returns "" when nothing usable is found, including anything that is
    not a valid GitHub login.
    """
    text = str(value or "").strip()
    if "github.com/" in text:
        text = text.split("github.com/", 1)[1]
    elif "/" in text or " " in text:
        return ""
    login = text.split("/")[0].split("?")[0].split("#")[0].strip()
    if not GITHUB_LOGIN_RE.match(login):
        return ""
    return login
