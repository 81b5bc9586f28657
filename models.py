# models.py
#
# Purpose:
# The records that flow through a rating:
#
#   GitHub payloads -> DeveloperProfile + ProfileMetrics
#   AI assessor     -> AIAssessment
#   scoring.py      -> ScoreBreakdown
#   db_utils.py     <- CachedRating (all of the above + a timestamp)
#
# Every record is a frozen dataclass. Once a fetch cycle has produced a
# snapshot nobody edits it; a recomputation builds brand new records.
#
# The to_dict()/from_dict() pairs exist because SQLite stores the metrics,
# breakdown and AI output as JSON text. from_dict() is forgiving about
# missing keys so rows written by older versions still load.

from dataclasses import asdict, dataclass, field


def _int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class DeveloperProfile:
    """Identity and contact fields shown next to a rating."""

    username: str
    name: str = None
    avatar_url: str = None
    bio: str = None
    location: str = None
    blog: str = None
    twitter_username: str = None
    company: str = None
    email: str = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            username=str(data.get("username", "")),
            name=data.get("name"),
            avatar_url=data.get("avatar_url"),
            bio=data.get("bio"),
            location=data.get("location"),
            blog=data.get("blog"),
            twitter_username=data.get("twitter_username"),
            company=data.get("company"),
            email=data.get("email"),
        )


@dataclass(frozen=True)
class ProfileMetrics:
    """
    Platform counters for one fetch cycle.

    pr_acceptance_rate is a percentage (0-100) of closed PRs that were
    merged; the composer recomputes the ratio from merged_prs / closed_prs.
    """

    followers: int = 0
    org_count: int = 0
    public_repos: int = 0
    total_commits: int = 0
    total_stars: int = 0
    merged_prs: int = 0
    closed_prs: int = 0
    pr_acceptance_rate: float = 0.0
    issues_closed: int = 0
    language_breadth: int = 0

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            followers=_int(data.get("followers")),
            org_count=_int(data.get("org_count")),
            public_repos=_int(data.get("public_repos")),
            total_commits=_int(data.get("total_commits")),
            total_stars=_int(data.get("total_stars")),
            merged_prs=_int(data.get("merged_prs")),
            closed_prs=_int(data.get("closed_prs")),
            pr_acceptance_rate=_float(data.get("pr_acceptance_rate")),
            issues_closed=_int(data.get("issues_closed")),
            language_breadth=_int(data.get("language_breadth")),
        )


@dataclass(frozen=True)
class AIAssessment:
    """
    What the language model thought of the developer.

    multiplier is contracted to [0.8, 1.2] and commit_score to [0, 15], but
    this record does not enforce that; llm_utils.sanitize_assessment() and
    scoring.compose_score() both clamp.
    """

    multiplier: float = 1.0
    commit_score: int = 10
    persona: str = ""
    summary: str = ""
    job_fit_score: int = None
    match_reason: str = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        job_fit = data.get("job_fit_score")
        return cls(
            multiplier=_float(data.get("multiplier"), 1.0),
            # older rows used the camelCase key
            commit_score=_int(data.get("commit_score", data.get("commitScore")), 10),
            persona=str(data.get("persona") or ""),
            summary=str(data.get("summary") or ""),
            job_fit_score=_int(job_fit) if job_fit is not None else None,
            match_reason=data.get("match_reason"),
        )


@dataclass(frozen=True)
class ScoreDetails:
    """Itemized points, each already on its final weight."""

    followers: float = 0.0
    organizations: float = 0.0
    volume: float = 0.0
    acceptance: float = 0.0
    impact: float = 0.0
    issues: float = 0.0
    commit_quality: float = 0.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Output of scoring.compose_score().

    health_score  0-20
    quality_raw   0-100 (sum of the quality components)
    quality_score 0-80  (quality_raw * 0.8)
    total         int 0-100, round(clamp((health + quality) * multiplier))
    """

    health_score: float
    quality_raw: float
    quality_score: float
    ai_multiplier: float
    total: int
    details: ScoreDetails = field(default_factory=ScoreDetails)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        details = data.get("details") or {}
        return cls(
            health_score=_float(data.get("health_score")),
            quality_raw=_float(data.get("quality_raw")),
            quality_score=_float(data.get("quality_score")),
            ai_multiplier=_float(data.get("ai_multiplier"), 1.0),
            total=_int(data.get("total")),
            details=ScoreDetails(
                followers=_float(details.get("followers")),
                organizations=_float(details.get("organizations")),
                volume=_float(details.get("volume")),
                acceptance=_float(details.get("acceptance")),
                impact=_float(details.get("impact")),
                issues=_float(details.get("issues")),
                commit_quality=_float(details.get("commit_quality")),
            ),
        )


@dataclass(frozen=True)
class CachedRating:
    """One persisted computation. last_updated is a timezone-aware UTC datetime."""

    profile: DeveloperProfile
    metrics: ProfileMetrics
    assessment: AIAssessment
    breakdown: ScoreBreakdown
    last_updated: object

    @property
    def username(self):
        return self.profile.username
