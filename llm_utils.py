# llm_utils.py
#
# Purpose:
# This file is the "LLM analysis" layer. It sends a small sample of a
# developer's merged PRs (with review text) and recent commit messages to an
# LLM (Groq) and turns the answer into an AIAssessment.
#
# Key design choices:
# 1) The API key comes from the environment (never hard-coded)
# 2) The model is forced to return JSON only, then parsed and validated
# 3) Retries with exponential backoff because LLM APIs fail or ramble
# 4) Numbers are clamped into their contracted ranges, missing ones defaulted
# 5) Any failure is raised as AIUnavailable; the orchestrator decides to
#    fall back to default_assessment()

import json
import logging
import os
import re
import time

from groq import Groq

from errors import AIUnavailable
from models import AIAssessment

logger = logging.getLogger(__name__)

GROQ_API_KEY = os.getenv("GROQ_API_KEY")

# Allow model to be overridden for testing, but default to a fast/cheap one.
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")

MULTIPLIER_RANGE = (0.8, 1.2)
COMMIT_SCORE_RANGE = (0, 15)
DEFAULT_MULTIPLIER = 1.0
DEFAULT_COMMIT_SCORE = 10
DEFAULT_PERSONA = "The Pragmatist"
DEFAULT_SUMMARY = "AI analysis unavailable (service offline)."

PERSONAS = [
    "The Architect",
    "The Bug Slayer",
    "The Performance Wizard",
    "The Full-Stack Virtuoso",
    "The Open Source Champion",
    "The Code Reviewer",
    "The Feature Builder",
    "The Pragmatist",
]


def default_assessment():
    """The neutral judgment used whenever the AI can't be trusted or reached."""
    return AIAssessment(
        multiplier=DEFAULT_MULTIPLIER,
        commit_score=DEFAULT_COMMIT_SCORE,
        persona=DEFAULT_PERSONA,
        summary=DEFAULT_SUMMARY,
    )


def _extract_json(text):
    """
    Parse JSON from the model output.

    LLMs sometimes add markdown fences like ```json ... ``` or extra
    commentary even when told not to. Best-effort extraction:
      1) remove markdown fences
      2) try json.loads directly
      3) regex-search for the first {...} block and parse that
    """
    if not text:
        raise ValueError("Empty response")

    cleaned = text.strip()
    cleaned = cleaned.replace("```json", "").replace("```", "").strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    m = re.search(r"\{.*\}", cleaned, flags=re.DOTALL)
    if not m:
        raise ValueError("No JSON object found in model output.")
    return json.loads(m.group(0))


def _number(value):
    """float(value), or None for anything that isn't a finite number."""
    if isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if n != n or n in (float("inf"), float("-inf")):
        return None
    return n


def _clamp(n, lo, hi):
    return max(lo, min(hi, n))


def sanitize_assessment(data):
    """
    Turn the model's JSON dict into an AIAssessment we can score with.

    - multiplier: clamped to [0.8, 1.2], defaults to 1.0
    - commit score: clamped to [0, 15], defaults to 10
      (accepts "commit_score" or the camelCase "commitScore")
    - job fit score: clamped to [0, 100], None if absent
    - persona/summary: strings, defaulted if empty

    Out-of-range values are logged, not rejected.
    """
    if not isinstance(data, dict):
        raise ValueError("Model output is not a JSON object.")

    multiplier = _number(data.get("multiplier"))
    if multiplier is None:
        logger.warning("AI multiplier missing or not numeric, using %.1f", DEFAULT_MULTIPLIER)
        multiplier = DEFAULT_MULTIPLIER
    elif not MULTIPLIER_RANGE[0] <= multiplier <= MULTIPLIER_RANGE[1]:
        logger.warning("AI multiplier %.2f out of range, clamping", multiplier)
        multiplier = _clamp(multiplier, *MULTIPLIER_RANGE)

    raw_commit = data.get("commit_score", data.get("commitScore"))
    commit_score = _number(raw_commit)
    if commit_score is None:
        logger.warning("AI commit score missing or not numeric, using %d", DEFAULT_COMMIT_SCORE)
        commit_score = DEFAULT_COMMIT_SCORE
    elif not COMMIT_SCORE_RANGE[0] <= commit_score <= COMMIT_SCORE_RANGE[1]:
        logger.warning("AI commit score %s out of range, clamping", raw_commit)
        commit_score = _clamp(commit_score, *COMMIT_SCORE_RANGE)

    job_fit = _number(data.get("job_fit_score"))
    if job_fit is not None:
        job_fit = int(round(_clamp(job_fit, 0, 100)))

    match_reason = data.get("match_reason")
    if match_reason is not None:
        match_reason = str(match_reason)[:300]

    return AIAssessment(
        multiplier=round(multiplier, 2),
        commit_score=int(round(commit_score)),
        persona=str(data.get("persona") or DEFAULT_PERSONA)[:80],
        summary=str(data.get("summary") or "")[:600],
        job_fit_score=job_fit,
        match_reason=match_reason,
    )


def build_prompt(username, pr_summaries, commit_logs, job_description=None):
    """The evaluation prompt. Kept strict about JSON so parsing stays simple."""
    prs = "\n\n---\n\n".join(pr_summaries) if pr_summaries else "(no merged pull requests found)"
    commits = "\n".join(commit_logs[:20]) if commit_logs else "(no recent commits found)"
    personas = "\n".join(f'   - "{p}"' for p in PERSONAS)

    job_section = ""
    job_keys = ""
    if job_description:
        job_section = f"""
5. **Job Fit** for the job description below:
   - job_fit_score (integer 0-100): how well the evidence matches the role
   - match_reason (string, <= 300 chars): one or two sentences why

Job description:
{job_description.strip()[:3000]}
"""
        job_keys = ',\n    "job_fit_score": 70,\n    "match_reason": "..."'

    return f"""
You are a Senior Engineering Manager evaluating a developer profile.

**Developer**: {username}

**Pull Request Quality Analysis**:
{prs}

**Commit Message Quality**:
{commits}

**Evaluation Criteria**:

1. **Engineering Quality Multiplier (0.8 - 1.2)**:
   - 1.2 = Exceptional: large PRs with thorough reviews, complex problems, significant impact
   - 1.1 = Above Average: well-reviewed PRs, clean code, good practices
   - 1.0 = Average: standard contributions, some reviews
   - 0.9 = Below Average: small changes, minimal review engagement
   - 0.8 = Amateur: trivial changes, poor quality

2. **Commit Quality Score (0-15)**:
   - 13-15: Excellent - follows conventions (feat:, fix:), atomic, descriptive
   - 10-12: Good - mostly clear, some conventions
   - 7-9: Average - basic descriptions, inconsistent
   - 4-6: Poor - vague messages ("fix", "update")
   - 0-3: Very Poor - meaningless or spam

3. **Persona**: choose one of:
{personas}

4. **Summary**: 2 sentences about coding style, PR quality, and impact.
{job_section}
Return ONLY valid JSON (no markdown, no extra text):
{{
    "multiplier": 1.05,
    "persona": "The Pragmatist",
    "summary": "...",
    "commit_score": 12{job_keys}
}}
""".strip()


class GroqAssessor:
    """
    AI assessment client.

    client can be injected (tests pass a mock); otherwise a Groq client is
    created on first use so a missing key only matters when we actually
    call the model.
    """

    def __init__(self, api_key=GROQ_API_KEY, model=GROQ_MODEL, client=None,
                 max_attempts=3, backoff_seconds=1.0):
        self.api_key = api_key
        self.model = model
        self._client = client
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise AIUnavailable("Missing GROQ_API_KEY.")
            self._client = Groq(api_key=self.api_key)
        return self._client

    def analyze_profile(self, username, pr_summaries, commit_logs, job_description=None):
        """
        Ask the model for an assessment.

        Returns an AIAssessment. Raises AIUnavailable when the key is
        missing or every attempt failed (API error, quota, bad JSON).
        """
        client = self._get_client()
        prompt = build_prompt(username, pr_summaries, commit_logs, job_description)

        logger.info(
            "Sending AI analysis for %s (model=%s, prs=%d, commits=%d)",
            username, self.model, len(pr_summaries), len(commit_logs),
        )
        logger.debug("AI prompt for %s: %s", username, prompt[:200].replace("\n", " "))

        last_error = None
        last_raw = ""

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": "You return only valid JSON. No markdown. No commentary."},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=0.2,
                    max_tokens=600,
                )
                raw = (resp.choices[0].message.content or "").strip()
                last_raw = raw
                assessment = sanitize_assessment(_extract_json(raw))
                logger.info("Received AI analysis for %s (persona=%s)", username, assessment.persona)
                return assessment

            except Exception as e:
                # groq raises its own APIError family; bad JSON raises ValueError
                last_error = repr(e)
                logger.warning("AI attempt %d/%d for %s failed: %s", attempt, self.max_attempts, username, last_error)
                if attempt < self.max_attempts:
                    # 1s, 2s, 4s ...
                    time.sleep(self.backoff_seconds * 2 ** (attempt - 1))

        preview = (last_raw[:300] + "...") if last_raw else ""
        raise AIUnavailable(f"AI analysis failed after retries. Last error: {last_error}. Preview: {preview}")
