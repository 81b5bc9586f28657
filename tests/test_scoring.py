"""
test_scoring.py

Unit tests for the scoring module: log scaling, score composition and
tier classification. The composer is pure, so every test here just builds
a ProfileMetrics/AIAssessment pair and checks the numbers.
"""

import unittest

from models import AIAssessment, ProfileMetrics
from scoring import classify_tier, compose_score, log_scale


def _metrics(**overrides):
    return ProfileMetrics(**overrides)


# Scenario B: every metric exactly at its "100" anchor.
MAXED = dict(
    followers=1000,
    org_count=5,
    total_commits=10000,
    closed_prs=10,
    merged_prs=10,
    total_stars=5000,
    issues_closed=50,
)


class TestLogScale(unittest.TestCase):

    def test_zero_and_negative_are_zero(self):
        self.assertEqual(log_scale(0, 1000), 0)
        self.assertEqual(log_scale(-5, 1000), 0)

    def test_value_at_max_expected_is_100(self):
        for m in (2, 50, 1000, 5000, 10000):
            self.assertAlmostEqual(log_scale(m, m), 100)

    def test_above_max_is_capped(self):
        self.assertEqual(log_scale(10_000_000, 5000), 100)

    def test_order_of_magnitude_steps(self):
        # log10(10) / log10(100) = 0.5
        self.assertAlmostEqual(log_scale(10, 100), 50)
        # one is log10(1) = 0
        self.assertEqual(log_scale(1, 100), 0)

    def test_monotonic_non_decreasing(self):
        values = [0, 1, 2, 5, 10, 99, 100, 1000, 5000, 5001, 10**7]
        scores = [log_scale(v, 5000) for v in values]
        self.assertEqual(scores, sorted(scores))


class TestComposeScore(unittest.TestCase):

    def test_scenario_all_zero(self):
        """An empty profile with a zero commit score lands at 0 / Junior."""
        b = compose_score(_metrics(), AIAssessment(multiplier=1.0, commit_score=0))

        self.assertEqual(b.health_score, 0)
        self.assertEqual(b.quality_score, 0)
        self.assertEqual(b.total, 0)
        self.assertEqual(classify_tier(b.total), "Junior")

    def test_scenario_all_maxed(self):
        """Every anchor hit: 20 health + 100 raw quality (80 scaled) = 100."""
        b = compose_score(_metrics(**MAXED), AIAssessment(multiplier=1.0, commit_score=15))

        self.assertAlmostEqual(b.details.followers, 5)
        self.assertAlmostEqual(b.details.organizations, 5)
        self.assertAlmostEqual(b.details.volume, 10)
        self.assertAlmostEqual(b.health_score, 20)

        self.assertAlmostEqual(b.details.acceptance, 35)
        self.assertAlmostEqual(b.details.impact, 35)
        self.assertAlmostEqual(b.details.issues, 15)
        self.assertAlmostEqual(b.details.commit_quality, 15)
        self.assertAlmostEqual(b.quality_raw, 100)
        self.assertAlmostEqual(b.quality_score, 80)

        self.assertEqual(b.total, 100)
        self.assertEqual(classify_tier(b.total), "Legendary")

    def test_no_closed_prs_means_zero_acceptance(self):
        b = compose_score(
            _metrics(closed_prs=0, merged_prs=0),
            AIAssessment(multiplier=1.0, commit_score=0),
        )
        self.assertEqual(b.details.acceptance, 0)
        self.assertEqual(b.total, 0)

    def test_partial_acceptance(self):
        b = compose_score(
            _metrics(closed_prs=4, merged_prs=3),
            AIAssessment(multiplier=1.0, commit_score=0),
        )
        self.assertAlmostEqual(b.details.acceptance, 26.25)

    def test_org_count_is_linear_and_capped(self):
        ai = AIAssessment(multiplier=1.0, commit_score=0)
        self.assertEqual(compose_score(_metrics(org_count=3), ai).details.organizations, 3)
        self.assertEqual(compose_score(_metrics(org_count=40), ai).details.organizations, 5)

    def test_extreme_metrics_stay_in_range(self):
        huge = _metrics(
            followers=10**8,
            org_count=1000,
            total_commits=10**9,
            closed_prs=10**6,
            merged_prs=10**6,
            total_stars=10**7,
            issues_closed=10**6,
        )
        b = compose_score(huge, AIAssessment(multiplier=1.2, commit_score=15))

        self.assertIsInstance(b.total, int)
        self.assertGreaterEqual(b.total, 0)
        self.assertLessEqual(b.total, 100)
        self.assertLessEqual(b.health_score, 20)
        self.assertLessEqual(b.quality_score, 80)

    def test_multiplier_above_range_is_clamped(self):
        b = compose_score(_metrics(**MAXED), AIAssessment(multiplier=1.5, commit_score=15))
        self.assertEqual(b.ai_multiplier, 1.2)
        self.assertEqual(b.total, 100)

    def test_multiplier_below_range_is_clamped(self):
        b = compose_score(_metrics(**MAXED), AIAssessment(multiplier=0.1, commit_score=15))
        self.assertEqual(b.ai_multiplier, 0.8)
        self.assertEqual(b.total, 80)

    def test_multiplier_applies_to_combined_subtotal(self):
        metrics = _metrics(followers=100, total_commits=1000, closed_prs=2, merged_prs=1)
        neutral = compose_score(metrics, AIAssessment(multiplier=1.0, commit_score=10))
        boosted = compose_score(metrics, AIAssessment(multiplier=1.1, commit_score=10))

        subtotal = neutral.health_score + neutral.quality_score
        self.assertEqual(boosted.total, round(subtotal * 1.1))
        # sub-scores themselves are not scaled by the multiplier
        self.assertAlmostEqual(boosted.health_score, neutral.health_score)
        self.assertAlmostEqual(boosted.quality_score, neutral.quality_score)

    def test_commit_score_is_clamped(self):
        high = compose_score(_metrics(), AIAssessment(multiplier=1.0, commit_score=40))
        low = compose_score(_metrics(), AIAssessment(multiplier=1.0, commit_score=-3))
        self.assertEqual(high.details.commit_quality, 15)
        self.assertEqual(low.details.commit_quality, 0)

    def test_garbage_ai_values_fall_back_to_neutral(self):
        b = compose_score(_metrics(), AIAssessment(multiplier="lots", commit_score=None))
        self.assertEqual(b.ai_multiplier, 1.0)
        self.assertEqual(b.details.commit_quality, 10)
        # 10 raw quality points * 0.8
        self.assertEqual(b.total, 8)

    def test_total_matches_formula(self):
        metrics = _metrics(
            followers=250, org_count=2, total_commits=3200,
            closed_prs=30, merged_prs=21, total_stars=480, issues_closed=7,
        )
        ai = AIAssessment(multiplier=0.95, commit_score=11)
        b = compose_score(metrics, ai)
        expected = round(max(0, min(100, (b.health_score + b.quality_score) * 0.95)))
        self.assertEqual(b.total, expected)

    def test_idempotent(self):
        metrics = _metrics(followers=42, org_count=1, total_commits=900, total_stars=77)
        ai = AIAssessment(multiplier=1.05, commit_score=9)
        self.assertEqual(compose_score(metrics, ai), compose_score(metrics, ai))


class TestClassifyTier(unittest.TestCase):

    def test_boundaries(self):
        cases = {
            100: "Legendary",
            90: "Legendary",
            89: "Elite",
            75: "Elite",
            74: "Senior",
            60: "Senior",
            59: "Mid-Level",
            40: "Mid-Level",
            39: "Junior",
            0: "Junior",
        }
        for total, tier in cases.items():
            with self.subTest(total=total):
                self.assertEqual(classify_tier(total), tier)

    def test_out_of_range_falls_through(self):
        self.assertEqual(classify_tier(150), "Legendary")
        self.assertEqual(classify_tier(-10), "Junior")


if __name__ == "__main__":
    unittest.main()
