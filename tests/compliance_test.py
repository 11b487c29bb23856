"""
Verification Scenarios for Rule Checks, the Rule Registry and Score Aggregation
"""

import json
import unittest

from fixture_backend import FORM_PAGE, GOOD_PAGE, SPA_SHELL
from compliance import checks
from compliance.checks import CheckOutcome
from compliance.models import CheckContext, Priority, RuleCheckResult
from compliance.registry import DEFAULT_RULE_CHECKS, RegistryConfigError, RuleCheck, RuleRegistry
from compliance.scoring import ScoringAggregator
from profiles.registry import ProfileRegistry
from rendering.models import HtmlSnapshot, TimingMetrics


def _context(initial_payload, profile_id="advanced"):
    return CheckContext(profile=ProfileRegistry().get(profile_id), initial_payload=initial_payload)


def _result(requirement_id, weight, score, issues=(), threshold=70):
    return RuleCheckResult(
        requirement_id=requirement_id,
        name=f"Requirement {requirement_id}",
        weight=weight,
        score=score,
        passed=score >= threshold,
        issues=list(issues),
    )


class TestRuleRegistry(unittest.TestCase):
    def test_default_weights(self):
        registry = RuleRegistry()
        self.assertEqual(registry.total_weight, 100)
        self.assertEqual([r.requirement_id for r in registry.checks], ["FR1", "FR2", "FR3", "FR4", "FR5", "FR6", "FR7"])
        self.assertEqual(registry.weight_of("FR1"), 30)
        self.assertEqual(registry.weight_of("FR7"), 5)

    def test_weights_must_sum_to_100(self):
        with self.assertRaises(RegistryConfigError):
            RuleRegistry(DEFAULT_RULE_CHECKS[:-1])

    def test_duplicate_ids_rejected(self):
        rules = (RuleCheck("FR1", "A", 50, checks.check_forms), RuleCheck("FR1", "B", 50, checks.check_forms))
        with self.assertRaises(RegistryConfigError):
            RuleRegistry(rules)

    def test_non_positive_weight_rejected(self):
        rules = (RuleCheck("A", "A", 0, checks.check_forms), RuleCheck("B", "B", 100, checks.check_forms))
        with self.assertRaises(RegistryConfigError):
            RuleRegistry(rules)

    def test_failing_check_is_isolated(self):
        """Scenario: one check raises; it scores 0 and its sibling still runs."""
        def explode(page, ctx):
            raise RuntimeError("boom")

        registry = RuleRegistry((
            RuleCheck("FRX", "Explodes", 50, explode),
            RuleCheck("FRY", "Overshoots", 50, lambda page, ctx: CheckOutcome(150)),
        ))
        page = HtmlSnapshot("https://acme.test/", GOOD_PAGE)
        results = registry.evaluate(page, _context(page))

        self.assertEqual(results["FRX"].score, 0)
        self.assertFalse(results["FRX"].passed)
        self.assertEqual(results["FRX"].issues, ["FRX check error: boom"])
        # Out-of-range scores are clamped
        self.assertEqual(results["FRY"].score, 100)
        self.assertTrue(results["FRY"].passed)

    def test_scores_bounded_and_passed_consistent(self):
        registry = RuleRegistry()
        for html in (GOOD_PAGE, SPA_SHELL, FORM_PAGE):
            page = HtmlSnapshot("https://acme.test/", html)
            for result in registry.evaluate(page, _context(page)).values():
                self.assertTrue(0 <= result.score <= 100)
                self.assertEqual(result.passed, result.score >= 70)

    def test_repeated_evaluation_is_identical(self):
        """Scenario: every check evaluated twice on the same snapshot gives the same serialized result."""
        registry = RuleRegistry()
        for html in (GOOD_PAGE, SPA_SHELL, FORM_PAGE):
            page = HtmlSnapshot("https://acme.test/", html)
            initial = HtmlSnapshot("https://acme.test/", SPA_SHELL)
            first = registry.evaluate(page, _context(initial))
            second = registry.evaluate(page, _context(initial))

            self.assertEqual(first, second)
            self.assertEqual(
                json.dumps({k: v.to_dict() for k, v in first.items()}),
                json.dumps({k: v.to_dict() for k, v in second.items()}),
            )


class TestRuleChecks(unittest.TestCase):
    def setUp(self):
        self.good = HtmlSnapshot("https://acme.test/", GOOD_PAGE)
        self.shell = HtmlSnapshot("https://acme.test/", SPA_SHELL)

    def test_well_built_page_scores_full_marks(self):
        results = RuleRegistry().evaluate(self.good, _context(self.good))
        for requirement_id, result in results.items():
            self.assertEqual(result.score, 100, f"{requirement_id}: {result.issues}")

    def test_initial_payload_uses_scriptless_snapshot(self):
        """Scenario: content only appears after script runs; FR1 judges the shell."""
        outcome = checks.check_initial_payload(self.good, _context(self.shell))
        self.assertEqual(outcome.score, 0)
        self.assertEqual(len(outcome.issues), 4)

    def test_initial_payload_partial(self):
        html = "<html><body><main><h1>Hello</h1></main></body></html>"
        page = HtmlSnapshot("https://acme.test/", html)
        outcome = checks.check_initial_payload(page, _context(page))
        # Heading and main present; text too short and no navigation
        self.assertEqual(outcome.score, 50)

    def test_heading_gap(self):
        html = "<html><body><header></header><nav></nav><main><h1>A</h1><h3>B</h3></main><footer></footer></body></html>"
        page = HtmlSnapshot("https://acme.test/", html)
        outcome = checks.check_semantic_structure(page, _context(page))
        self.assertEqual(outcome.score, 67)
        self.assertIn("Heading hierarchy has gaps (e.g., h1 directly to h3)", outcome.issues)

    def test_landmark_roles_count(self):
        html = ('<html><body><div role="banner"><h1>A</h1></div><div role="navigation"></div>'
                '<div role="main"></div><div role="contentinfo"></div></body></html>')
        page = HtmlSnapshot("https://acme.test/", html)
        self.assertEqual(checks.check_semantic_structure(page, _context(page)).score, 100)

    def test_aria_penalties(self):
        html = '<html><body><img src="a.png"><button></button><input type="hidden" name="t"></body></html>'
        page = HtmlSnapshot("https://acme.test/", html)
        outcome = checks.check_aria(page, _context(page))
        self.assertEqual(outcome.score, 0)
        self.assertIn("1 images missing alt attributes", outcome.issues)
        self.assertIn("1 interactive elements lack accessible names", outcome.issues)

    def test_negative_tabindex(self):
        html = '<html><body><nav><ul><li><a href="/">Home</a></li></ul></nav><div tabindex="-1">x</div></body></html>'
        page = HtmlSnapshot("https://acme.test/", html)
        outcome = checks.check_navigation(page, _context(page))
        # Breadcrumb found; skip link missing; negative tabindex
        self.assertEqual(outcome.score, 33)

    def test_form_labels(self):
        page = HtmlSnapshot("https://acme.test/", FORM_PAGE)
        outcome = checks.check_forms(page, _context(page))
        # 3 of 4 fillable controls labeled: 80 * 0.75 + 20
        self.assertEqual(outcome.score, 80)
        self.assertIn("1 form controls missing labels", outcome.issues)

    def test_fieldset_without_legend(self):
        html = '<html><body><form><fieldset><input aria-label="q"></fieldset></form></body></html>'
        page = HtmlSnapshot("https://acme.test/", html)
        outcome = checks.check_forms(page, _context(page))
        self.assertEqual(outcome.score, 80)
        self.assertIn("Some fieldsets missing legends", outcome.issues)

    def test_content_discovery_on_shell(self):
        outcome = checks.check_content_discovery(self.shell, _context(self.shell))
        self.assertEqual(outcome.score, 20)
        self.assertIn("Missing meta description", outcome.issues)

    def test_performance_deductions(self):
        links = "".join(f'<link rel="stylesheet" href="/{i}.css">' for i in range(4))
        page = HtmlSnapshot(
            "https://acme.test/",
            f"<html><head>{links}</head><body><img src='big.png' alt='big'></body></html>",
            metrics=TimingMetrics(total_load_time=2500.0),
            oversized_image_count=2,
        )
        outcome = checks.check_performance(page, _context(page))
        # -15 load, -25 oversized, -10 stylesheets
        self.assertEqual(outcome.score, 50)


class TestScoringAggregator(unittest.TestCase):
    def setUp(self):
        self.aggregator = ScoringAggregator(pass_threshold=70)
        self.weights = {"FR1": 30, "FR2": 20, "FR3": 15, "FR4": 10, "FR5": 10, "FR6": 10, "FR7": 5}

    def _results(self, scores, issues=None):
        issues = issues or {}
        return {rid: _result(rid, w, scores[rid], issues.get(rid, ())) for rid, w in self.weights.items()}

    def test_all_full_marks(self):
        report = self.aggregator.aggregate("https://acme.test/", "advanced", self._results({k: 100 for k in self.weights}))
        self.assertEqual(report.overall_score, 100)
        self.assertTrue(report.passed)
        self.assertEqual(report.recommendations, [])

    def test_all_zero(self):
        report = self.aggregator.aggregate("https://acme.test/", "advanced", self._results({k: 0 for k in self.weights}))
        self.assertEqual(report.overall_score, 0)
        self.assertFalse(report.passed)

    def test_weighted_average_rounds_half_up(self):
        scores = {"FR1": 100, "FR2": 100, "FR3": 100, "FR4": 100, "FR5": 100, "FR6": 100, "FR7": 50}
        # (9500 + 250) / 100 = 97.5
        report = self.aggregator.aggregate("https://acme.test/", "advanced", self._results(scores))
        self.assertEqual(report.overall_score, 98)

    def test_deterministic(self):
        scores = {"FR1": 33, "FR2": 67, "FR3": 60, "FR4": 33, "FR5": 100, "FR6": 20, "FR7": 85}
        first = self.aggregator.aggregate("https://acme.test/", "basic", self._results(scores))
        second = self.aggregator.aggregate("https://acme.test/", "basic", self._results(scores))
        self.assertEqual(first.overall_score, second.overall_score)
        self.assertEqual(first.recommendations, second.recommendations)

    def test_recommendations_high_priority_first(self):
        scores = {"FR1": 50, "FR2": 33, "FR3": 100, "FR4": 100, "FR5": 100, "FR6": 100, "FR7": 100}
        issues = {
            "FR2": ["No heading structure found", "Missing landmarks: nav"],
            "FR1": ["No navigation elements found"],
        }
        report = self.aggregator.aggregate("https://acme.test/", "basic", self._results(scores, issues))

        self.assertEqual([r.requirement_id for r in report.recommendations], ["FR1", "FR2", "FR2"])
        self.assertIs(report.recommendations[0].priority, Priority.HIGH)
        self.assertIs(report.recommendations[1].priority, Priority.MEDIUM)
        # Issue order within a requirement is preserved
        self.assertEqual(report.recommendations[1].issue, "No heading structure found")

    def test_passing_results_yield_no_recommendations(self):
        scores = {k: 80 for k in self.weights}
        report = self.aggregator.aggregate(
            "https://acme.test/", "basic", self._results(scores, {"FR3": ["1 images missing alt attributes"]})
        )
        self.assertEqual(report.recommendations, [])

    def test_failed_report(self):
        report = ScoringAggregator.failed_report("https://acme.test/", "basic", "Rendering timed out")
        self.assertEqual(report.overall_score, 0)
        self.assertFalse(report.passed)
        self.assertEqual(report.results, {})

        data = report.to_dict()
        self.assertEqual(data["error"], "Rendering timed out")
        self.assertIsInstance(data["timestamp"], str)


if __name__ == "__main__":
    unittest.main()
