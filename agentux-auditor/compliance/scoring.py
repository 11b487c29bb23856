from typing import Dict, List

from auditor.core import PASS_THRESHOLD, round_half_up
from compliance.models import ComplianceReport, Priority, Recommendation, RuleCheckResult

# The requirement whose failures outrank every other recommendation
HIGH_PRIORITY_REQUIREMENT = "FR1"


class ScoringAggregator:
    """
    Folds independent RuleCheckResults into one ComplianceReport.
    overall = round(sum(weight * score) / sum(weight)); deterministic for identical inputs.
    """

    def __init__(self, pass_threshold: int = PASS_THRESHOLD):
        self.pass_threshold = pass_threshold

    def overall_score(self, results: Dict[str, RuleCheckResult]) -> int:
        total_weight = sum(r.weight for r in results.values())
        if total_weight == 0:
            return 0
        weighted = sum(r.weight * r.score for r in results.values())
        return round_half_up(weighted / total_weight)

    def recommendations(self, results: Dict[str, RuleCheckResult]) -> List[Recommendation]:
        """
        One recommendation per issue of every failed result.
        sorted() is stable, so registration and issue order survive within a priority tier.
        """
        recs = []
        for result in results.values():
            if result.passed:
                continue
            priority = Priority.HIGH if result.requirement_id == HIGH_PRIORITY_REQUIREMENT else Priority.MEDIUM
            for issue in result.issues:
                recs.append(Recommendation(
                    requirement_id=result.requirement_id,
                    priority=priority,
                    issue=issue,
                    category=result.name,
                ))
        return sorted(recs, key=lambda rec: 0 if rec.priority is Priority.HIGH else 1)

    def aggregate(self, url: str, profile_id: str, results: Dict[str, RuleCheckResult]) -> ComplianceReport:
        overall = self.overall_score(results)
        return ComplianceReport(
            url=url,
            profile_id=profile_id,
            results=dict(results),
            overall_score=overall,
            passed=overall >= self.pass_threshold,
            recommendations=self.recommendations(results),
        )

    @staticmethod
    def failed_report(url: str, profile_id: str, error: str) -> ComplianceReport:
        """Report for a render failure: never carries partial results."""
        return ComplianceReport(
            url=url,
            profile_id=profile_id,
            results={},
            overall_score=0,
            passed=False,
            recommendations=[],
            error=error,
        )
