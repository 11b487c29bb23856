"""
FILE DESCRIPTION: Batch roll-up of compliance reports and the blended comprehensive score.
KEY FUNCTIONS/CLASSES: summarize, comprehensive_score
"""

from collections import Counter
from typing import Dict, Iterable, Optional

from auditor.core import PASS_THRESHOLD, round_half_up
from auditor.models import BatchSummary
from compliance.models import ComplianceReport
from simulation.models import ComparisonResult

COMMON_ISSUE_LIMIT = 5
PERFORMANCE_REQUIREMENT = "FR7"

# Blend of the comprehensive score, in tenths (0.5 / 0.3 / 0.2)
COMPLIANCE_SHARE = 5
USABILITY_SHARE = 3
PERFORMANCE_SHARE = 2


def summarize(reports: Iterable[ComplianceReport], pass_threshold: int = PASS_THRESHOLD) -> BatchSummary:
    reports = list(reports)
    total = len(reports)
    if total == 0:
        return BatchSummary(total=0, passed=0, failed=0, average_score=0, total_issues=0)

    passed = sum(1 for r in reports if r.passed)
    failed = total - passed
    average = round_half_up(sum(r.overall_score for r in reports) / total)

    issue_counts = Counter(
        issue
        for report in reports
        for result in report.results.values()
        for issue in result.issues
    )
    total_issues = sum(issue_counts.values())
    common_issues = [
        {"issue": issue, "count": count, "percentage": round_half_up(count / total * 100)}
        for issue, count in issue_counts.most_common(COMMON_ISSUE_LIMIT)
    ]

    recommendations = []
    if average < pass_threshold:
        recommendations.append({
            "priority": "high",
            "title": "Improve overall compliance",
            "description": f"Average score is {average}%. Focus on the highest-weighted requirements first.",
        })
    if common_issues:
        top = common_issues[0]
        recommendations.append({
            "priority": "high",
            "title": "Address most common issue",
            "description": f'"{top["issue"]}" affects {top["count"]} of {total} page(s).',
        })
    if failed:
        recommendations.append({
            "priority": "medium",
            "title": "Fix failing pages",
            "description": f"{failed} page(s) are below the {pass_threshold}% compliance threshold.",
        })

    return BatchSummary(
        total=total,
        passed=passed,
        failed=failed,
        average_score=average,
        total_issues=total_issues,
        common_issues=common_issues,
        recommendations=recommendations,
    )


def comprehensive_score(report: ComplianceReport, comparison: Optional[ComparisonResult] = None) -> Dict[str, int]:
    """
    Blends compliance, cross-profile usability and FR7 performance into one number.
    Without a comparison the usability part is 0.
    """
    compliance = report.overall_score

    usability = 0
    if comparison is not None and comparison.accessibility_scores:
        scores = list(comparison.accessibility_scores.values())
        usability = round_half_up(sum(scores) / len(scores))

    fr7 = report.results.get(PERFORMANCE_REQUIREMENT)
    performance = fr7.score if fr7 else 0

    overall = round_half_up(
        (COMPLIANCE_SHARE * compliance + USABILITY_SHARE * usability + PERFORMANCE_SHARE * performance) / 10
    )
    return {
        "overall": overall,
        "compliance": compliance,
        "usability": usability,
        "performance": performance,
    }
