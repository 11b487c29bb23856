from dataclasses import dataclass, field
from typing import Dict, List, Optional

from compliance.models import ComplianceReport
from rendering.models import TimingMetrics
from simulation.models import TaskResult


@dataclass(frozen=True)
class PipelineResult:
    """
    Everything one (url, profile) pipeline produced.
    On a render failure: error is set, report is the failed report and task_results is empty.
    """
    url: str
    profile_id: str
    report: ComplianceReport
    task_results: Dict[str, TaskResult] = field(default_factory=dict)
    metrics: Optional[TimingMetrics] = None
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self):
        return {
            "url": self.url,
            "profile_id": self.profile_id,
            "report": self.report.to_dict(),
            "task_results": {name: r.to_dict() for name, r in self.task_results.items()},
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class BatchSummary:
    total: int
    passed: int
    failed: int
    average_score: int
    total_issues: int
    common_issues: List[Dict] = field(default_factory=list)
    recommendations: List[Dict] = field(default_factory=list)

    def to_dict(self):
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "average_score": self.average_score,
            "total_issues": self.total_issues,
            "common_issues": [dict(item) for item in self.common_issues],
            "recommendations": [dict(item) for item in self.recommendations],
        }
