import dataclasses
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from profiles.models import CapabilityProfile
from rendering.models import RenderedPage


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class CheckContext:
    """
    Profile-derived inputs a rule check may read.
    initial_payload is the forced scriptless snapshot of the same URL.
    """
    profile: CapabilityProfile
    initial_payload: RenderedPage
    pass_threshold: int = 70


@dataclass(frozen=True)
class RuleCheckResult:
    """
    Outcome of one requirement check.
    Invariant: passed == (score >= pass threshold); 0 <= score <= 100.
    """
    requirement_id: str
    name: str
    weight: int
    score: int
    passed: bool
    details: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def to_dict(self):
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class Recommendation:
    requirement_id: str
    priority: Priority
    issue: str
    category: str

    def to_dict(self):
        return {
            "requirement_id": self.requirement_id,
            "priority": self.priority.value,
            "issue": self.issue,
            "category": self.category,
        }


@dataclass(frozen=True)
class ComplianceReport:
    """
    Scored audit of one URL under one profile.
    A render failure yields error set, overall_score 0 and no results.
    """
    url: str
    profile_id: str
    results: Dict[str, RuleCheckResult]
    overall_score: int
    passed: bool
    recommendations: List[Recommendation] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_issues(self) -> int:
        return sum(len(r.issues) for r in self.results.values())

    def to_dict(self):
        return {
            "url": self.url,
            "profile_id": self.profile_id,
            "timestamp": self.timestamp.isoformat(),
            "results": {rid: r.to_dict() for rid, r in self.results.items()},
            "overall_score": self.overall_score,
            "passed": self.passed,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "error": self.error,
        }
