import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Pattern, Tuple

from rendering.models import ElementDescriptor, TimingMetrics


@dataclass(frozen=True)
class Task:
    """
    Static selector/pattern lookup simulating one agent goal.
    Not derived from any page; defined once at process start.
    """
    name: str
    description: str
    selectors: Tuple[str, ...] = ()
    text_patterns: Tuple[Pattern, ...] = ()

    @classmethod
    def define(cls, name: str, description: str, selectors=(), text_patterns=()) -> "Task":
        """Builds a task, compiling string patterns up front so bad regexes fail at definition time."""
        compiled = tuple(p if isinstance(p, re.Pattern) else re.compile(p) for p in text_patterns)
        return cls(name=name, description=description, selectors=tuple(selectors), text_patterns=compiled)


@dataclass(frozen=True)
class SelectorMatch:
    selector: str
    count: int


@dataclass(frozen=True)
class TextMatch:
    pattern: str
    matches: List[str]


@dataclass(frozen=True)
class SelectorDetail:
    selector: str
    elements: List[ElementDescriptor]


@dataclass(frozen=True)
class TaskResult:
    """
    Outcome of one task against one snapshot.
    Invariant: success == bool(elements_found or text_matches).
    """
    task_name: str
    task_description: str
    success: bool
    elements_found: List[SelectorMatch] = field(default_factory=list)
    text_matches: List[TextMatch] = field(default_factory=list)
    details: List[SelectorDetail] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    derived: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {
            "task_name": self.task_name,
            "task_description": self.task_description,
            "success": self.success,
            "elements_found": [{"selector": m.selector, "count": m.count} for m in self.elements_found],
            "text_matches": [{"pattern": m.pattern, "matches": list(m.matches)} for m in self.text_matches],
            "details": [
                {"selector": d.selector, "elements": [el.to_dict() for el in d.elements]}
                for d in self.details
            ],
            "issues": list(self.issues),
            "derived": dict(self.derived),
        }


@dataclass(frozen=True)
class ComparisonResult:
    """
    Cross-profile diff for one URL.
    task_success_matrix[task][profile] only lists profiles whose render succeeded.
    """
    url: str
    task_success_matrix: Dict[str, Dict[str, bool]]
    accessibility_scores: Dict[str, int]
    recommendations: List[str] = field(default_factory=list)
    performance: Dict[str, TimingMetrics] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        return {
            "url": self.url,
            "task_success_matrix": {t: dict(row) for t, row in self.task_success_matrix.items()},
            "accessibility_scores": dict(self.accessibility_scores),
            "recommendations": list(self.recommendations),
            "performance": {p: m.to_dict() for p, m in self.performance.items()},
            "errors": dict(self.errors),
        }

