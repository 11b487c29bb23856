from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from auditor.core import PASS_THRESHOLD, setup_logger
from compliance import checks
from compliance.models import CheckContext, RuleCheckResult
from rendering.models import RenderedPage

logger = setup_logger("auditor.rules")

TOTAL_WEIGHT = 100


class RegistryConfigError(ValueError):
    """Raised when a rule-check table violates its invariants."""
    pass


@dataclass(frozen=True)
class RuleCheck:
    """Static definition of one weighted requirement."""
    requirement_id: str
    name: str
    weight: int
    evaluate: Callable[[RenderedPage, CheckContext], checks.CheckOutcome]


DEFAULT_RULE_CHECKS = (
    RuleCheck("FR1", "Initial Payload Accessibility", 30, checks.check_initial_payload),
    RuleCheck("FR2", "Semantic HTML Structure", 20, checks.check_semantic_structure),
    RuleCheck("FR3", "ARIA Implementation", 15, checks.check_aria),
    RuleCheck("FR4", "Agent-Friendly Navigation", 10, checks.check_navigation),
    RuleCheck("FR5", "Form Accessibility", 10, checks.check_forms),
    RuleCheck("FR6", "Content Discovery", 10, checks.check_content_discovery),
    RuleCheck("FR7", "Performance Optimization", 5, checks.check_performance),
)


class RuleRegistry:
    """
    Ordered, validated table of independent rule checks.
    Invariants:
    - Requirement ids are unique and weights sum to exactly 100.
    - Every check sees the same snapshot; no check can observe another's result.
    - A check that raises is converted into a failed result; siblings still run.
    """

    def __init__(
        self,
        rule_checks: Optional[Iterable[RuleCheck]] = None,
        pass_threshold: int = PASS_THRESHOLD,
    ):
        self._checks = tuple(DEFAULT_RULE_CHECKS if rule_checks is None else rule_checks)
        self.pass_threshold = pass_threshold
        self._validate()

    def _validate(self) -> None:
        seen = set()
        for rule in self._checks:
            if rule.requirement_id in seen:
                raise RegistryConfigError(f"Duplicate requirement id: {rule.requirement_id}")
            seen.add(rule.requirement_id)
            if not isinstance(rule.weight, int) or rule.weight <= 0:
                raise RegistryConfigError(f"Invalid weight for {rule.requirement_id}: {rule.weight}")
        total = sum(rule.weight for rule in self._checks)
        if total != TOTAL_WEIGHT:
            raise RegistryConfigError(f"Rule weights must sum to {TOTAL_WEIGHT}, got {total}")
        if not 0 <= self.pass_threshold <= 100:
            raise RegistryConfigError(f"Pass threshold out of range: {self.pass_threshold}")

    @property
    def checks(self) -> List[RuleCheck]:
        return list(self._checks)

    @property
    def total_weight(self) -> int:
        return sum(rule.weight for rule in self._checks)

    def weight_of(self, requirement_id: str) -> int:
        for rule in self._checks:
            if rule.requirement_id == requirement_id:
                return rule.weight
        return 0

    def evaluate(self, page: RenderedPage, ctx: CheckContext) -> Dict[str, RuleCheckResult]:
        """Runs every check in registration order against one snapshot."""
        results = {}
        for rule in self._checks:
            results[rule.requirement_id] = self.run_check(rule, page, ctx)
        return results

    def run_check(self, rule: RuleCheck, page: RenderedPage, ctx: CheckContext) -> RuleCheckResult:
        try:
            outcome = rule.evaluate(page, ctx)
        except Exception as e:
            logger.error(f"[RULES] {rule.requirement_id} raised: {e}")
            return self._result(rule, 0, [], [f"{rule.requirement_id} check error: {e}"])
        score = min(100, max(0, int(outcome.score)))
        return self._result(rule, score, list(outcome.details), list(outcome.issues))

    def _result(self, rule: RuleCheck, score: int, details, issues) -> RuleCheckResult:
        return RuleCheckResult(
            requirement_id=rule.requirement_id,
            name=rule.name,
            weight=rule.weight,
            score=score,
            passed=score >= self.pass_threshold,
            details=details,
            issues=issues,
        )
