"""
FILE DESCRIPTION: Cross-profile comparison of one URL.
KEY FUNCTIONS/CLASSES: ComparisonAnalyzer
"""

from typing import Dict, List, Optional, Sequence

from auditor.core import setup_logger
from auditor.models import PipelineResult
from auditor.pipeline import BatchRunner, PipelineRunner, TaskSpec
from simulation.models import ComparisonResult
from simulation.tasks import DEFAULT_TASKS

logger = setup_logger("auditor.compare")

BASIC_PROFILE = "basic"
ADVANCED_PROFILE = "advanced"

# Basic-agent score under which the initial payload needs work
BASIC_SCORE_FLOOR = 70
# Advanced minus basic score above which the page leans on client-side rendering
PROGRESSIVE_GAP = 30


class ComparisonAnalyzer:
    """
    FLOW: Runs the pipeline once per profile through a BatchRunner (sequential unless concurrency > 1) ->
    Builds the task success matrix from successful renders -> Scores every profile ->
    Derives recommendations from the score gaps and the matrix.
    """

    def __init__(self, pipeline: PipelineRunner):
        self.pipeline = pipeline

    def compare(
        self,
        url: str,
        profile_ids: Optional[Sequence[str]] = None,
        tasks: Sequence[TaskSpec] = DEFAULT_TASKS,
        concurrency: int = 1,
    ) -> ComparisonResult:
        profile_ids = list(profile_ids) if profile_ids is not None else self.pipeline.profiles.ids()
        task_list = self.pipeline.resolve_tasks(tasks)

        logger.info(f"[COMPARE] {url} across {', '.join(profile_ids)}")
        runs = BatchRunner(self.pipeline, concurrency).run([url], profile_ids, task_list)

        return self.build(url, [t.name for t in task_list], runs)

    @classmethod
    def build(cls, url: str, task_names: Sequence[str], runs: Sequence[PipelineResult]) -> ComparisonResult:
        """Pure: turns per-profile pipeline results into a ComparisonResult, keeping run order."""
        matrix: Dict[str, Dict[str, bool]] = {name: {} for name in task_names}
        scores: Dict[str, int] = {}
        performance = {}
        errors: Dict[str, str] = {}

        for run in runs:
            scores[run.profile_id] = run.report.overall_score if run.succeeded else 0
            if not run.succeeded:
                errors[run.profile_id] = run.error
                continue
            for name in task_names:
                task_result = run.task_results.get(name)
                matrix[name][run.profile_id] = bool(task_result and task_result.success)
            if run.metrics is not None:
                performance[run.profile_id] = run.metrics

        if errors:
            logger.warning(f"[COMPARE] {url} failed for: {', '.join(errors)}")

        return ComparisonResult(
            url=url,
            task_success_matrix=matrix,
            accessibility_scores=scores,
            recommendations=cls.derive_recommendations(scores, matrix),
            performance=performance,
            errors=errors,
        )

    @staticmethod
    def derive_recommendations(scores: Dict[str, int], matrix: Dict[str, Dict[str, bool]]) -> List[str]:
        recommendations = []

        basic = scores.get(BASIC_PROFILE)
        advanced = scores.get(ADVANCED_PROFILE)

        if basic is not None and basic < BASIC_SCORE_FLOOR:
            recommendations.append("Basic agents struggling - implement FR-1 (Initial Payload Accessibility)")

        if basic is not None and advanced is not None and advanced - basic > PROGRESSIVE_GAP:
            recommendations.append("Large gap between basic and advanced agents - consider progressive enhancement")

        for task_name, row in matrix.items():
            if row.get(BASIC_PROFILE) is False and row.get(ADVANCED_PROFILE) is True:
                recommendations.append(f'Task "{task_name}" only works for advanced agents - improve semantic markup')

        return recommendations
