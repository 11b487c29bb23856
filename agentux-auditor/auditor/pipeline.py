"""
FILE DESCRIPTION: Runs the audit pipeline for one (url, profile) and for batches of them.
KEY FUNCTIONS/CLASSES: PipelineRunner, BatchRunner
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Iterable, List, Optional, Sequence, Union

from auditor.core import HARD_TIMEOUT_MS, MAX_CONCURRENCY, setup_logger
from auditor.models import PipelineResult
from compliance.models import CheckContext
from compliance.registry import RuleRegistry
from compliance.scoring import ScoringAggregator
from profiles.registry import ProfileRegistry
from rendering.engine import RenderError, RenderingBackend, RenderingEngine
from simulation.models import Task
from simulation.tasks import TaskExecutor, get_task

logger = setup_logger("auditor.pipeline")

TaskSpec = Union[str, Task]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class PipelineRunner:
    """
    FLOW: Resolve profile and tasks (config errors raise) -> Capture both snapshots under the hard timeout ->
    Run every rule check on the profile snapshot -> Aggregate -> Run tasks on the same snapshot.

    A RenderError at capture time short-circuits into a failed result: no rule or task results.
    """

    def __init__(
        self,
        backend: RenderingBackend,
        profiles: Optional[ProfileRegistry] = None,
        rules: Optional[RuleRegistry] = None,
        aggregator: Optional[ScoringAggregator] = None,
        executor: Optional[TaskExecutor] = None,
        hard_timeout_ms: int = HARD_TIMEOUT_MS,
    ):
        self.profiles = profiles or ProfileRegistry()
        self.rules = rules or RuleRegistry()
        self.aggregator = aggregator or ScoringAggregator(self.rules.pass_threshold)
        self.executor = executor or TaskExecutor()
        self.engine = RenderingEngine(backend, hard_timeout_ms=hard_timeout_ms)

    @staticmethod
    def resolve_tasks(tasks: Iterable[TaskSpec]) -> List[Task]:
        return [get_task(t) if isinstance(t, str) else t for t in tasks]

    def run(
        self,
        url: str,
        profile_id: str,
        tasks: Sequence[TaskSpec] = (),
        render_slots: Optional[threading.Semaphore] = None,
    ) -> PipelineResult:
        profile = self.profiles.get(profile_id)
        task_list = self.resolve_tasks(tasks)
        start = time.monotonic()

        logger.info(f"[PIPELINE] Auditing {url} as '{profile.id}'")
        try:
            capture = self.engine.capture(url, profile, render_slots)
        except RenderError as e:
            logger.error(f"[PIPELINE] Render failed for {url} [{profile.id}]: {e}")
            return PipelineResult(
                url=url,
                profile_id=profile.id,
                report=self.aggregator.failed_report(url, profile.id, str(e)),
                error=str(e),
                duration_ms=_elapsed_ms(start),
            )

        ctx = CheckContext(
            profile=profile,
            initial_payload=capture.initial_payload,
            pass_threshold=self.rules.pass_threshold,
        )
        results = self.rules.evaluate(capture.page, ctx)
        report = self.aggregator.aggregate(url, profile.id, results)
        task_results = self.executor.execute_all(task_list, capture.page)

        logger.info(
            f"[PIPELINE] {url} [{profile.id}] score={report.overall_score} "
            f"passed={report.passed} render={capture.duration_ms}ms"
        )
        return PipelineResult(
            url=url,
            profile_id=profile.id,
            report=report,
            task_results=task_results,
            metrics=capture.page.timing_metrics(),
            duration_ms=_elapsed_ms(start),
        )


class BatchRunner:
    """
    Fans (url, profile) units out over a thread pool.
    Invariants:
    - At most `concurrency` units are submitted at any moment.
    - At most `concurrency` render threads are alive at any moment, counting renders
      abandoned after a hard timeout. A unit that cannot get a render slot within
      the hard timeout fails with a timeout.
    - cancel() stops new submissions; units already running finish normally.
      A cancel() issued before run() is honored by that run; the flag is cleared when a run ends.
    - Results come back in submission order; cancelled units are absent.
    - A unit's failure is reported in its own result and never stops its siblings.
    """

    def __init__(self, pipeline: PipelineRunner, concurrency: int = MAX_CONCURRENCY):
        self.pipeline = pipeline
        self.concurrency = concurrency
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        logger.warning("[BATCH] Cancellation requested; no new units will start")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(
        self,
        urls: Iterable[str],
        profile_ids: Iterable[str],
        tasks: Sequence[TaskSpec] = (),
        concurrency: Optional[int] = None,
    ) -> List[PipelineResult]:
        try:
            return self._run(urls, profile_ids, tasks, concurrency)
        finally:
            self._cancelled.clear()

    def _run(self, urls, profile_ids, tasks, concurrency) -> List[PipelineResult]:
        profile_ids = list(profile_ids)
        # Surface config errors before any unit starts
        for profile_id in profile_ids:
            self.pipeline.profiles.get(profile_id)
        task_list = self.pipeline.resolve_tasks(tasks)

        units = [(url, profile_id) for url in urls for profile_id in profile_ids]
        workers = max(1, concurrency or self.concurrency)
        render_slots = threading.BoundedSemaphore(workers)
        results: List[Optional[PipelineResult]] = [None] * len(units)

        logger.info(f"[BATCH] {len(units)} unit(s) with {workers} worker(s)")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Audit") as executor:
            pending = {}
            next_index = 0

            while next_index < len(units) or pending:
                while next_index < len(units) and len(pending) < workers and not self._cancelled.is_set():
                    url, profile_id = units[next_index]
                    future = executor.submit(self._run_unit, url, profile_id, task_list, render_slots)
                    pending[future] = next_index
                    next_index += 1

                if not pending:
                    break

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    results[pending.pop(future)] = future.result()

        skipped = len(units) - next_index
        if skipped:
            logger.warning(f"[BATCH] Cancelled; {skipped} unit(s) never started")

        return [r for r in results if r is not None]

    def _run_unit(
        self,
        url: str,
        profile_id: str,
        tasks: List[Task],
        render_slots: threading.Semaphore,
    ) -> PipelineResult:
        start = time.monotonic()
        try:
            return self.pipeline.run(url, profile_id, tasks, render_slots=render_slots)
        except Exception as e:
            logger.error(f"{threading.current_thread().name} : [BATCH] Unit {url} [{profile_id}] failed: {e}")
            error = f"Pipeline failed: {e}"
            return PipelineResult(
                url=url,
                profile_id=profile_id,
                report=self.pipeline.aggregator.failed_report(url, profile_id, error),
                error=error,
                duration_ms=_elapsed_ms(start),
            )
