import sys
import os
import json
import argparse
from collections import OrderedDict

from tabulate import tabulate

# Inject the agentux-auditor directory into sys.path
# This ensures all sub-packages (auditor, profiles, rendering, compliance, simulation) are resolvable.
sys.path.append(os.path.join(os.path.dirname(__file__), "agentux-auditor"))

from auditor.core import HARD_TIMEOUT_MS, MAX_CONCURRENCY, SETTLE_CEILING_MS, logger, validate_timeouts
from auditor.pipeline import BatchRunner, PipelineRunner
from auditor.summary import comprehensive_score, summarize
from profiles.registry import ProfileRegistry, UnknownProfile
from rendering.playwright_backend import PlaywrightBackend
from rendering.static_backend import StaticBackend
from simulation.comparison import ComparisonAnalyzer
from simulation.tasks import DEFAULT_TASKS, TASK_TEMPLATES, UnknownTask


def _csv(value):
    return [item.strip() for item in value.split(",") if item.strip()]


def build_backend(name, timeout_ms):
    if name == "static":
        return StaticBackend(timeout_ms=timeout_ms)
    return PlaywrightBackend(navigation_timeout_ms=timeout_ms)


def print_reports(results):
    rows = []
    for result in results:
        report = result.report
        status = "ERROR" if result.error else ("PASS" if report.passed else "FAIL")
        rows.append([
            result.url,
            result.profile_id,
            f"{report.overall_score}%",
            status,
            report.total_issues,
            f"{result.duration_ms}ms",
        ])
    print(tabulate(rows, headers=["URL", "Profile", "Score", "Status", "Issues", "Duration"], tablefmt="grid"))

    for result in results:
        if result.error:
            print(f"  - {result.url} [{result.profile_id}]: {result.error}")
            continue
        for rec in result.report.recommendations[:5]:
            print(f"  - {result.url} [{rec.priority.value}] {rec.requirement_id}: {rec.issue}")


def print_comparison(comparison, profile_ids):
    print(f"\nCROSS-PROFILE COMPARISON: {comparison.url}")
    score_row = [comparison.accessibility_scores.get(pid, 0) for pid in profile_ids]
    print(tabulate([["Score"] + score_row], headers=["Metric"] + profile_ids, tablefmt="simple"))

    rows = []
    for task_name, row in comparison.task_success_matrix.items():
        cells = []
        for pid in profile_ids:
            if pid in comparison.errors:
                cells.append("error")
            else:
                cells.append("yes" if row.get(pid) else "no")
        rows.append([task_name] + cells)
    if rows:
        print(tabulate(rows, headers=["Task"] + profile_ids, tablefmt="grid"))

    for rec in comparison.recommendations:
        print(f"  - {rec}")


def print_summary(summary):
    print("\n==============================")
    print("AUDIT SUMMARY")
    print(f"Pages:          {summary.total}")
    print(f"Passed:         {summary.passed}")
    print(f"Failed:         {summary.failed}")
    print(f"Average Score:  {summary.average_score}%")
    print(f"Total Issues:   {summary.total_issues}")
    if summary.common_issues:
        print(tabulate(
            [[item["issue"], item["count"], f'{item["percentage"]}%'] for item in summary.common_issues],
            headers=["Most Common Issue", "Pages", "Share"],
            tablefmt="simple",
        ))
    print("==============================\n")


def run(args):
    registry = ProfileRegistry()
    backend = build_backend(args.backend, args.timeout)
    pipeline = PipelineRunner(backend, profiles=registry, hard_timeout_ms=args.timeout)
    tasks = pipeline.resolve_tasks(_csv(args.tasks)) if args.tasks else pipeline.resolve_tasks(DEFAULT_TASKS)

    if args.multi_profile:
        profile_ids = _csv(args.profiles) if args.profiles else registry.ids()
    else:
        profile_ids = [args.profile]

    results = BatchRunner(pipeline, concurrency=args.concurrency).run(args.urls, profile_ids, tasks)
    print_reports(results)

    output = {"results": [r.to_dict() for r in results]}
    has_failures = any(r.error for r in results)

    if args.multi_profile:
        by_url = OrderedDict()
        for result in results:
            by_url.setdefault(result.url, []).append(result)

        comparisons = []
        for url, runs in by_url.items():
            comparison = ComparisonAnalyzer.build(url, [t.name for t in tasks], runs)
            comparisons.append(comparison)
            print_comparison(comparison, profile_ids)

            primary = next((r for r in runs if r.profile_id == "advanced" and not r.error), None)
            if primary is not None:
                score = comprehensive_score(primary.report, comparison)
                print(f"  Comprehensive score: {score['overall']}% "
                      f"(compliance {score['compliance']}, usability {score['usability']}, performance {score['performance']})")
        output["comparisons"] = [c.to_dict() for c in comparisons]
    else:
        has_failures = has_failures or any(not r.report.passed for r in results)

    summary = summarize(r.report for r in results)
    print_summary(summary)
    output["summary"] = summary.to_dict()

    if args.json:
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)
        logger.info(f"Report saved to: {args.json}")

    return 1 if has_failures else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="AgentUX Compliance Auditor CLI")
    parser.add_argument("urls", nargs="+", help="Page URL(s) to audit")
    parser.add_argument("--profile", default="advanced", help="Capability profile for a single-profile audit")
    parser.add_argument("--multi-profile", action="store_true", help="Audit every profile and compare them")
    parser.add_argument("--profiles", help="Comma-separated profile ids for --multi-profile (default: all)")
    parser.add_argument("--tasks", help=f"Comma-separated tasks ({', '.join(TASK_TEMPLATES)})")
    parser.add_argument("--backend", choices=["playwright", "static"], default="playwright", help="Page loader")
    parser.add_argument("--concurrency", type=int, default=MAX_CONCURRENCY, help="Pipelines run at once")
    parser.add_argument("--timeout", type=int, default=HARD_TIMEOUT_MS, help="Hard per-pipeline timeout (ms)")
    parser.add_argument("--json", help="Write the full JSON result to this path")
    args = parser.parse_args()

    try:
        validate_timeouts(args.timeout, SETTLE_CEILING_MS)
    except ValueError as e:
        parser.error(str(e))

    try:
        sys.exit(run(args))
    except (UnknownProfile, UnknownTask) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
