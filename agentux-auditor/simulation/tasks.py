"""
FILE DESCRIPTION: Agent tasks and their executor.
KEY FUNCTIONS/CLASSES: TASK_TEMPLATES, TaskExecutor, UnknownTask, derived task analyses
"""

import re
from typing import Dict, Iterable, List, Optional

from auditor.core import round_half_up, setup_logger
from compliance.checks import collect_form_controls
from rendering.models import RenderedPage
from simulation.models import SelectorDetail, SelectorMatch, Task, TaskResult, TextMatch

logger = setup_logger("auditor.tasks")

MAX_ELEMENTS_PER_SELECTOR = 5
MAX_MATCHES_PER_PATTERN = 10

EMAIL_PATTERN = re.compile(r"[\w\.-]+@[\w\.-]+\.\w+")
PHONE_PATTERN = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")


class UnknownTask(KeyError):
    def __init__(self, task_name: str, available: Iterable[str]):
        self.task_name = task_name
        self.available = list(available)
        super().__init__(task_name)

    def __str__(self):
        return f"Unknown task: {self.task_name}. Available: {', '.join(self.available)}"


TASK_TEMPLATES = {
    task.name: task for task in (
        Task.define(
            "find-contact",
            "Locate contact details like email, phone, address",
            selectors=(
                'a[href^="mailto:"]',
                'a[href^="tel:"]',
                "[data-contact]",
                ".contact",
                "#contact",
                "address",
                '[itemtype*="ContactPoint"]',
            ),
            text_patterns=(EMAIL_PATTERN, PHONE_PATTERN),
        ),
        Task.define(
            "extract-content",
            "Find and extract the primary content of the page",
            selectors=("main", '[role="main"]', "article", ".content", ".post", ".entry-content", "#content"),
        ),
        Task.define(
            "navigate-site",
            "Test navigation and site structure discovery",
            selectors=("nav", '[role="navigation"]', ".menu", ".nav", "a[href]", "[data-nav]"),
        ),
        Task.define(
            "form-interaction",
            "Test form accessibility and completion",
            selectors=("form", "input", "textarea", "select", 'button[type="submit"]', '[role="button"]'),
        ),
        Task.define(
            "data-extraction",
            "Extract structured data and metadata",
            selectors=(
                'script[type="application/ld+json"]',
                "[itemscope]",
                "[data-schema]",
                'meta[property^="og:"]',
                'meta[name^="twitter:"]',
            ),
        ),
    )
}

DEFAULT_TASKS = ("extract-content", "find-contact", "navigate-site")


def get_task(name: str, catalog: Optional[Dict[str, Task]] = None) -> Task:
    catalog = TASK_TEMPLATES if catalog is None else catalog
    try:
        return catalog[name]
    except KeyError:
        raise UnknownTask(name, catalog.keys()) from None


def resolve_tasks(names: Iterable[str], catalog: Optional[Dict[str, Task]] = None) -> List[Task]:
    return [get_task(name, catalog) for name in names]


# === DERIVED ANALYSES ===
# Pure functions over a finished TaskResult (and the snapshot it ran on).

def analyze_contact_types(result: TaskResult) -> List[str]:
    types = []

    def add(kind):
        if kind not in types:
            types.append(kind)

    for found in result.elements_found:
        if "mailto:" in found.selector:
            add("email")
        if "tel:" in found.selector:
            add("phone")
        if "address" in found.selector:
            add("address")

    for match in result.text_matches:
        for text in match.matches:
            if "@" in text:
                add("email")
            elif sum(ch.isdigit() for ch in text) >= 7:
                add("phone")
    return types


MAIN_CONTENT = 'main, [role="main"], article'
HEADINGS = "h1, h2, h3, h4, h5, h6"


def analyze_content_quality(page: RenderedPage) -> Dict:
    """Text, headings, images and links of the first main-content candidate in document order."""
    candidates = page.query_selector_all(MAIN_CONTENT)
    if not candidates:
        return {"has_main_content": False}

    text_length = len(candidates[0].text)
    headings = len(page.query_within(MAIN_CONTENT, HEADINGS))
    return {
        "has_main_content": True,
        "text_length": text_length,
        "image_count": len(page.query_within(MAIN_CONTENT, "img")),
        "link_count": len(page.query_within(MAIN_CONTENT, "a")),
        "heading_count": headings,
        "content_quality": "good" if text_length > 500 and headings > 0 else "basic",
    }


def analyze_form_accessibility(page: RenderedPage) -> Dict:
    forms = page.count("form")
    if forms == 0:
        return {"has_forms": False}

    controls = collect_form_controls(page, scope="form ")
    total = len(controls)
    labeled = sum(1 for _, is_labeled in controls if is_labeled)
    required = sum(
        1 for el, _ in controls
        if "required" in el.attributes or "aria-required" in el.attributes
    )
    return {
        "has_forms": True,
        "form_count": forms,
        "total_inputs": total,
        "labeled_inputs": labeled,
        "required_inputs": required,
        "label_percentage": round_half_up(labeled / total * 100) if total else 0,
    }


class TaskExecutor:
    """
    FLOW: Tries every selector independently (a failing selector becomes an issue) ->
    Runs every text pattern over the page text -> success = any selector or pattern matched ->
    Attaches task-specific derived fields.
    """

    def execute(self, task: Task, page: RenderedPage) -> TaskResult:
        elements_found, details, issues = [], [], []
        text_matches = []

        for selector in task.selectors:
            try:
                elements = page.query_selector_all(selector)
            except Exception as e:
                issues.append(f'Selector "{selector}" failed: {e}')
                continue
            if elements:
                elements_found.append(SelectorMatch(selector=selector, count=len(elements)))
                details.append(SelectorDetail(selector=selector, elements=list(elements[:MAX_ELEMENTS_PER_SELECTOR])))

        if task.text_patterns:
            try:
                text = page.text_content()
            except Exception as e:
                issues.append(f"Text extraction failed: {e}")
                text = ""
            for pattern in task.text_patterns:
                matches = [m.group(0) for m in pattern.finditer(text)]
                if matches:
                    text_matches.append(TextMatch(pattern=pattern.pattern, matches=matches[:MAX_MATCHES_PER_PATTERN]))

        result = TaskResult(
            task_name=task.name,
            task_description=task.description,
            success=bool(elements_found or text_matches),
            elements_found=elements_found,
            text_matches=text_matches,
            details=details,
            issues=issues,
        )
        result.derived.update(self._derive(task, result, page))

        logger.debug(f"[TASK] {task.name}: success={result.success} selectors={len(elements_found)} issues={len(issues)}")
        return result

    def execute_all(self, tasks: Iterable[Task], page: RenderedPage) -> Dict[str, TaskResult]:
        return {task.name: self.execute(task, page) for task in tasks}

    @staticmethod
    def _derive(task: Task, result: TaskResult, page: RenderedPage) -> Dict:
        try:
            if task.name == "find-contact":
                return {"contact_types": analyze_contact_types(result)}
            if task.name == "extract-content":
                return {"content_quality": analyze_content_quality(page)}
            if task.name == "form-interaction":
                return {"form_accessibility": analyze_form_accessibility(page)}
        except Exception as e:
            result.issues.append(f"Task analysis failed: {e}")
        return {}
