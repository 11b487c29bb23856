"""
Requirement checks FR1..FR7.

Each check is a pure function of (RenderedPage, CheckContext) returning a CheckOutcome.
Checks never raise for content deficiencies: those become issue strings. Identity
(id, name, weight) and the pass/fail decision belong to the registry, not the check.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from auditor.core import round_half_up
from compliance.models import CheckContext
from rendering.models import ElementDescriptor, RenderedPage

HEADINGS = "h1, h2, h3, h4, h5, h6"

MIN_TEXT_LENGTH = 100
REQUIRED_LANDMARKS = ("header", "nav", "main", "footer")
LANDMARK_ROLES = {
    "header": "banner",
    "nav": "navigation",
    "main": "main",
    "footer": "contentinfo",
}
MEANINGLESS_LINK_TEXTS = ("click here", "read more", "learn more", "here", "more")
MIN_MEANINGFUL_LINK_PERCENT = 80
UNLABELED_CONTROL_TYPES = ("hidden", "submit", "button")
MAX_DOM_SIZE = 1500


@dataclass
class CheckOutcome:
    score: int
    details: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)


def subcheck_score(total_checks: int, failed_checks: int) -> int:
    """score = round(100 * passed / total) over a fixed subcheck set."""
    passed_checks = max(0, total_checks - failed_checks)
    return round_half_up(100 * passed_checks / total_checks)


# FR-1: Initial Payload Accessibility
def check_initial_payload(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    """
    Evaluated against the scriptless snapshot so the result does not depend on
    whether the calling profile runs script.
    """
    initial = ctx.initial_payload
    details, issues = [], []

    text_length = len(initial.text_content())
    if text_length < MIN_TEXT_LENGTH:
        issues.append(f"Page contains less than {MIN_TEXT_LENGTH} characters of text content without JavaScript")
    else:
        details.append(f"Found {text_length} characters of text content")

    headings = initial.count(HEADINGS)
    if headings == 0:
        issues.append("No heading elements found")
    else:
        details.append(f"Found {headings} heading elements")

    nav_elements = initial.count('nav, [role="navigation"]')
    if nav_elements == 0:
        issues.append("No navigation elements found")
    else:
        details.append(f"Found {nav_elements} navigation elements")

    main_elements = initial.count('main, [role="main"]')
    if main_elements == 0:
        issues.append("No main content area identified")
    else:
        details.append(f"Found {main_elements} main content areas")

    return CheckOutcome(subcheck_score(4, len(issues)), details, issues)


# FR-2: Semantic HTML Structure
def check_semantic_structure(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    details, issues = [], []

    levels = [int(h.tag[1]) for h in page.query_selector_all(HEADINGS)]
    if not levels:
        issues.append("No heading structure found")
    else:
        details.append(f"Document outline with {len(levels)} headings")
        prev_level = 0
        hierarchy_valid = True
        for level in levels:
            if prev_level > 0 and level > prev_level + 1:
                hierarchy_valid = False
                break
            prev_level = level
        if hierarchy_valid:
            details.append("Proper heading hierarchy maintained")
        else:
            issues.append("Heading hierarchy has gaps (e.g., h1 directly to h3)")

    missing = [
        landmark for landmark in REQUIRED_LANDMARKS
        if page.count(f'{landmark}, [role="{LANDMARK_ROLES[landmark]}"]') == 0
    ]
    if missing:
        issues.append(f"Missing landmarks: {', '.join(missing)}")
    else:
        details.append("All required landmarks present")

    lists = page.count("ul, ol, dl")
    if lists > 0:
        details.append(f"Found {lists} list elements")

    return CheckOutcome(subcheck_score(3, len(issues)), details, issues)


def _has_accessible_name(el) -> bool:
    attrs = el.attributes
    return bool(
        attrs.get("aria-label")
        or attrs.get("aria-labelledby")
        or el.text.strip()
        or attrs.get("title")
        or (el.tag == "input" and attrs.get("placeholder"))
    )


# FR-3: ARIA Implementation
def check_aria(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    """Fixed 40/30/30 split: basic ARIA hints, image alt text, named interactive elements."""
    details, issues = [], []

    aria_labels = page.count("[aria-label], [aria-labelledby]")
    if aria_labels > 0:
        details.append(f"Found {aria_labels} elements with ARIA labels")

    roles = []
    for el in page.query_selector_all("[role]"):
        role = el.attributes.get("role", "")
        if role not in roles:
            roles.append(role)
    if roles:
        details.append(f"ARIA roles used: {', '.join(roles)}")

    states = []
    for el in page.query_selector_all("*"):
        for name in el.attributes:
            if name.startswith("aria-") and name not in ("aria-label", "aria-labelledby") and name not in states:
                states.append(name)
    if states:
        details.append(f"ARIA states/properties: {', '.join(states)}")

    images_without_alt = page.count("img:not([alt])")
    if images_without_alt > 0:
        issues.append(f"{images_without_alt} images missing alt attributes")

    unnamed = 0
    for el in page.query_selector_all("button, a, input, select, textarea"):
        if el.tag == "input" and el.attributes.get("type", "").lower() == "hidden":
            continue
        if not _has_accessible_name(el):
            unnamed += 1
    if unnamed > 0:
        issues.append(f"{unnamed} interactive elements lack accessible names")

    score = 0
    if aria_labels > 0 or roles:
        score += 40
    if images_without_alt == 0:
        score += 30
    if unnamed == 0:
        score += 30
    return CheckOutcome(score, details, issues)


def _parse_tabindex(value) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


# FR-4: Agent-Friendly Navigation
def check_navigation(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    details, issues = [], []

    if page.count('[aria-label*="breadcrumb"], .breadcrumb, nav ol, nav ul') > 0:
        details.append("Breadcrumb navigation found")
    else:
        issues.append("No breadcrumb navigation detected")

    if page.count('a[href^="#"]:first-child, .skip-link') > 0:
        details.append("Skip links found")
    else:
        issues.append("No skip links found")

    if page.count('.toc, .table-of-contents, [aria-label*="contents"]') > 0:
        details.append("Table of contents or page outline found")

    if page.count('input[type="search"], [role="search"], .search') > 0:
        details.append("Search functionality detected")

    focusable = page.query_selector_all("a, button, input, select, textarea, [tabindex]")
    negative = sum(
        1 for el in focusable
        if "tabindex" in el.attributes and _parse_tabindex(el.attributes["tabindex"]) < 0
    )
    if negative > 0:
        issues.append(f"{negative} elements with negative tabindex may break navigation")

    return CheckOutcome(subcheck_score(3, len(issues)), details, issues)


def _counts_as_form_control(el) -> bool:
    return el.attributes.get("type", "").lower() not in UNLABELED_CONTROL_TYPES


def collect_form_controls(page: RenderedPage, scope: str = "") -> List[Tuple[ElementDescriptor, bool]]:
    """
    Fillable controls (hidden/submit/button excluded) paired with whether they carry a label:
    a wrapping <label>, a <label for=id>, aria-label, aria-labelledby or title.
    scope prefixes every selector, e.g. "form " to restrict to controls inside forms.
    """
    label_targets = {
        el.attributes["for"] for el in page.query_selector_all("label[for]") if el.attributes.get("for")
    }
    wrapped = page.query_selector_all(
        f"{scope}label input, {scope}label select, {scope}label textarea"
    )
    unwrapped = page.query_selector_all(
        f"{scope}input:not(label input), {scope}select:not(label select), {scope}textarea:not(label textarea)"
    )

    controls = [(el, True) for el in wrapped if _counts_as_form_control(el)]
    for el in unwrapped:
        if not _counts_as_form_control(el):
            continue
        attrs = el.attributes
        labeled = bool(
            (attrs.get("id") and attrs["id"] in label_targets)
            or attrs.get("aria-label")
            or attrs.get("aria-labelledby")
            or attrs.get("title")
        )
        controls.append((el, labeled))
    return controls


# FR-5: Form Accessibility
def check_forms(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    details, issues = [], []

    forms = page.count("form")
    if forms == 0:
        # Nothing to fill in: the requirement is trivially met
        return CheckOutcome(100, ["No forms found on page"], [])
    details.append(f"Found {forms} form(s)")

    controls = collect_form_controls(page)
    total_controls = len(controls)
    labeled_controls = sum(1 for _, labeled in controls if labeled)

    if total_controls > 0:
        label_percentage = labeled_controls / total_controls * 100
        details.append(
            f"{labeled_controls}/{total_controls} form controls have labels ({round_half_up(label_percentage)}%)"
        )
        if labeled_controls < total_controls:
            issues.append(f"{total_controls - labeled_controls} form controls missing labels")

    fieldsets = page.count("fieldset")
    legends = page.count("legend")
    if fieldsets > 0:
        details.append(f"Found {fieldsets} fieldset(s) with {legends} legend(s)")
        if fieldsets != legends:
            issues.append("Some fieldsets missing legends")

    if page.count('[aria-invalid], .error, .invalid, [role="alert"]') > 0:
        details.append("Error handling elements found")

    score = 80 * labeled_controls / total_controls if total_controls > 0 else 80
    if fieldsets == 0 or fieldsets == legends:
        score += 20
    return CheckOutcome(round_half_up(score), details, issues)


# FR-6: Content Discovery
def check_content_discovery(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    details, issues = [], []

    descriptions = [
        el.attributes.get("content", "").strip()
        for el in page.query_selector_all('meta[name="description"]')
    ]
    description = next((d for d in descriptions if d), None)
    if description:
        details.append(f"Meta description: {description[:100]}...")
    else:
        issues.append("Missing meta description")

    title = page.title()
    if title:
        details.append(f"Page title: {title}")
    else:
        issues.append("Missing or empty page title")

    json_ld = page.count('script[type="application/ld+json"]')
    microdata = page.count("[itemscope]")
    if json_ld > 0 or microdata > 0:
        details.append(f"Structured data found: {json_ld} JSON-LD, {microdata} microdata")
    else:
        issues.append("No structured data detected")

    sections = page.count("article, section, .content, .post, .entry")
    if sections > 0:
        details.append(f"Found {sections} content sections")
    else:
        issues.append("No clear content sections identified")

    links = page.query_selector_all("a[href]")
    if links:
        meaningful = 0
        for link in links:
            text = link.text.strip().lower()
            if len(text) > 4 and text not in MEANINGLESS_LINK_TEXTS:
                meaningful += 1
        percentage = meaningful / len(links) * 100
        details.append(
            f"{meaningful}/{len(links)} links have meaningful text ({round_half_up(percentage)}%)"
        )
        if percentage < MIN_MEANINGFUL_LINK_PERCENT:
            issues.append("Some links have non-descriptive text")

    return CheckOutcome(subcheck_score(5, len(issues)), details, issues)


# FR-7: Performance Optimization
def check_performance(page: RenderedPage, ctx: CheckContext) -> CheckOutcome:
    details, issues = [], []
    metrics = page.timing_metrics()

    details.append(f"DOM Content Loaded: {round_half_up(metrics.dom_content_loaded)}ms")
    details.append(f"Total Load Time: {round_half_up(metrics.total_load_time)}ms")
    if metrics.total_load_time > 3000:
        issues.append("Slow page load time")

    oversized = page.oversized_image_count
    if oversized > 0:
        issues.append(f"{oversized} potentially oversized images detected")
    elif page.count("img") > 0:
        details.append("Image sizes appear optimized")

    dom_size = metrics.dom_element_count
    details.append(f"DOM elements: {dom_size}")
    if dom_size > MAX_DOM_SIZE:
        issues.append("Large DOM size may impact performance")

    stylesheets = page.count('link[rel~="stylesheet"]')
    external_scripts = page.count("script[src]")
    details.append(f"External resources: {stylesheets} CSS, {external_scripts} JS")

    score = 100
    if metrics.total_load_time > 3000:
        score -= 30
    elif metrics.total_load_time > 2000:
        score -= 15
    if dom_size > MAX_DOM_SIZE:
        score -= 20
    if oversized > 0:
        score -= 25
    if stylesheets > 3:
        score -= 10
    if external_scripts > 5:
        score -= 15
    return CheckOutcome(max(0, score), details, issues)
