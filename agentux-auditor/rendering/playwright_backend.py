"""
Headless Chromium backend using Playwright's sync API.
Each navigation owns its own Playwright/Browser instance, so calls are safe from
any worker thread (sync Playwright objects must not cross threads).
"""

from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeoutError

from auditor.core import (
    HARD_TIMEOUT_MS,
    SETTLE_CEILING_MS,
    HEADLESS,
    VIEWPORT_WIDTH,
    VIEWPORT_HEIGHT,
    logger,
)
from profiles.models import CapabilityProfile
from rendering.engine import RenderingBackend, RenderExecutionError, RenderTimeoutError
from rendering.models import HtmlSnapshot, TimingMetrics

_TIMING_SCRIPT = """
() => {
    const perf = performance.getEntriesByType('navigation')[0];
    if (!perf) {
        return {domContentLoaded: 0, loadComplete: 0, totalLoadTime: 0,
                domSize: document.querySelectorAll('*').length};
    }
    return {
        domContentLoaded: perf.domContentLoadedEventEnd - perf.domContentLoadedEventStart,
        loadComplete: perf.loadEventEnd - perf.loadEventStart,
        totalLoadTime: perf.loadEventEnd - perf.fetchStart,
        domSize: document.querySelectorAll('*').length
    };
}
"""

_OVERSIZED_IMAGES_SCRIPT = """
() => Array.from(document.querySelectorAll('img'))
    .filter(img => img.naturalWidth > 2000 || img.naturalHeight > 2000).length
"""


def _safe_evaluate(page, script, default):
    """Page scripts may be disabled for the profile; metrics then fall back to defaults."""
    try:
        return page.evaluate(script)
    except Exception as e:
        logger.debug(f"[RENDER] evaluate unavailable: {e}")
        return default


class PlaywrightBackend(RenderingBackend):
    """
    FLOW: Launches Chromium -> Creates a context carrying the profile's user agent and script flag ->
    Aborts blocked resource types -> Navigates -> Waits the bounded settle time ->
    Serializes DOM + timing into an HtmlSnapshot -> Closes the browser.
    """

    def __init__(
        self,
        navigation_timeout_ms: int = HARD_TIMEOUT_MS,
        settle_ceiling_ms: int = SETTLE_CEILING_MS,
        headless: bool = HEADLESS,
    ):
        self._navigation_timeout_ms = navigation_timeout_ms
        self._settle_ceiling_ms = settle_ceiling_ms
        self._headless = headless

    @staticmethod
    def blocked_resource_types(profile: CapabilityProfile) -> set:
        blocked = set()
        if not profile.css_enabled:
            blocked.add("stylesheet")
        if not profile.images_enabled:
            blocked.add("image")
        return blocked

    def navigate(self, url: str, profile: CapabilityProfile) -> HtmlSnapshot:
        blocked = self.blocked_resource_types(profile)
        settle_ms = profile.settle_wait_ms(self._settle_ceiling_ms)

        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(
                    headless=self._headless,
                    args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
                )
                try:
                    context = browser.new_context(
                        user_agent=profile.synthetic_user_agent,
                        java_script_enabled=profile.script_enabled,
                        viewport={"width": VIEWPORT_WIDTH, "height": VIEWPORT_HEIGHT},
                    )
                    page = context.new_page()

                    if blocked:
                        def route_intercept(route):
                            if route.request.resource_type in blocked:
                                return route.abort()
                            return route.continue_()
                        page.route("**/*", route_intercept)

                    wait_until = "networkidle" if profile.script_enabled else "domcontentloaded"
                    response = page.goto(url, wait_until=wait_until, timeout=self._navigation_timeout_ms)
                    if response is not None and response.status >= 400:
                        raise RenderExecutionError(f"http error: {response.status}")

                    if settle_ms > 0:
                        page.wait_for_timeout(settle_ms)

                    timing = _safe_evaluate(page, _TIMING_SCRIPT, {})
                    oversized = _safe_evaluate(page, _OVERSIZED_IMAGES_SCRIPT, 0) if profile.images_enabled else 0
                    content = page.content()
                    final_url = page.url
                finally:
                    browser.close()
        except RenderExecutionError:
            raise
        except PlaywrightTimeoutError as e:
            raise RenderTimeoutError(f"Navigation timed out for {url}: {e}") from e
        except Exception as e:
            raise RenderExecutionError(f"Navigation failed: {e}") from e

        logger.info(f"[RENDER] {url} [{profile.id}] settled {settle_ms}ms, blocked={sorted(blocked)}")
        metrics = TimingMetrics(
            dom_content_loaded=float(timing.get("domContentLoaded") or 0),
            load_complete=float(timing.get("loadComplete") or 0),
            total_load_time=float(timing.get("totalLoadTime") or 0),
            dom_element_count=int(timing.get("domSize") or 0),
        )
        return HtmlSnapshot(final_url, content, metrics=metrics, oversized_image_count=int(oversized or 0))
