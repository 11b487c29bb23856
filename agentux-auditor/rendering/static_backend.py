"""
Scriptless rendering backend over plain HTTP.
The response body is the snapshot: no script, stylesheet or image is ever fetched.
"""

import time

import requests

from auditor.core import HARD_TIMEOUT_MS, logger
from profiles.models import CapabilityProfile
from rendering.engine import RenderingBackend, RenderExecutionError, RenderTimeoutError
from rendering.models import HtmlSnapshot, TimingMetrics


class StaticBackend(RenderingBackend):
    """
    FLOW: Sends one GET with the profile's synthetic user agent -> Rejects non-HTML / error statuses ->
    Wraps the raw body in an HtmlSnapshot with round-trip timing.
    """

    def __init__(self, timeout_ms: int = HARD_TIMEOUT_MS, session=None):
        self._timeout_ms = timeout_ms
        self._session = session or requests.Session()

    def navigate(self, url: str, profile: CapabilityProfile) -> HtmlSnapshot:
        if profile.script_enabled:
            logger.warning(f"[RENDER] Static backend cannot execute script; serving raw HTML for profile '{profile.id}'")

        headers = {
            "User-Agent": profile.synthetic_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        start_time = time.time()
        try:
            r = self._session.get(url, timeout=self._timeout_ms / 1000.0, headers=headers, allow_redirects=True)
        except requests.exceptions.Timeout as e:
            raise RenderTimeoutError(f"Request timed out for {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise RenderExecutionError(f"Navigation failed: {e}") from e

        fetch_time_ms = int((time.time() - start_time) * 1000)
        content_type = r.headers.get("Content-Type", "").lower()

        if not (200 <= r.status_code < 300):
            raise RenderExecutionError(f"http error: {r.status_code}")
        if content_type and "html" not in content_type:
            raise RenderExecutionError(f"ignored content type: {content_type}")

        logger.info(f"[RENDER] {r.status_code} {url} [{profile.id}] in {fetch_time_ms}ms")
        metrics = TimingMetrics(
            dom_content_loaded=0.0,
            load_complete=0.0,
            total_load_time=float(fetch_time_ms),
        )
        return HtmlSnapshot(r.url or url, r.text, metrics=metrics)
