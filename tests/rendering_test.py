"""
Verification Scenarios for Snapshots, the Static Backend and the Hard Timeout
"""

import threading
import time
import unittest
from unittest.mock import MagicMock

import requests

from fixture_backend import GOOD_PAGE, SPA_SHELL, FixtureBackend
from profiles.registry import ProfileRegistry
from rendering.engine import RenderExecutionError, RenderingEngine, RenderTimeoutError
from rendering.models import ElementDescriptor, HtmlSnapshot, SelectorError, TimingMetrics
from rendering.static_backend import StaticBackend


class TestHtmlSnapshot(unittest.TestCase):
    def setUp(self):
        self.page = HtmlSnapshot("https://acme.test/about", GOOD_PAGE)

    def test_query_returns_descriptors_in_document_order(self):
        links = self.page.query_selector_all("nav a")
        self.assertEqual([l.text for l in links], ["Products catalogue", "Contact support"])
        # Relative hrefs resolve against the page URL
        self.assertEqual(links[0].href, "https://acme.test/products")

    def test_multi_valued_attributes_are_joined(self):
        skip = self.page.query_selector_all(".skip-link")[0]
        self.assertEqual(skip.attributes["class"], "skip-link")

    def test_malformed_selector_raises_selector_error(self):
        with self.assertRaises(SelectorError) as cm:
            self.page.query_selector_all("a[href=")
        self.assertEqual(cm.exception.selector, "a[href=")

    def test_text_content_skips_scripts(self):
        text = self.page.text_content()
        self.assertIn("Acme Widgets", text)
        self.assertNotIn("Organization", text)
        self.assertNotIn("\n", text)

    def test_query_within_first_scope_only(self):
        page = HtmlSnapshot("https://acme.test/", (
            "<html><body><article><h2>One</h2><img alt=\"a\"></article>"
            "<article><h2>Two</h2><img alt=\"b\"><a href=\"/b\">b</a></article></body></html>"
        ))
        self.assertEqual([i.attributes["alt"] for i in page.query_within("article", "img")], ["a"])
        self.assertEqual(page.query_within("article", "a"), [])
        self.assertEqual(page.query_within("main", "img"), [])
        with self.assertRaises(SelectorError):
            page.query_within("article", "a[href=")

    def test_title_and_timing(self):
        self.assertEqual(self.page.title(), "Acme Widgets")
        metrics = self.page.timing_metrics()
        self.assertGreater(metrics.dom_element_count, 10)
        self.assertTrue(metrics.agent_friendly)

    def test_backend_metrics_keep_load_times(self):
        page = HtmlSnapshot("https://acme.test/", SPA_SHELL, metrics=TimingMetrics(total_load_time=6000.0))
        metrics = page.timing_metrics()
        self.assertEqual(metrics.total_load_time, 6000.0)
        self.assertGreater(metrics.dom_element_count, 0)
        self.assertFalse(metrics.to_dict()["agent_friendly"])


class TestElementDescriptor(unittest.TestCase):
    def test_equal_descriptors_hash_equally(self):
        first = ElementDescriptor(tag="a", text="Home", href="/", attributes={"class": "nav", "id": "home"})
        second = ElementDescriptor(tag="a", text="Home", href="/", attributes={"id": "home", "class": "nav"})

        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))
        self.assertEqual(len({first, second}), 1)

    def test_different_attributes_are_different_views(self):
        first = ElementDescriptor(tag="a", text="Home", attributes={"id": "home"})
        second = ElementDescriptor(tag="a", text="Home", attributes={"id": "start"})
        self.assertNotEqual(first, second)
        self.assertEqual(len({first, second}), 2)


class TestStaticBackend(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.backend = StaticBackend(timeout_ms=5000, session=self.session)
        self.profile = ProfileRegistry().get("basic")

    def _response(self, status=200, content_type="text/html; charset=utf-8", text=GOOD_PAGE):
        response = MagicMock()
        response.status_code = status
        response.headers = {"Content-Type": content_type}
        response.text = text
        response.url = "https://acme.test/"
        return response

    def test_fetch_uses_profile_user_agent(self):
        self.session.get.return_value = self._response()
        page = self.backend.navigate("https://acme.test/", self.profile)

        _, kwargs = self.session.get.call_args
        self.assertEqual(kwargs["headers"]["User-Agent"], self.profile.synthetic_user_agent)
        self.assertEqual(kwargs["timeout"], 5.0)
        self.assertEqual(page.title(), "Acme Widgets")

    def test_http_error_is_execution_error(self):
        self.session.get.return_value = self._response(status=503)
        with self.assertRaises(RenderExecutionError) as cm:
            self.backend.navigate("https://acme.test/", self.profile)
        self.assertIn("503", str(cm.exception))

    def test_non_html_is_rejected(self):
        self.session.get.return_value = self._response(content_type="application/pdf")
        with self.assertRaises(RenderExecutionError):
            self.backend.navigate("https://acme.test/", self.profile)

    def test_timeout_is_not_retried(self):
        self.session.get.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(RenderTimeoutError):
            self.backend.navigate("https://acme.test/", self.profile)
        self.assertEqual(self.session.get.call_count, 1)


class TestRenderingEngine(unittest.TestCase):
    def setUp(self):
        self.profiles = ProfileRegistry()

    def test_scripted_profile_captures_scriptless_payload(self):
        backend = FixtureBackend(pages={"https://spa.test/": SPA_SHELL},
                                 scripted_pages={"https://spa.test/": GOOD_PAGE})
        capture = RenderingEngine(backend, hard_timeout_ms=2000).capture("https://spa.test/", self.profiles.get("advanced"))

        self.assertEqual(capture.page.title(), "Acme Widgets")
        self.assertEqual(capture.initial_payload.title(), "")
        self.assertEqual([c[2] for c in backend.calls], [True, False])

    def test_scriptless_profile_navigates_once(self):
        backend = FixtureBackend(pages={"https://acme.test/": GOOD_PAGE})
        capture = RenderingEngine(backend, hard_timeout_ms=2000).capture("https://acme.test/", self.profiles.get("basic"))

        self.assertIs(capture.page, capture.initial_payload)
        self.assertEqual(len(backend.calls), 1)

    def test_hard_timeout(self):
        backend = FixtureBackend(pages={"https://slow.test/": GOOD_PAGE}, delays={"https://slow.test/": 1.0})
        engine = RenderingEngine(backend, hard_timeout_ms=50)
        with self.assertRaises(RenderTimeoutError):
            engine.capture("https://slow.test/", self.profiles.get("basic"))

    def test_abandoned_render_skips_scriptless_navigation(self):
        """Scenario: the scripted navigation outlives the hard timeout; no second navigation follows it."""
        backend = FixtureBackend(pages={"https://slow.test/": GOOD_PAGE}, delays={"https://slow.test/": 0.3})
        engine = RenderingEngine(backend, hard_timeout_ms=50)
        with self.assertRaises(RenderTimeoutError):
            engine.capture("https://slow.test/", self.profiles.get("advanced"))

        time.sleep(0.8)
        self.assertEqual(backend.calls, [("https://slow.test/", "advanced", True)])
        self.assertEqual(backend.in_flight, 0)

    def test_render_slot_held_until_abandoned_thread_exits(self):
        backend = FixtureBackend(pages={"https://slow.test/": GOOD_PAGE}, delays={"https://slow.test/": 0.3})
        engine = RenderingEngine(backend, hard_timeout_ms=50)
        slots = threading.BoundedSemaphore(1)
        with self.assertRaises(RenderTimeoutError):
            engine.capture("https://slow.test/", self.profiles.get("basic"), slots)

        # The abandoned thread still holds the only slot
        with self.assertRaises(RenderTimeoutError) as cm:
            engine.capture("https://slow.test/", self.profiles.get("basic"), slots)
        self.assertIn("render slot", str(cm.exception))
        self.assertEqual(len(backend.calls), 1)

        time.sleep(0.5)
        self.assertTrue(slots.acquire(blocking=False))

    def test_unexpected_backend_error_is_wrapped(self):
        backend = FixtureBackend(errors={"https://broken.test/": RuntimeError("socket closed")})
        engine = RenderingEngine(backend, hard_timeout_ms=2000)
        with self.assertRaises(RenderExecutionError) as cm:
            engine.capture("https://broken.test/", self.profiles.get("basic"))
        self.assertIn("socket closed", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
