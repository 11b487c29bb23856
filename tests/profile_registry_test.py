"""
Verification Scenarios for Capability Profiles
"""

import unittest

from profiles.models import CapabilityProfile
from profiles.registry import DEFAULT_PROFILES, ProfileRegistry, UnknownProfile


class TestProfileRegistry(unittest.TestCase):
    def setUp(self):
        self.registry = ProfileRegistry()

    def test_default_profiles_registered_in_order(self):
        self.assertEqual(self.registry.ids(), ["basic", "intermediate", "advanced", "crawler"])
        self.assertEqual(len(self.registry), 4)
        self.assertIn("crawler", self.registry)

    def test_profile_capabilities(self):
        basic = self.registry.get("basic")
        self.assertFalse(basic.script_enabled)
        self.assertIsNone(basic.max_script_wait_ms)

        advanced = self.registry.get("advanced")
        self.assertTrue(advanced.script_enabled)
        self.assertTrue(advanced.images_enabled)
        self.assertEqual(advanced.max_script_wait_ms, 10000)

        crawler = self.registry.get("crawler")
        self.assertIn("Googlebot", crawler.synthetic_user_agent)
        self.assertEqual(crawler.max_script_wait_ms, 5000)

    def test_unknown_profile(self):
        """Scenario: lookup of an unregistered id is a config error listing what exists."""
        with self.assertRaises(UnknownProfile) as cm:
            self.registry.get("superhuman")
        self.assertIsInstance(cm.exception, KeyError)
        self.assertIn("superhuman", str(cm.exception))
        self.assertIn("basic", str(cm.exception))

    def test_duplicate_ids_rejected(self):
        with self.assertRaises(ValueError):
            ProfileRegistry([DEFAULT_PROFILES[0], DEFAULT_PROFILES[0]])


class TestCapabilityProfile(unittest.TestCase):
    def test_without_script_derives_new_profile(self):
        advanced = ProfileRegistry().get("advanced")
        scriptless = advanced.without_script()

        self.assertFalse(scriptless.script_enabled)
        self.assertIsNone(scriptless.max_script_wait_ms)
        self.assertEqual(scriptless.id, "advanced")
        # Original is untouched
        self.assertTrue(advanced.script_enabled)

    def test_without_script_is_identity_for_scriptless_profile(self):
        basic = ProfileRegistry().get("basic")
        self.assertIs(basic.without_script(), basic)

    def test_settle_wait_is_capped(self):
        profile = CapabilityProfile(
            id="slow", name="Slow", script_enabled=True, css_enabled=False,
            images_enabled=False, cookies_enabled=False,
            synthetic_user_agent="test", max_script_wait_ms=10000,
        )
        self.assertEqual(profile.settle_wait_ms(5000), 5000)
        self.assertEqual(profile.settle_wait_ms(20000), 10000)
        self.assertEqual(profile.without_script().settle_wait_ms(5000), 0)

    def test_to_dict(self):
        data = ProfileRegistry().get("intermediate").to_dict()
        self.assertEqual(data["id"], "intermediate")
        self.assertEqual(data["max_script_wait_ms"], 2000)
        self.assertFalse(data["local_storage_enabled"])


if __name__ == "__main__":
    unittest.main()
