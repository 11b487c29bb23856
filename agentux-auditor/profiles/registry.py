from typing import Dict, Iterable, List, Optional

from profiles.models import CapabilityProfile


class UnknownProfile(KeyError):
    """Raised when a profile id is not registered."""

    def __init__(self, profile_id: str, available: Iterable[str]):
        self.profile_id = profile_id
        self.available = list(available)
        super().__init__(profile_id)

    def __str__(self):
        return f"Unknown profile: {self.profile_id}. Available: {', '.join(self.available)}"


DEFAULT_PROFILES = (
    CapabilityProfile(
        id="basic",
        name="Basic Web Agent",
        description="Simple HTTP requests, no JavaScript execution",
        script_enabled=False,
        css_enabled=False,
        images_enabled=False,
        cookies_enabled=False,
        synthetic_user_agent="Mozilla/5.0 (compatible; BasicWebAgent/1.0)",
    ),
    CapabilityProfile(
        id="intermediate",
        name="Intermediate Agent",
        description="Limited JavaScript, basic DOM parsing",
        script_enabled=True,
        css_enabled=False,
        images_enabled=False,
        cookies_enabled=False,
        max_script_wait_ms=2000,
        synthetic_user_agent="Mozilla/5.0 (compatible; IntermediateAgent/1.0)",
    ),
    CapabilityProfile(
        id="advanced",
        name="Advanced Agent",
        description="Full browser capabilities, extended wait times",
        script_enabled=True,
        css_enabled=True,
        images_enabled=True,
        cookies_enabled=True,
        local_storage_enabled=True,
        max_script_wait_ms=10000,
        synthetic_user_agent="Mozilla/5.0 (compatible; AdvancedAgent/1.0)",
    ),
    CapabilityProfile(
        id="crawler",
        name="Search Crawler",
        description="Search engine bot behavior",
        script_enabled=True,
        css_enabled=False,
        images_enabled=False,
        cookies_enabled=False,
        max_script_wait_ms=5000,
        synthetic_user_agent="Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
    ),
)


class ProfileRegistry:
    """
    Read-only lookup table of capability profiles.
    Invariant: ids are unique and the table never changes after construction.
    """

    def __init__(self, profiles: Optional[Iterable[CapabilityProfile]] = None):
        table: Dict[str, CapabilityProfile] = {}
        for profile in (DEFAULT_PROFILES if profiles is None else profiles):
            if profile.id in table:
                raise ValueError(f"Duplicate profile id: {profile.id}")
            table[profile.id] = profile
        self._profiles = table

    def get(self, profile_id: str) -> CapabilityProfile:
        try:
            return self._profiles[profile_id]
        except KeyError:
            raise UnknownProfile(profile_id, self._profiles.keys()) from None

    def ids(self) -> List[str]:
        return list(self._profiles.keys())

    def __contains__(self, profile_id) -> bool:
        return profile_id in self._profiles

    def __iter__(self):
        return iter(self._profiles.values())

    def __len__(self):
        return len(self._profiles)
