import dataclasses
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CapabilityProfile:
    """
    Immutable bundle of simulated client capabilities.
    Profiles are data only: backends and checks decide what each flag means.
    """
    id: str
    name: str
    script_enabled: bool
    css_enabled: bool
    images_enabled: bool
    cookies_enabled: bool
    synthetic_user_agent: str
    max_script_wait_ms: Optional[int] = None
    local_storage_enabled: bool = False
    description: str = ""

    def without_script(self) -> "CapabilityProfile":
        """Derived profile used for the forced scriptless (initial payload) navigation."""
        if not self.script_enabled:
            return self
        return dataclasses.replace(self, script_enabled=False, max_script_wait_ms=None)

    def settle_wait_ms(self, ceiling_ms: int) -> int:
        """Post-load wait the backend may spend; 0 when script is disabled."""
        if not self.script_enabled or not self.max_script_wait_ms:
            return 0
        return max(0, min(self.max_script_wait_ms, ceiling_ms))

    def to_dict(self):
        return dataclasses.asdict(self)
