import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from auditor.core import HARD_TIMEOUT_MS, logger
from profiles.models import CapabilityProfile
from rendering.models import RenderedPage


class RenderError(Exception):
    """Base rendering exception. Never retried by the backend."""
    pass


class RenderTimeoutError(RenderError):
    """Raised when navigation exceeds the hard pipeline timeout."""
    pass


class RenderExecutionError(RenderError):
    """Raised on critical browser/network failures."""
    pass


class RenderingBackend(ABC):
    """
    Abstraction for the underlying page loader.
    Contractual Requirements for Implementers:
    - MUST suppress script/css/image loading as the profile instructs.
    - MUST wait at most profile.settle_wait_ms(ceiling) after load before snapshotting.
    - MUST accept profile.without_script() for the forced scriptless navigation.
    - MUST NOT retry; raise RenderError and let the caller decide.
    """

    @abstractmethod
    def navigate(self, url: str, profile: CapabilityProfile) -> RenderedPage:
        """
        Load url under profile and return an immutable snapshot.
        Raises RenderTimeoutError or RenderExecutionError.
        """
        pass


@dataclass(frozen=True)
class RenderCapture:
    """Snapshots taken for one (url, profile) pipeline."""
    page: RenderedPage
    initial_payload: RenderedPage
    duration_ms: int


class RenderingEngine:
    """
    Runs backend navigations under a hard timeout.
    Invariants:
    - Either both snapshots are returned or a RenderError is raised; never a partial capture.
    - A timed-out navigation is abandoned, not force-aborted; its thread finishes on its own
      but never starts the scriptless navigation afterwards.
    - With render_slots, a slot is held from before the first navigation until the render
      thread exits, including abandoned threads. Waiting for a slot counts as a timeout.
    """

    def __init__(self, backend: RenderingBackend, hard_timeout_ms: int = HARD_TIMEOUT_MS):
        self._backend = backend
        self._hard_timeout_ms = hard_timeout_ms

    def capture(
        self,
        url: str,
        profile: CapabilityProfile,
        render_slots: Optional[threading.Semaphore] = None,
    ) -> RenderCapture:
        timeout_s = self._hard_timeout_ms / 1000.0
        if render_slots is not None and not render_slots.acquire(timeout=timeout_s):
            logger.warning(f"[RENDER] No render slot within {self._hard_timeout_ms}ms for {url} [{profile.id}]")
            raise RenderTimeoutError(
                f"Rendering timed out after {self._hard_timeout_ms}ms waiting for a render slot for {url}"
            )

        start = time.monotonic()
        abandoned = threading.Event()
        outcome = {"done": threading.Event(), "capture": None, "error": None}

        def work():
            try:
                page = self._backend.navigate(url, profile)
                if not profile.script_enabled:
                    # Profile is already scriptless: its snapshot is the initial payload
                    initial = page
                elif abandoned.is_set():
                    logger.debug(f"[RENDER] Skipping scriptless navigation of abandoned render {url} [{profile.id}]")
                    return
                else:
                    initial = self._backend.navigate(url, profile.without_script())
                outcome["capture"] = (page, initial)
            except Exception as e:
                outcome["error"] = e
            finally:
                outcome["done"].set()
                if render_slots is not None:
                    render_slots.release()

        worker = threading.Thread(target=work, daemon=True, name=f"Render-{profile.id}")
        try:
            worker.start()
        except RuntimeError:
            if render_slots is not None:
                render_slots.release()
            raise

        if not outcome["done"].wait(timeout=timeout_s):
            abandoned.set()
            logger.warning(f"[RENDER] Hard timeout ({self._hard_timeout_ms}ms) for {url} [{profile.id}]")
            raise RenderTimeoutError(f"Rendering timed out after {self._hard_timeout_ms}ms for {url}")

        error = outcome["error"]
        if error is not None:
            if isinstance(error, RenderError):
                raise error
            raise RenderExecutionError(f"Navigation failed: {error}") from error

        page, initial = outcome["capture"]
        duration_ms = int((time.monotonic() - start) * 1000)
        return RenderCapture(page=page, initial_payload=initial, duration_ms=duration_ms)
