from rendering.models import (
    ElementDescriptor,
    TimingMetrics,
    RenderedPage,
    HtmlSnapshot,
    SelectorError,
)
from rendering.engine import (
    RenderingEngine,
    RenderingBackend,
    RenderCapture,
    RenderError,
    RenderTimeoutError,
    RenderExecutionError
)
