import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment

# Text inside these elements is never visible page content
_NON_CONTENT_TAGS = ("script", "style", "template")


class SelectorError(Exception):
    """Raised when a snapshot cannot evaluate a selector (unsupported or malformed syntax)."""

    def __init__(self, selector: str, reason: str):
        self.selector = selector
        self.reason = reason
        super().__init__(reason)


@dataclass(frozen=True)
class ElementDescriptor:
    """
    Backend-neutral view of one matched element.
    Value type: two descriptors with equal fields are the same element view,
    and equal descriptors hash equally (attributes are hashed by their sorted items).
    """
    tag: str
    text: str
    href: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def __hash__(self):
        return hash((self.tag, self.text, self.href, tuple(sorted(self.attributes.items()))))

    def to_dict(self):
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class TimingMetrics:
    """Navigation timing in milliseconds plus the rendered DOM size."""
    dom_content_loaded: float = 0.0
    load_complete: float = 0.0
    total_load_time: float = 0.0
    dom_element_count: int = 0

    @property
    def agent_friendly(self) -> bool:
        return self.total_load_time < 5000 and self.dom_element_count < 2000

    def to_dict(self):
        data = dataclasses.asdict(self)
        data["agent_friendly"] = self.agent_friendly
        return data


class RenderedPage(ABC):
    """
    Queryable snapshot produced by a rendering backend for one pipeline run.
    Contract: every query is read-only; the same snapshot always answers the same way.
    """
    url: str = ""
    oversized_image_count: int = 0

    @abstractmethod
    def query_selector_all(self, selector: str) -> List[ElementDescriptor]:
        """Returns matches in document order. Raises SelectorError for unusable selectors."""
        pass

    @abstractmethod
    def text_content(self) -> str:
        pass

    @abstractmethod
    def timing_metrics(self) -> TimingMetrics:
        pass

    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def html(self) -> str:
        pass

    @abstractmethod
    def query_within(self, scope_selector: str, selector: str) -> List[ElementDescriptor]:
        """
        Matches of selector among the descendants of the first element matching scope_selector.
        Empty when nothing matches scope_selector. Raises SelectorError like query_selector_all.
        """
        pass

    def count(self, selector: str) -> int:
        return len(self.query_selector_all(selector))


class HtmlSnapshot(RenderedPage):
    """
    RenderedPage over serialized HTML (a browser's page.content() or a raw HTTP body).
    Parsing uses lxml; selectors are evaluated by soupsieve through BeautifulSoup.select.
    """

    def __init__(
        self,
        url: str,
        html: str,
        metrics: Optional[TimingMetrics] = None,
        oversized_image_count: int = 0,
    ):
        self.url = url
        self.oversized_image_count = oversized_image_count
        self._html = html or ""
        self._soup = BeautifulSoup(self._html, "lxml")
        self._metrics = metrics
        self._text = None

    def query_selector_all(self, selector: str) -> List[ElementDescriptor]:
        try:
            elements = self._soup.select(selector)
        except Exception as e:
            raise SelectorError(selector, str(e)) from e
        return [self._describe(el) for el in elements]

    def query_within(self, scope_selector: str, selector: str) -> List[ElementDescriptor]:
        try:
            scope = self._soup.select_one(scope_selector)
            elements = scope.select(selector) if scope is not None else []
        except Exception as e:
            raise SelectorError(f"{scope_selector} :: {selector}", str(e)) from e
        return [self._describe(el) for el in elements]

    def text_content(self) -> str:
        if self._text is None:
            root = self._soup.body or self._soup
            parts = []
            for s in root.find_all(string=True):
                if isinstance(s, Comment):
                    continue
                if s.find_parent(_NON_CONTENT_TAGS) is not None:
                    continue
                parts.append(str(s))
            self._text = " ".join(" ".join(parts).split())
        return self._text

    def timing_metrics(self) -> TimingMetrics:
        dom_count = len(self._soup.find_all(True))
        if self._metrics is None:
            return TimingMetrics(dom_element_count=dom_count)
        if not self._metrics.dom_element_count:
            return dataclasses.replace(self._metrics, dom_element_count=dom_count)
        return self._metrics

    def title(self) -> str:
        tag = self._soup.find("title")
        if tag is None:
            return ""
        return tag.get_text().strip()

    def html(self) -> str:
        return self._html

    def _describe(self, el) -> ElementDescriptor:
        attributes = {}
        for name, value in el.attrs.items():
            # bs4 returns multi-valued attributes (class, rel, ...) as lists
            attributes[name] = " ".join(value) if isinstance(value, list) else str(value)
        href = attributes.get("href")
        if href is not None and self.url:
            href = urljoin(self.url, href)
        return ElementDescriptor(
            tag=el.name,
            text=el.get_text(" ", strip=True),
            href=href,
            attributes=attributes,
        )
