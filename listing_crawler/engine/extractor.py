"""Schema-driven record extraction over static markup or a live rendered page."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol
from urllib.parse import urljoin

import structlog
from selectolax.parser import HTMLParser, Node

from ..config import ExtractorSchema
from ..errors import ExtractionFieldMissing, NavigationError
from .fetcher import FetchResult
from .records import FieldValue, Record

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class ExtractionResult:
    """Records of one page plus the state of its "next" control."""

    records: list[Record] = field(default_factory=list)
    has_next: bool = False
    next_url: str | None = None
    next_selector: str | None = None
    skipped: int = 0


class Extractor(Protocol):
    def extract(self, page: FetchResult) -> ExtractionResult:
        """Turn a fetched page into records; never raises for a bad element."""


class ElementView(Protocol):
    """Minimal element API both page representations provide."""

    def query_one(self, css: str) -> Optional["ElementView"]: ...

    def query_all(self, css: str) -> list["ElementView"]: ...

    def text(self) -> str: ...

    def html(self) -> str: ...

    def attr(self, name: str) -> str | None: ...

    def has_attr(self, name: str) -> bool: ...

    def parent(self) -> Optional["ElementView"]: ...


def split_selector(selector: str) -> tuple[str, str]:
    """Split ``css::mode`` into its CSS part and extraction mode."""

    if "::" in selector:
        css, mode = selector.split("::", 1)
        return css.strip(), mode.strip().lower()
    return selector.strip(), "text"


def _clean(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def _read(node: ElementView, mode: str) -> str:
    if mode == "html":
        return node.html().strip()
    if mode.startswith("attr:"):
        return _clean(node.attr(mode.split(":", 1)[1]))
    return _clean(node.text())


def _single_value(element: ElementView, selectors: Iterable[str]) -> str:
    for selector in selectors:
        css, mode = split_selector(selector)
        node = element.query_one(css) if css else element
        if node is None:
            continue
        value = _read(node, mode)
        if value:
            return value
    return ""


def _multi_value(element: ElementView, selectors: Iterable[str]) -> tuple[str, ...]:
    for selector in selectors:
        css, mode = split_selector(selector)
        values = tuple(v for v in (_read(node, mode) for node in element.query_all(css)) if v)
        if values:
            return values
    return ()


def _is_disabled(control: ElementView) -> bool:
    if control.has_attr("disabled"):
        return True
    if (control.attr("aria-disabled") or "").lower() == "true":
        return True
    for candidate in (control, control.parent()):
        if candidate is not None and "disabled" in (candidate.attr("class") or "").split():
            return True
    return False


def extract_from_root(
    root: ElementView,
    schema: ExtractorSchema,
    page_url: str,
    logger: structlog.BoundLogger,
) -> ExtractionResult:
    """Shared extraction routine used by both extractor variants."""

    result = ExtractionResult()
    multi = set(schema.multi_value_fields)
    for index, element in enumerate(root.query_all(schema.container_selector)):
        try:
            values: list[tuple[str, FieldValue]] = []
            for name in schema.fields:
                selectors = schema.selectors_for(name)
                value: FieldValue = (
                    _multi_value(element, selectors) if name in multi else _single_value(element, selectors)
                )
                if name in schema.required_fields and not value:
                    raise ExtractionFieldMissing(name, url=page_url)
                values.append((name, value))
        except ExtractionFieldMissing as exc:
            result.skipped += 1
            logger.info("element_skipped", url=page_url, index=index, field=exc.field)
            continue
        result.records.append(Record(values))

    if schema.next_selector:
        control = root.query_one(schema.next_selector)
        if control is not None and not _is_disabled(control):
            result.has_next = True
            result.next_selector = schema.next_selector
            href = control.attr("href")
            if not href:
                link = control.query_one("a[href]")
                href = link.attr("href") if link is not None else None
            if href and not href.strip().startswith(("javascript:", "#")):
                result.next_url = urljoin(page_url, href.strip())
    return result


# ----------------------------------------------------------------------
# Static markup (selectolax)
# ----------------------------------------------------------------------
class _StaticElement:
    __slots__ = ("_node",)

    def __init__(self, node: Node) -> None:
        self._node = node

    def query_one(self, css: str) -> Optional["_StaticElement"]:
        node = self._node.css_first(css)
        return _StaticElement(node) if node is not None else None

    def query_all(self, css: str) -> list["_StaticElement"]:
        return [_StaticElement(node) for node in self._node.css(css)]

    def text(self) -> str:
        return self._node.text(separator=" ", strip=True)

    def html(self) -> str:
        return self._node.html or ""

    def attr(self, name: str) -> str | None:
        return self._node.attributes.get(name)

    def has_attr(self, name: str) -> bool:
        return name in self._node.attributes

    def parent(self) -> Optional["_StaticElement"]:
        node = self._node.parent
        return _StaticElement(node) if node is not None else None


class StaticExtractor:
    """Extract records from statically parsed markup."""

    def __init__(self, schema: ExtractorSchema, logger: structlog.BoundLogger | None = None) -> None:
        self.schema = schema
        self.logger = logger or structlog.get_logger("listing_crawler.extractor")

    def extract(self, page: FetchResult) -> ExtractionResult:
        tree = HTMLParser(page.text)
        root = tree.root
        if root is None:
            return ExtractionResult()
        return extract_from_root(_StaticElement(root), self.schema, page.url, self.logger)


# ----------------------------------------------------------------------
# Live rendered document (Playwright)
# ----------------------------------------------------------------------
class _LiveElement:
    __slots__ = ("_handle",)

    def __init__(self, handle: Any) -> None:
        self._handle = handle

    def query_one(self, css: str) -> Optional["_LiveElement"]:
        handle = self._handle.query_selector(css)
        return _LiveElement(handle) if handle is not None else None

    def query_all(self, css: str) -> list["_LiveElement"]:
        return [_LiveElement(handle) for handle in self._handle.query_selector_all(css)]

    def text(self) -> str:
        return self._handle.text_content() or ""

    def html(self) -> str:
        return self._handle.inner_html() or ""

    def attr(self, name: str) -> str | None:
        return self._handle.get_attribute(name)

    def has_attr(self, name: str) -> bool:
        return self._handle.get_attribute(name) is not None

    def parent(self) -> Optional["_LiveElement"]:
        handle = self._handle.query_selector("xpath=..")
        return _LiveElement(handle) if handle is not None else None


class RenderedExtractor:
    """Query the live document a rendered fetch left open.

    Falls back to parsing ``page.text`` when no live document is attached.
    """

    def __init__(self, schema: ExtractorSchema, logger: structlog.BoundLogger | None = None) -> None:
        self.schema = schema
        self.logger = logger or structlog.get_logger("listing_crawler.extractor")
        self._static = StaticExtractor(schema, self.logger)

    def extract(self, page: FetchResult) -> ExtractionResult:
        if page.document is None:
            return self._static.extract(page)
        from playwright.sync_api import Error as PlaywrightError

        try:
            return extract_from_root(_LiveElement(page.document), self.schema, page.url, self.logger)
        except PlaywrightError as exc:
            raise NavigationError(f"Live document unavailable: {exc}", url=page.url) from exc


def build_extractor(
    schema: ExtractorSchema, rendered: bool, logger: structlog.BoundLogger | None = None
) -> Extractor:
    return RenderedExtractor(schema, logger) if rendered else StaticExtractor(schema, logger)


__all__ = [
    "ExtractionResult",
    "Extractor",
    "RenderedExtractor",
    "StaticExtractor",
    "build_extractor",
    "extract_from_root",
    "split_selector",
]
