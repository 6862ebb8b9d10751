"""Page acquisition: plain HTTP and Playwright-rendered variants."""

from __future__ import annotations

import gzip
import zlib
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Protocol

import httpx
import structlog

from ..config import BrowserOptions, CrawlConfig, FetchVariant
from ..errors import (
    CrawlError,
    FetchTimeoutError,
    NavigationError,
    NetworkError,
    ProxyUnavailableError,
)
from ..infra import DEFAULT_USER_AGENT, ProxyBinding, probe_proxy

if TYPE_CHECKING:
    from .extractor import ExtractionResult

# 403/429 通常是限流或临时封禁，按可重试处理
RETRYABLE_STATUS = frozenset({403, 408, 425, 429})
_GZIP_MAGIC = b"\x1f\x8b"


class NavigationAction(str, Enum):
    GOTO = "goto"
    CLICK = "click"


@dataclass(frozen=True, slots=True)
class PageTarget:
    """Addressable unit of pagination plus its navigation context."""

    url: str
    action: NavigationAction = NavigationAction.GOTO
    selector: str | None = None
    reload: bool = False
    cookies: Mapping[str, str] = field(default_factory=dict)
    proxy: ProxyBinding | None = None

    def with_reload(self) -> "PageTarget":
        return replace(self, reload=True)


@dataclass(slots=True)
class FetchResult:
    """Decoded page content and transport metadata for one fetch."""

    url: str
    status_code: int
    text: str
    headers: Dict[str, str]
    target: PageTarget
    content_encoding: str | None = None
    # Live Playwright page for the rendered variant; None for static fetches.
    document: Any = field(default=None, repr=False)


class PageFetcher(Protocol):
    """Capability the pagination controller drives."""

    def open(self) -> None:
        """Start the session; raises ProxyUnavailableError if the proxy is down."""

    def fetch(self, target: PageTarget, timeout: float) -> FetchResult:
        """Acquire one page or raise a FetchError/NavigationError."""

    def next_target(self, result: FetchResult, extraction: "ExtractionResult") -> PageTarget:
        """Build the target of the following page."""

    def close(self) -> None:
        """Release network and browser resources."""

    def __enter__(self) -> "PageFetcher": ...

    def __exit__(self, *exc: object) -> None: ...


def check_status(status_code: int, url: str) -> None:
    if status_code >= 500 or status_code in RETRYABLE_STATUS:
        raise NetworkError(f"Unexpected status {status_code}", url=url)
    if status_code >= 400:
        raise NavigationError(f"Page returned status {status_code}", url=url)


def decompress_body(body: bytes) -> bytes:
    """Inflate bodies that are still gzip/zlib compressed after transport decoding.

    httpx already honours a ``Content-Encoding`` header; some servers send
    compressed payloads without labelling them.
    """

    try:
        if body[:2] == _GZIP_MAGIC:
            return gzip.decompress(body)
        if len(body) >= 2 and body[0] == 0x78 and (body[0] * 256 + body[1]) % 31 == 0:
            try:
                return zlib.decompress(body)
            except zlib.error:
                # Plain text that happens to look like a zlib header.
                return body
    except (OSError, EOFError, zlib.error) as exc:
        raise NetworkError(f"Corrupt compressed body: {exc}") from exc
    return body


class _ManagedSession:
    """Open on enter, close on exit; used by the orchestrator around a run."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


class StaticFetcher(_ManagedSession):
    """Plain HTTP client presenting a realistic browser identity."""

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        accept_language: str = "en-US,en;q=0.9",
        proxy: ProxyBinding | None = None,
        probe_timeout: float = 5.0,
        cookies: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.accept_language = accept_language
        self.proxy = proxy
        self.probe_timeout = probe_timeout
        self.cookies = dict(cookies or {})
        self._transport = transport
        self.logger = logger or structlog.get_logger("listing_crawler.fetcher")
        self._client: httpx.Client | None = None

    def open(self) -> None:
        if self._client is not None:
            return
        if self.proxy is not None:
            probe_proxy(self.proxy, self.probe_timeout)
        client_kwargs: dict[str, Any] = {
            "follow_redirects": True,
            "headers": {
                "User-Agent": self.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": self.accept_language,
                "Accept-Encoding": "gzip, deflate",
            },
            "cookies": self.cookies,
        }
        if self.proxy is not None:
            client_kwargs["proxy"] = self.proxy.url
        if self._transport is not None:
            client_kwargs["transport"] = self._transport
        self._client = httpx.Client(**client_kwargs)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch(self, target: PageTarget, timeout: float) -> FetchResult:
        self.open()
        assert self._client is not None
        if target.cookies:
            self._client.cookies.update(dict(target.cookies))
        try:
            response = self._client.get(target.url, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"Timed out after {timeout}s", url=target.url) from exc
        except httpx.ProxyError as exc:
            # 代理在运行中途断开属于连接级故障，可重试
            raise NetworkError(f"Proxy refused request: {exc}", url=target.url) from exc
        except httpx.UnsupportedProtocol as exc:
            raise NavigationError(str(exc), url=target.url) from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"{type(exc).__name__}: {exc}", url=target.url) from exc

        check_status(response.status_code, target.url)
        raw = response.content
        body = decompress_body(raw)
        text = response.text if body is raw else body.decode(response.encoding or "utf-8", errors="replace")
        headers = dict(response.headers)
        return FetchResult(
            url=str(response.url),
            status_code=response.status_code,
            text=text,
            headers=headers,
            target=target,
            content_encoding=response.headers.get("content-encoding"),
        )

    def next_target(self, result: FetchResult, extraction: "ExtractionResult") -> PageTarget:
        if not extraction.next_url:
            raise NavigationError("Next control has no resolvable href", url=result.url)
        return PageTarget(url=extraction.next_url, proxy=result.target.proxy)


def classify_playwright_error(exc: Exception, url: str, *, session_start: bool = False) -> CrawlError:
    """Map a Playwright error message onto the crawl error taxonomy.

    Proxy failures are fatal only while the session is being set up; once
    pages are flowing they count as ordinary connection failures.
    """

    message = (getattr(exc, "message", None) or str(exc)).strip()
    lowered = message.lower()
    if session_start and ("err_proxy" in lowered or "err_tunnel_connection_failed" in lowered):
        return ProxyUnavailableError(message, url=url)
    if "net::err_" in lowered:
        return NetworkError(message, url=url)
    return NavigationError(message, url=url)


class RenderedFetcher(_ManagedSession):
    """Drive a Chromium page through Playwright's sync API."""

    def __init__(
        self,
        *,
        options: BrowserOptions,
        ready_selector: str | None = None,
        user_agent: str | None = None,
        accept_language: str = "en-US,en;q=0.9",
        proxy: ProxyBinding | None = None,
        probe_timeout: float = 5.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.options = options
        self.ready_selector = options.ready_selector or ready_selector
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.accept_language = accept_language
        self.proxy = proxy
        self.probe_timeout = probe_timeout
        self.logger = logger or structlog.get_logger("listing_crawler.fetcher")
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def open(self) -> None:
        if self._page is not None:
            return
        if self.proxy is not None:
            probe_proxy(self.proxy, self.probe_timeout)
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "Rendered crawls require installing the 'playwright' package."
            ) from exc

        launch_kwargs: dict[str, Any] = {
            "headless": self.options.headless,
            "args": ["--ignore-certificate-errors"],
        }
        if self.proxy is not None:
            launch_kwargs["proxy"] = {"server": self.proxy.url}
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(**launch_kwargs)
            width, height = self.options.viewport
            self._context = self._browser.new_context(
                user_agent=self.user_agent,
                locale=self.options.locale,
                viewport={"width": width, "height": height},
                ignore_https_errors=True,
                extra_http_headers={"Accept-Language": self.accept_language},
            )
            self._page = self._context.new_page()
        except PlaywrightError as exc:
            self.close()
            raise classify_playwright_error(exc, "about:blank", session_start=True) from exc

    def fetch(self, target: PageTarget, timeout: float) -> FetchResult:
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        self.open()
        page = self._page
        timeout_ms = int(timeout * 1000)
        wait_until = self.options.wait_until
        try:
            if target.cookies:
                self._context.add_cookies(
                    [{"name": k, "value": v, "url": target.url} for k, v in target.cookies.items()]
                )
            if target.action is NavigationAction.CLICK:
                if not target.selector:
                    raise NavigationError("Click target without selector", url=target.url)
                if target.reload:
                    # 刷新的是点击前的那一页，刷新后必须重新点击才算拿到下一页
                    page.reload(wait_until=wait_until, timeout=timeout_ms)
                with page.expect_navigation(wait_until=wait_until, timeout=timeout_ms) as navigation:
                    page.click(target.selector, timeout=timeout_ms)
                response = navigation.value
            # A goto that timed out may have left the page elsewhere; reload only what is loaded.
            elif target.reload and page.url == target.url:
                response = page.reload(wait_until=wait_until, timeout=timeout_ms)
            else:
                response = page.goto(target.url, wait_until=wait_until, timeout=timeout_ms)
            if self.ready_selector:
                page.wait_for_selector(self.ready_selector, timeout=timeout_ms)
            content = page.content()
        except PlaywrightTimeoutError as exc:
            raise FetchTimeoutError(f"Render timed out after {timeout}s", url=target.url) from exc
        except PlaywrightError as exc:
            raise classify_playwright_error(exc, target.url) from exc

        status_code = response.status if response else 200
        check_status(status_code, page.url)
        headers = dict(response.headers) if response else {}
        return FetchResult(
            url=page.url,
            status_code=status_code,
            text=content,
            headers=headers,
            target=target,
            content_encoding=headers.get("content-encoding"),
            document=page,
        )

    def next_target(self, result: FetchResult, extraction: "ExtractionResult") -> PageTarget:
        if not extraction.next_selector:
            raise NavigationError("No next control to click", url=result.url)
        return PageTarget(
            url=result.url,
            action=NavigationAction.CLICK,
            selector=extraction.next_selector,
            proxy=result.target.proxy,
        )

    def close(self) -> None:
        if self._page is not None:
            self._page.close()
            self._page = None
        if self._context is not None:
            self._context.close()
            self._context = None
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None


def build_fetcher(
    config: CrawlConfig,
    *,
    user_agent: str | None,
    accept_language: str,
    proxy: ProxyBinding | None,
    logger: structlog.BoundLogger | None = None,
) -> PageFetcher:
    """Instantiate the fetcher variant a crawl config asks for."""

    if config.variant is FetchVariant.RENDERED:
        return RenderedFetcher(
            options=config.browser,
            ready_selector=config.extraction.container_selector,
            user_agent=user_agent,
            accept_language=accept_language,
            proxy=proxy,
            probe_timeout=config.proxy.probe_timeout,
            logger=logger,
        )
    return StaticFetcher(
        user_agent=user_agent,
        accept_language=accept_language,
        proxy=proxy,
        probe_timeout=config.proxy.probe_timeout,
        cookies=config.cookies,
        logger=logger,
    )


__all__ = [
    "FetchResult",
    "NavigationAction",
    "PageFetcher",
    "PageTarget",
    "RenderedFetcher",
    "StaticFetcher",
    "build_fetcher",
    "check_status",
    "classify_playwright_error",
    "decompress_body",
]
