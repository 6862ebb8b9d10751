"""Error taxonomy shared by fetchers, extractors, the controller and exporters."""

from __future__ import annotations


class CrawlError(Exception):
    """Base class for every failure raised inside a crawl run."""

    kind = "crawl_error"
    fatal = False
    retryable = False

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url


class FetchError(CrawlError):
    """Page acquisition failed."""

    kind = "fetch_error"


class NetworkError(FetchError):
    """Connection-level failure or a transient HTTP status."""

    kind = "network"
    retryable = True


class FetchTimeoutError(FetchError):
    """Request or render wait exceeded the per-attempt timeout."""

    kind = "timeout"
    retryable = True


class ProxyUnavailableError(FetchError):
    """Configured proxy cannot be reached; the whole run is aborted."""

    kind = "proxy_unavailable"
    fatal = True


class NavigationError(CrawlError):
    """Current page cannot be navigated or advanced from."""

    kind = "navigation"


class ExtractionFieldMissing(CrawlError):
    """A listing element lacks a required field; only that element is skipped."""

    kind = "field_missing"

    def __init__(self, field: str, *, url: str | None = None) -> None:
        super().__init__(f"Required field '{field}' missing", url=url)
        self.field = field


class ExportError(CrawlError):
    """Writing the output file failed."""

    kind = "export"
    fatal = True


class CrawlCancelledError(CrawlError):
    """Run was cancelled by the operator."""

    kind = "cancelled"


__all__ = [
    "CrawlCancelledError",
    "CrawlError",
    "ExportError",
    "ExtractionFieldMissing",
    "FetchError",
    "FetchTimeoutError",
    "NavigationError",
    "NetworkError",
    "ProxyUnavailableError",
]
