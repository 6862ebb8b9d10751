"""Engine components orchestrating fetch → extract → dedup → export."""

from .controller import CrawlOutcome, CrawlPhase, PaginationController, RunState
from .dedup import Deduplicator, dedupe
from .extractor import ExtractionResult, RenderedExtractor, StaticExtractor, build_extractor
from .fetcher import (
    FetchResult,
    NavigationAction,
    PageTarget,
    RenderedFetcher,
    StaticFetcher,
    build_fetcher,
)
from .records import Record
from .thread_pool import ThreadPoolManager

__all__ = [
    "CrawlOutcome",
    "CrawlPhase",
    "Deduplicator",
    "ExtractionResult",
    "FetchResult",
    "NavigationAction",
    "PageTarget",
    "PaginationController",
    "Record",
    "RenderedExtractor",
    "RenderedFetcher",
    "RunState",
    "StaticExtractor",
    "StaticFetcher",
    "ThreadPoolManager",
    "build_extractor",
    "build_fetcher",
    "dedupe",
]
