"""Pagination state machine driving fetch → extract → advance across pages."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from threading import Event
from typing import Protocol

import structlog

from ..config import RetryPolicy
from ..errors import CrawlCancelledError, CrawlError, FetchTimeoutError
from .backoff import backoff_delay
from .dedup import Deduplicator
from .extractor import ExtractionResult, Extractor
from .fetcher import FetchResult, NavigationAction, PageFetcher, PageTarget
from .records import Record


class CrawlPhase(str, Enum):
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    ADVANCING = "advancing"
    TERMINAL = "terminal"
    FAILED = "failed"


@dataclass
class RunState:
    """Mutable state of one run, owned by a single controller."""

    target: PageTarget
    phase: CrawlPhase = CrawlPhase.FETCHING
    attempt: int = 0
    records: list[Record] = field(default_factory=list)
    terminal: bool = False
    pages: int = 0
    fetches: int = 0
    retries: int = 0
    skipped: int = 0
    failure: CrawlError | None = None
    visited: set[str] = field(default_factory=set)
    result: FetchResult | None = None
    extraction: ExtractionResult | None = None

    def finish(self, phase: CrawlPhase, failure: CrawlError | None = None) -> None:
        if self.terminal:
            return
        self.phase = phase
        self.failure = failure
        self.terminal = True
        self.result = None
        self.extraction = None


@dataclass(slots=True)
class CrawlOutcome:
    """What a finished run hands to the exporter."""

    phase: CrawlPhase
    records: list[Record]
    pages: int
    fetches: int
    retries: int
    skipped: int
    duplicates: int
    failure: CrawlError | None = None

    @property
    def completed(self) -> bool:
        return self.phase is CrawlPhase.TERMINAL


class CrawlObserver(Protocol):
    def on_page(self, page_number: int, url: str, added: int, total: int) -> None: ...

    def on_retry(self, attempt: int, error: CrawlError, delay: float) -> None: ...

    def on_finished(self, outcome: CrawlOutcome) -> None: ...


class _NullObserver:
    def on_page(self, page_number: int, url: str, added: int, total: int) -> None:
        return

    def on_retry(self, attempt: int, error: CrawlError, delay: float) -> None:
        return

    def on_finished(self, outcome: CrawlOutcome) -> None:
        return


class PaginationController:
    """Sequential pagination with bounded per-page retries.

    Page N+1 is only known once page N has been extracted, so fetches are
    never issued concurrently. Fatal errors (``error.fatal``) propagate out
    of :meth:`run`; page-level failures end the run in ``FAILED`` with the
    records gathered so far.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: Extractor,
        *,
        identity_key: str,
        policy: RetryPolicy,
        max_pages: int | None = None,
        cancel_event: Event | None = None,
        observer: CrawlObserver | None = None,
        logger: structlog.BoundLogger | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.identity_key = identity_key
        self.policy = policy
        self.max_pages = max_pages
        self.cancel_event = cancel_event or Event()
        self.observer = observer or _NullObserver()
        self.logger = logger or structlog.get_logger("listing_crawler.controller")
        self._rng = rng

    def run(self, start: PageTarget) -> CrawlOutcome:
        state = RunState(target=start)
        self.fetcher.open()
        while not state.terminal:
            if self.cancel_event.is_set():
                self.logger.warning("run_cancelled", url=state.target.url, records=len(state.records))
                state.finish(
                    CrawlPhase.FAILED,
                    CrawlCancelledError("Run cancelled by operator", url=state.target.url),
                )
                break
            if state.phase is CrawlPhase.FETCHING:
                self._fetch(state)
            elif state.phase is CrawlPhase.EXTRACTING:
                self._extract(state)
            elif state.phase is CrawlPhase.ADVANCING:
                self._advance(state)

        deduplicator = Deduplicator(self.identity_key)
        records = deduplicator.filter(state.records)
        outcome = CrawlOutcome(
            phase=state.phase,
            records=records,
            pages=state.pages,
            fetches=state.fetches,
            retries=state.retries,
            skipped=state.skipped,
            duplicates=deduplicator.duplicates,
            failure=state.failure,
        )
        self.observer.on_finished(outcome)
        return outcome

    # ------------------------------------------------------------------
    def _fetch(self, state: RunState) -> None:
        state.fetches += 1
        try:
            result = self.fetcher.fetch(state.target, self.policy.timeout)
        except CrawlError as exc:
            if exc.fatal:
                raise
            if exc.retryable:
                self._retry_or_fail(state, exc)
            else:
                self._page_failed(state, exc)
            return
        state.pages += 1
        state.visited.update({state.target.url, result.url})
        state.result = result
        state.phase = CrawlPhase.EXTRACTING
        self.logger.info(
            "page_fetched",
            url=result.url,
            page=state.pages,
            status=result.status_code,
            attempt=state.attempt + 1,
        )

    def _retry_or_fail(self, state: RunState, error: CrawlError) -> None:
        state.attempt += 1
        if state.attempt >= self.policy.max_attempts:
            self._page_failed(state, error)
            return
        delay = backoff_delay(state.attempt, self.policy, self._rng)
        state.retries += 1
        if isinstance(error, FetchTimeoutError) and self.policy.reload_on_timeout:
            state.target = state.target.with_reload()
        self.logger.warning(
            "fetch_retry",
            url=state.target.url,
            attempt=state.attempt,
            max_attempts=self.policy.max_attempts,
            error_kind=error.kind,
            error=error.message,
            delay=round(delay, 3),
            reload=state.target.reload,
        )
        self.observer.on_retry(state.attempt, error, delay)
        if delay > 0:
            # 取消事件会提前唤醒退避等待
            self.cancel_event.wait(delay)

    def _page_failed(self, state: RunState, error: CrawlError) -> None:
        self.logger.error(
            "page_failed",
            url=error.url or state.target.url,
            attempts=state.attempt,
            error_kind=error.kind,
            error=error.message,
            records=len(state.records),
        )
        state.finish(CrawlPhase.FAILED, error)

    def _extract(self, state: RunState) -> None:
        result = state.result
        assert result is not None
        try:
            extraction = self.extractor.extract(result)
        except CrawlError as exc:
            if exc.fatal:
                raise
            self._page_failed(state, exc)
            return
        state.records.extend(extraction.records)
        state.skipped += extraction.skipped
        self.observer.on_page(state.pages, result.url, len(extraction.records), len(state.records))
        if not extraction.has_next:
            self.logger.info("pagination_terminal", url=result.url, pages=state.pages)
            state.finish(CrawlPhase.TERMINAL)
            return
        state.extraction = extraction
        state.phase = CrawlPhase.ADVANCING

    def _advance(self, state: RunState) -> None:
        result, extraction = state.result, state.extraction
        assert result is not None and extraction is not None
        if self.max_pages is not None and state.pages >= self.max_pages:
            self.logger.info("max_pages_reached", url=result.url, pages=state.pages)
            state.finish(CrawlPhase.TERMINAL)
            return
        try:
            target = self.fetcher.next_target(result, extraction)
        except CrawlError as exc:
            if exc.fatal:
                raise
            self._page_failed(state, exc)
            return
        if target.action is NavigationAction.GOTO and target.url in state.visited:
            self.logger.warning("pagination_cycle_detected", url=target.url, pages=state.pages)
            state.finish(CrawlPhase.TERMINAL)
            return
        state.target = target
        state.attempt = 0
        state.result = None
        state.extraction = None
        state.phase = CrawlPhase.FETCHING


__all__ = [
    "CrawlObserver",
    "CrawlOutcome",
    "CrawlPhase",
    "PaginationController",
    "RunState",
]
