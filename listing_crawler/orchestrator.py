"""Run coordinator wiring config, fetcher, extractor, controller and exporter."""

from __future__ import annotations

import random
from concurrent.futures import Future
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import Event
from typing import Callable, Iterable

import structlog
from pydantic import ValidationError

from .config import ConfigRepository, CrawlConfig, FetchVariant, GlobalConfig
from .engine import PageTarget, PaginationController, ThreadPoolManager, build_extractor, build_fetcher
from .engine.controller import CrawlObserver
from .engine.exporter import BaseExporter, build_exporter
from .engine.fetcher import PageFetcher
from .errors import CrawlError, ProxyUnavailableError
from .infra import ProxyBinding, ProxyPool, UserAgentPool
from .logging_conf import configure_logging, crawl_logger


@dataclass(slots=True)
class CrawlSummary:
    """Structured report of one run, success or failure."""

    crawl: str
    status: str
    records: int = 0
    pages: int = 0
    fetches: int = 0
    retries: int = 0
    skipped: int = 0
    duplicates: int = 0
    output_path: Path | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["output_path"] = str(self.output_path) if self.output_path else None
        return payload


class Orchestrator:
    """Central coordinator managing lifecycle of crawl runs."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        thread_pool: ThreadPoolManager | None = None,
        ua_pool: UserAgentPool | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.thread_pool = thread_pool or ThreadPoolManager(self.global_config.thread_pool_workers)
        if ua_pool is None:
            agents = self.global_config.user_agent_list
            ua_pool = UserAgentPool(agents if isinstance(agents, list) else None)
        self.ua_pool = ua_pool
        self._rng = rng
        self.logger = configure_logging().bind(component="orchestrator")

    # ------------------------------------------------------------------
    def submit_many(
        self,
        crawl_names: Iterable[str],
        *,
        cancel_event: Event | None = None,
        observer_factory: Callable[[str], CrawlObserver] | None = None,
    ) -> list[Future[CrawlSummary]]:
        """Start crawls on the worker pool; each run owns its fetcher and state."""

        cancel_event = cancel_event or Event()
        return [
            self.thread_pool.submit(
                self.run_crawl,
                name,
                cancel_event=cancel_event,
                observer=observer_factory(name) if observer_factory else None,
            )
            for name in crawl_names
        ]

    def run_crawl(
        self,
        crawl: str | CrawlConfig,
        *,
        cancel_event: Event | None = None,
        observer: CrawlObserver | None = None,
    ) -> CrawlSummary:
        try:
            config = crawl if isinstance(crawl, CrawlConfig) else self.config_repository.load_crawl(crawl)
        except (FileNotFoundError, ValidationError, ValueError) as exc:
            self.logger.error("config_invalid", crawl=str(crawl), error=str(exc))
            return CrawlSummary(crawl=str(crawl), status="failed", error_kind="config", error_message=str(exc))

        log = crawl_logger(config.name)
        try:
            proxy = self._select_proxy(config, log)
        except ValueError as exc:
            log.error("config_invalid", error=str(exc))
            return CrawlSummary(crawl=config.name, status="failed", error_kind="config", error_message=str(exc))
        except CrawlError as exc:
            return self._fatal_summary(config, exc, log)

        try:
            with self._build_fetcher(config, proxy, log) as fetcher:
                controller = PaginationController(
                    fetcher,
                    build_extractor(config.extraction, config.variant is FetchVariant.RENDERED, log),
                    identity_key=config.identity_key,
                    policy=config.retry,
                    max_pages=config.max_pages,
                    cancel_event=cancel_event,
                    observer=observer,
                    logger=log,
                    rng=self._rng,
                )
                outcome = controller.run(
                    PageTarget(url=config.target_url, cookies=config.cookies, proxy=proxy)
                )
        except CrawlError as exc:
            return self._fatal_summary(config, exc, log)
        except Exception as exc:  # noqa: BLE001
            log.exception("run_crashed", error=str(exc))
            return CrawlSummary(
                crawl=config.name, status="failed", error_kind="internal", error_message=str(exc)
            )

        summary = CrawlSummary(
            crawl=config.name,
            status="completed" if outcome.completed else "partial",
            records=len(outcome.records),
            pages=outcome.pages,
            fetches=outcome.fetches,
            retries=outcome.retries,
            skipped=outcome.skipped,
            duplicates=outcome.duplicates,
        )
        if outcome.failure is not None:
            summary.error_kind = outcome.failure.kind
            summary.error_message = outcome.failure.message
        try:
            summary.output_path = self._build_exporter(config).export(outcome.records, config.export.columns)
        except CrawlError as exc:
            log.error("export_failed", error_kind=exc.kind, error=exc.message)
            summary.status = "failed"
            summary.error_kind = exc.kind
            summary.error_message = exc.message
            return summary
        log.info(
            "export_written",
            path=str(summary.output_path),
            records=summary.records,
            status=summary.status,
        )
        return summary

    # ------------------------------------------------------------------
    @staticmethod
    def _fatal_summary(config: CrawlConfig, exc: CrawlError, log: structlog.BoundLogger) -> CrawlSummary:
        log.error("run_fatal", error_kind=exc.kind, error=exc.message, url=exc.url)
        return CrawlSummary(crawl=config.name, status="failed", error_kind=exc.kind, error_message=exc.message)

    def _select_proxy(self, config: CrawlConfig, log: structlog.BoundLogger) -> ProxyBinding | None:
        if not config.proxy.enabled:
            return None
        proxy_file = self.config_repository.locator.resolve(config.proxy.file) if config.proxy.file else None
        binding = ProxyPool(config.proxy.proxies, file_path=proxy_file).select(self._rng)
        if binding is None:
            raise ProxyUnavailableError("Proxy enabled but the pool is empty")
        log.info("proxy_selected", proxy=str(binding))
        return binding

    def _build_fetcher(
        self, config: CrawlConfig, proxy: ProxyBinding | None, log: structlog.BoundLogger
    ) -> PageFetcher:
        return build_fetcher(
            config,
            user_agent=self.ua_pool.get(),
            accept_language=self.global_config.accept_language,
            proxy=proxy,
            logger=log,
        )

    def _build_exporter(self, config: CrawlConfig) -> BaseExporter:
        if config.export.output_dir is not None:
            output_dir = self.config_repository.locator.resolve(config.export.output_dir)
        else:
            output_dir = self.config_repository.outputs_dir()
        return build_exporter(config.export, output_dir)


__all__ = ["CrawlSummary", "Orchestrator"]
