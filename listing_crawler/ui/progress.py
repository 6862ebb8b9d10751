"""Terminal progress rendering for running crawls."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from ..engine.controller import CrawlOutcome
from ..errors import CrawlError


@dataclass
class ProgressState:
    pages: int = 0
    records: int = 0
    retries: int = 0
    current_url: str | None = None


def _shorten(url: str, limit: int = 60) -> str:
    return url if len(url) <= limit else url[: limit - 3] + "..."


class CrawlProgress:
    """
    多个抓取任务共用的 Rich 进度显示器，线程安全。

    Pagination has no known total, so every row is an indeterminate spinner
    with page/record/retry counters.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        if enabled and not self.console.is_terminal:
            # 非TTY 环境下退化为静默模式，避免重复打印
            self.enabled = False
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[crawl]:<18}", justify="left"),
            TimeElapsedColumn(),
            TextColumn("[green]页 {task.fields[pages]:>3}", justify="right"),
            TextColumn("[cyan]记录 {task.fields[records]:>5}", justify="right"),
            TextColumn("[yellow]↺{task.fields[retries]:>3}", justify="right"),
            TextColumn("[dim]{task.fields[current_url]}", justify="left"),
            console=self.console,
            transient=True,
            refresh_per_second=8,
            expand=True,
            disable=not self.enabled,
        )
        self._lock = Lock()
        self._entered = False

    def __enter__(self) -> "CrawlProgress":
        if self.enabled and not self._entered:
            try:
                self._progress.__enter__()
                self._entered = True
            except LiveError:
                # 若已有其它 Live 控制器占用同一控制台，则直接退化为静默模式
                self.enabled = False
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._entered:
            self._progress.__exit__(exc_type, exc, tb)
            self._entered = False

    def reporter(self, crawl_name: str) -> "RunProgress":
        with self._lock:
            task_id = self._progress.add_task(
                crawl_name,
                total=None,
                crawl=crawl_name,
                pages=0,
                records=0,
                retries=0,
                current_url="等待中…",
            )
        return RunProgress(self, task_id)

    def update(self, task_id: TaskID, **fields) -> None:
        with self._lock:
            self._progress.update(task_id, **fields)


class RunProgress:
    """Observer for one run feeding a row of :class:`CrawlProgress`."""

    def __init__(self, owner: CrawlProgress, task_id: TaskID) -> None:
        self._owner = owner
        self._task_id = task_id
        self.state = ProgressState()

    def on_page(self, page_number: int, url: str, added: int, total: int) -> None:
        self.state.pages = page_number
        self.state.records = total
        self.state.current_url = url
        self._owner.update(
            self._task_id, pages=page_number, records=total, current_url=_shorten(url)
        )

    def on_retry(self, attempt: int, error: CrawlError, delay: float) -> None:
        self.state.retries += 1
        self._owner.update(
            self._task_id,
            retries=self.state.retries,
            current_url=f"重试 #{attempt} ({error.kind}) {delay:.1f}s",
        )

    def on_finished(self, outcome: CrawlOutcome) -> None:
        label = "已完成" if outcome.completed else f"已中止 ({outcome.phase.value})"
        self._owner.update(
            self._task_id,
            pages=outcome.pages,
            records=len(outcome.records),
            current_url=label,
            total=1,
            completed=1,
        )


__all__ = ["CrawlProgress", "ProgressState", "RunProgress"]
