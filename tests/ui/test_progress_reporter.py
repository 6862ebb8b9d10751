from __future__ import annotations

import io

from rich.console import Console

from listing_crawler.engine.controller import CrawlOutcome, CrawlPhase
from listing_crawler.errors import FetchTimeoutError
from listing_crawler.ui import CrawlProgress, ProgressState


def test_progress_disabled_off_terminal() -> None:
    progress = CrawlProgress(enabled=True, console=Console(file=io.StringIO()))

    assert not progress.enabled
    with progress:
        reporter = progress.reporter("quotes")
        reporter.on_page(1, "https://quotes.example.com/", 10, 10)


def test_run_progress_tracks_pages_and_retries() -> None:
    progress = CrawlProgress(enabled=False, console=Console(file=io.StringIO()))
    reporter = progress.reporter("quotes")

    reporter.on_page(1, "https://quotes.example.com/", 10, 10)
    reporter.on_retry(1, FetchTimeoutError("slow"), 1.5)
    reporter.on_page(2, "https://quotes.example.com/page/2/", 10, 20)

    assert reporter.state == ProgressState(
        pages=2, records=20, retries=1, current_url="https://quotes.example.com/page/2/"
    )
    task = progress._progress.tasks[0]
    assert task.fields["crawl"] == "quotes"
    assert task.fields["records"] == 20
    assert task.fields["retries"] == 1


def test_run_progress_marks_finished_runs() -> None:
    progress = CrawlProgress(enabled=False, console=Console(file=io.StringIO()))
    reporter = progress.reporter("quotes")
    outcome = CrawlOutcome(
        phase=CrawlPhase.FAILED, records=[], pages=1, fetches=3, retries=2, skipped=0, duplicates=0
    )

    reporter.on_finished(outcome)

    task = progress._progress.tasks[0]
    assert task.finished
    assert "failed" in task.fields["current_url"]
