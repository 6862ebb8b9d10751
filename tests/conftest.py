"""Shared fixtures for listing-crawler tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from listing_crawler.config import (
    ConfigLocator,
    ConfigRepository,
    CrawlConfig,
    ExtractorSchema,
    GlobalConfig,
    RetryPolicy,
)
from listing_crawler.engine import FetchResult, PageTarget

LISTING_TEMPLATE = """
<html><body>
  {quotes}
  <nav><ul class="pager">{pager}</ul></nav>
</body></html>
"""

QUOTE_TEMPLATE = """
<div class="quote">
  <span class="text">{text}</span>
  <small class="author">{author}</small>
  <div class="tags">{tags}</div>
</div>
"""


def render_listing(quotes: Iterable[tuple[str | None, str, list[str]]], next_href: str | None = None) -> str:
    """Build a quotes-style listing page; ``None`` fields are left out of the element."""

    parts = []
    for text, author, tags in quotes:
        tag_links = "".join(f'<a class="tag" href="/tag/{tag}/">{tag}</a>' for tag in tags)
        block = QUOTE_TEMPLATE.format(text=text or "", author=author or "", tags=tag_links)
        if text is None:
            block = block.replace('<span class="text"></span>', "")
        parts.append(block)
    pager = f'<li class="next"><a href="{next_href}">Next</a></li>' if next_href else ""
    return LISTING_TEMPLATE.format(quotes="".join(parts), pager=pager)


@pytest.fixture
def listing_html() -> Callable[..., str]:
    return render_listing


@pytest.fixture
def quotes_schema() -> ExtractorSchema:
    return ExtractorSchema(
        container_selector="div.quote",
        fields={"text": "span.text", "author": "small.author", "tags": "div.tags a.tag"},
        required_fields=["text", "author"],
        multi_value_fields=["tags"],
        next_selector="li.next > a",
    )


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, timeout=5.0, backoff_base=0.0, backoff_max=0.0, jitter=0.0)


@pytest.fixture
def page_result() -> Callable[..., FetchResult]:
    def _builder(url: str, text: str, **overrides: Any) -> FetchResult:
        base: dict[str, Any] = {
            "url": url,
            "status_code": 200,
            "text": text,
            "headers": {"content-type": "text/html; charset=utf-8"},
            "target": PageTarget(url=url),
        }
        base.update(overrides)
        return FetchResult(**base)

    return _builder


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        outputs_dir=tmp_path / "outputs",
        crawls_dir=tmp_path / "crawls",
        user_agent_list=["UA-Test/1.0"],
    )


@pytest.fixture
def sample_crawl_config() -> Callable[..., CrawlConfig]:
    def _builder(**overrides: Any) -> CrawlConfig:
        base: dict[str, Any] = {
            "name": "quotes",
            "target_url": "https://quotes.example.com/",
            "identity_key": "text",
            "extraction": {
                "container_selector": "div.quote",
                "fields": {
                    "text": "span.text",
                    "author": "small.author",
                    "tags": "div.tags a.tag",
                },
                "required_fields": ["text", "author"],
                "multi_value_fields": ["tags"],
                "next_selector": "li.next > a",
            },
            "retry": {"max_attempts": 2, "timeout": 5, "backoff_base": 0, "backoff_max": 0, "jitter": 0},
        }
        base.update(overrides)
        return CrawlConfig.model_validate(base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("LISTING_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
