from __future__ import annotations

from pathlib import Path

import pytest

from listing_crawler.config import (
    CrawlConfig,
    ExportConfig,
    ExtractorSchema,
    FetchVariant,
    GlobalConfig,
    ProxyConfig,
    RetryPolicy,
)


def test_crawl_config_defaults(sample_crawl_config) -> None:
    config = sample_crawl_config()

    assert config.variant is FetchVariant.STATIC
    assert config.export.format == "csv"
    assert config.export.columns == ["text", "author", "tags"]
    assert config.export.list_separator == "|"
    assert config.browser.wait_until == "domcontentloaded"
    assert config.max_pages is None


def test_identity_key_becomes_required(sample_crawl_config) -> None:
    config = sample_crawl_config(
        identity_key="author",
        extraction={
            "container_selector": "div.quote",
            "fields": {"text": "span.text", "author": "small.author"},
        },
    )

    assert config.extraction.required_fields == ["author"]


def test_identity_key_must_be_a_field(sample_crawl_config) -> None:
    with pytest.raises(ValueError):
        sample_crawl_config(identity_key="missing")


def test_columns_must_be_declared(sample_crawl_config) -> None:
    with pytest.raises(ValueError):
        sample_crawl_config(export={"columns": ["text", "unknown"]})


def test_target_url_must_be_http(sample_crawl_config) -> None:
    with pytest.raises(ValueError):
        sample_crawl_config(target_url="ftp://quotes.example.com/")


def test_max_pages_positive(sample_crawl_config) -> None:
    with pytest.raises(ValueError):
        sample_crawl_config(max_pages=0)


def test_schema_rejects_undeclared_references() -> None:
    with pytest.raises(ValueError):
        ExtractorSchema(container_selector="li", fields={"a": "span"}, required_fields=["b"])
    with pytest.raises(ValueError):
        ExtractorSchema(container_selector="li", fields={"a": "span"}, multi_value_fields=["b"])
    with pytest.raises(ValueError):
        ExtractorSchema(container_selector="  ", fields={"a": "span"})
    with pytest.raises(ValueError):
        ExtractorSchema(container_selector="li", fields={"a": ["span", ""]})


def test_schema_selectors_for_normalises_lists() -> None:
    schema = ExtractorSchema(container_selector="li", fields={"a": "span", "b": ["h2", "h3"]})

    assert schema.selectors_for("a") == ["span"]
    assert schema.selectors_for("b") == ["h2", "h3"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_attempts": 0},
        {"timeout": 0},
        {"backoff_base": -1},
        {"backoff_base": 5, "backoff_max": 1},
        {"jitter": 1.5},
    ],
)
def test_retry_policy_bounds(overrides) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**overrides)


def test_proxy_config_validates_host_port() -> None:
    config = ProxyConfig(enabled=True, proxies="10.0.0.1:3128")
    assert config.proxies == ["10.0.0.1:3128"]
    assert ProxyConfig(proxies=["http://proxy.local:8080", "  "]).proxies == ["http://proxy.local:8080"]
    with pytest.raises(ValueError):
        ProxyConfig(proxies=["no-port-here"])
    with pytest.raises(ValueError):
        ProxyConfig(proxies=["host:99999"])


@pytest.mark.parametrize("separator", ["", ",", "a\nb"])
def test_export_separator_rejects_reserved_characters(separator: str) -> None:
    with pytest.raises(ValueError):
        ExportConfig(list_separator=separator)


def test_global_config_loads_user_agents_from_file(tmp_path: Path) -> None:
    ua_file = tmp_path / "agents.txt"
    ua_file.write_text("UA-1\n\nUA-2\n", encoding="utf-8")

    config = GlobalConfig(user_agent_list=ua_file)
    assert config.user_agent_list == ["UA-1", "UA-2"]
    with pytest.raises(ValueError):
        GlobalConfig(user_agent_list=tmp_path / "missing.txt")
    with pytest.raises(ValueError):
        GlobalConfig(thread_pool_workers=0)


def test_crawl_config_accepts_rendered_variant(sample_crawl_config) -> None:
    config = sample_crawl_config(variant="rendered", browser={"headless": False, "viewport": [800, 600]})

    assert config.variant is FetchVariant.RENDERED
    assert config.browser.viewport == (800, 600)
    assert isinstance(config, CrawlConfig)
