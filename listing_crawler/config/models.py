"""Pydantic models used across listing-crawler configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ..infra.proxy_pool import ProxyBinding


class FetchVariant(str, Enum):
    """How pages are acquired."""

    STATIC = "static"
    RENDERED = "rendered"


class ExtractorSchema(BaseModel):
    """Selectors describing one listing page.

    ``fields`` maps a field name to a selector or a list of fallback
    selectors. A selector may carry a mode suffix: ``::text`` (default),
    ``::html`` or ``::attr:<name>``.
    """

    container_selector: str
    fields: dict[str, str | list[str]]
    required_fields: list[str] = Field(default_factory=list)
    multi_value_fields: list[str] = Field(default_factory=list)
    next_selector: str | None = None

    @model_validator(mode="after")
    def _validate_fields(self) -> "ExtractorSchema":
        if not self.container_selector.strip():
            raise ValueError("container_selector cannot be empty")
        if not self.fields:
            raise ValueError("fields must declare at least one selector")
        for name, selector in self.fields.items():
            selectors = selector if isinstance(selector, list) else [selector]
            if not selectors or not all(isinstance(s, str) and s.strip() for s in selectors):
                raise ValueError(f"field '{name}' needs a non-empty selector")
        unknown = [f for f in (*self.required_fields, *self.multi_value_fields) if f not in self.fields]
        if unknown:
            raise ValueError(f"Undeclared fields referenced: {unknown}")
        return self

    def selectors_for(self, field: str) -> list[str]:
        selector = self.fields[field]
        return list(selector) if isinstance(selector, list) else [selector]


class RetryPolicy(BaseModel):
    """Per-page retry bounds and backoff parameters."""

    max_attempts: int = 3
    timeout: float = 30.0
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: float = 0.1
    reload_on_timeout: bool = True

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RetryPolicy":
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff values must be non-negative")
        if self.backoff_max < self.backoff_base:
            raise ValueError("backoff_max must be >= backoff_base")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be within [0, 1]")
        return self


class ProxyConfig(BaseModel):
    """Proxy pool; one entry is bound per run."""

    enabled: bool = False
    proxies: list[str] = Field(default_factory=list)
    file: Path | None = None
    probe_timeout: float = 5.0

    @field_validator("proxies", mode="before")
    @classmethod
    def _coerce_proxies(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = [value]
        proxies = [str(item).strip() for item in value if str(item).strip()]
        for proxy in proxies:
            ProxyBinding.parse(proxy)
        return proxies

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_file(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)


class BrowserOptions(BaseModel):
    """Rendering session settings for the Playwright variant."""

    headless: bool = True
    # 内容就绪选择器，缺省时使用 container_selector
    ready_selector: str | None = None
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "domcontentloaded"
    viewport: tuple[int, int] = (1920, 1080)
    locale: str = "en-US"


class ExportConfig(BaseModel):
    """Output sink settings."""

    format: Literal["csv", "jsonl"] = "csv"
    columns: list[str] = Field(default_factory=list)
    output_dir: Path | None = None
    list_separator: str = "|"

    @field_validator("output_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @field_validator("list_separator")
    @classmethod
    def _check_separator(cls, value: str) -> str:
        if not value or "," in value or "\n" in value:
            raise ValueError("list_separator must be non-empty and free of ',' and newlines")
        return value


class CrawlConfig(BaseModel):
    """Full definition of one paginated crawl."""

    name: str
    target_url: str
    variant: FetchVariant = FetchVariant.STATIC
    extraction: ExtractorSchema
    identity_key: str
    export: ExportConfig = Field(default_factory=ExportConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    cookies: dict[str, str] = Field(default_factory=dict)
    max_pages: int | None = None

    @model_validator(mode="after")
    def _validate_crawl(self) -> "CrawlConfig":
        if not self.name.strip():
            raise ValueError("name cannot be empty")
        if not self.target_url.startswith(("http://", "https://")):
            raise ValueError("target_url must be an http(s) URL")
        if self.identity_key not in self.extraction.fields:
            raise ValueError(f"identity_key '{self.identity_key}' is not an extraction field")
        if self.identity_key not in self.extraction.required_fields:
            self.extraction.required_fields.append(self.identity_key)
        if not self.export.columns:
            self.export.columns = list(self.extraction.fields)
        missing = [c for c in self.export.columns if c not in self.extraction.fields]
        if missing:
            raise ValueError(f"Export columns not declared as fields: {missing}")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        return self


class GlobalConfig(BaseModel):
    """Global controls shared across crawls."""

    user_agent_list: list[str] | Path | None = None
    accept_language: str = "en-US,en;q=0.9"
    thread_pool_workers: int = 4
    enable_progress_bar: bool = True
    outputs_dir: Path = Field(default=Path("data/outputs"))
    crawls_dir: Path = Field(default=Path("data/crawls"))

    @field_validator("outputs_dir", "crawls_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("thread_pool_workers")
    @classmethod
    def _check_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("thread_pool_workers must be >= 1")
        return value

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "GlobalConfig":
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        return self


__all__ = [
    "BrowserOptions",
    "CrawlConfig",
    "ExportConfig",
    "ExtractorSchema",
    "FetchVariant",
    "GlobalConfig",
    "ProxyConfig",
    "RetryPolicy",
]
