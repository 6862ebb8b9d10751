"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    BrowserOptions,
    CrawlConfig,
    ExportConfig,
    ExtractorSchema,
    FetchVariant,
    GlobalConfig,
    ProxyConfig,
    RetryPolicy,
)

__all__ = [
    "BrowserOptions",
    "ConfigLocator",
    "ConfigRepository",
    "CrawlConfig",
    "ExportConfig",
    "ExtractorSchema",
    "FetchVariant",
    "GlobalConfig",
    "ProxyConfig",
    "RetryPolicy",
]
