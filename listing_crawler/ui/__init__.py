"""User interaction helpers."""

from .progress import CrawlProgress, ProgressState, RunProgress

__all__ = ["CrawlProgress", "ProgressState", "RunProgress"]
