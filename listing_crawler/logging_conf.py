"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    env_root = os.environ.get("LISTING_CRAWLER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    crawler_log = log_dir / "crawler.log"
    (log_dir / "crawls").mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    crawler_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        # 控制台仅显示告警以上，避免干扰进度条
                        "level": level if verbose else "WARNING",
                        "formatter": "json",
                    },
                    "crawler_file": {
                        "class": "logging.FileHandler",
                        "level": level,
                        "filename": str(crawler_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    "listing_crawler": {
                        "handlers": ["console", "crawler_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("listing_crawler")


def crawl_logger(crawl_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to one crawl and ensure its file handler exists."""

    configure_logging(verbose)
    crawl_log_path = _default_log_dir() / "crawls" / f"{crawl_name}.log"
    crawl_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"listing_crawler.crawl.{crawl_name}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(crawl_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(crawl_log_path, encoding="utf-8")
        global_logger = logging.getLogger("listing_crawler")
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(crawl=crawl_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_crawl_logs() -> Iterable[Path]:
    """Yield available per-crawl log file paths."""

    crawls_dir = _default_log_dir() / "crawls"
    if not crawls_dir.exists():
        return []
    return sorted(p for p in crawls_dir.glob("*.log"))


__all__ = ["available_crawl_logs", "configure_logging", "crawl_logger", "tail_log"]
