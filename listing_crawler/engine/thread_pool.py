"""Worker pool running independent crawl runs off the CLI thread."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, TypeVar

T = TypeVar("T")


class ThreadPoolManager:
    """Lazily created executor; each submitted run owns all of its state."""

    def __init__(self, default_workers: int = 4) -> None:
        self.default_workers = default_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def get(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.default_workers, thread_name_prefix="crawl"
                )
            return self._executor

    def submit(self, fn: Callable[..., T], *args, **kwargs) -> Future[T]:
        return self.get().submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait, cancel_futures=not wait)
                self._executor = None


__all__ = ["ThreadPoolManager"]
