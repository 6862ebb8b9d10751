"""Proxy pool and the per-run proxy binding."""

from __future__ import annotations

import random
import re
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import ProxyUnavailableError

_PROXY_PATTERN = re.compile(
    r"^(?:(?P<scheme>[a-z][a-z0-9+.-]*)://)?(?P<host>[^:/\s]+):(?P<port>\d{1,5})/?$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class ProxyBinding:
    """A single proxy endpoint held fixed for the lifetime of a run."""

    host: str
    port: int
    scheme: str = "http"

    @classmethod
    def parse(cls, value: str) -> "ProxyBinding":
        match = _PROXY_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Proxy must look like host:port, got '{value}'")
        port = int(match.group("port"))
        if not 0 < port < 65536:
            raise ValueError(f"Proxy port out of range: {port}")
        scheme = (match.group("scheme") or "http").lower()
        return cls(host=match.group("host"), port=port, scheme=scheme)

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def probe_proxy(binding: ProxyBinding, timeout: float = 5.0) -> None:
    """Open and close a TCP connection to the proxy, raising if unreachable."""

    try:
        with socket.create_connection((binding.host, binding.port), timeout=timeout):
            return
    except OSError as exc:
        raise ProxyUnavailableError(f"Proxy {binding} unreachable: {exc}") from exc


class ProxyPool:
    """Pool of proxies from which one binding is drawn per run.

    Every entry is parsed up front, so a malformed proxy file line surfaces
    as a ``ValueError`` naming the file and line before any run starts.
    """

    def __init__(self, proxies: Iterable[str] | None = None, file_path: Path | None = None) -> None:
        self._bindings: List[ProxyBinding] = [
            ProxyBinding.parse(entry) for entry in proxies or () if entry.strip()
        ]
        if file_path and file_path.exists():
            lines = file_path.read_text(encoding="utf-8").splitlines()
            for number, line in enumerate(lines, start=1):
                entry = line.strip()
                if not entry or entry.startswith("#"):
                    continue
                try:
                    self._bindings.append(ProxyBinding.parse(entry))
                except ValueError as exc:
                    raise ValueError(f"{file_path}:{number}: {exc}") from exc

    def select(self, rng: random.Random | None = None) -> Optional[ProxyBinding]:
        """Draw one proxy at random; the caller keeps it for the whole run."""

        if not self._bindings:
            return None
        return (rng or random).choice(self._bindings)


__all__ = ["ProxyBinding", "ProxyPool", "probe_proxy"]
