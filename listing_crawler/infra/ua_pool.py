"""User-Agent pool abstraction."""

from __future__ import annotations

import random
from typing import Iterable, List

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class UserAgentPool:
    """Return random user agents from configured pool."""

    def __init__(self, user_agents: Iterable[str] | None = None) -> None:
        self._uas: List[str] = [ua.strip() for ua in user_agents or () if ua.strip()]

    def get(self) -> str:
        if not self._uas:
            return DEFAULT_USER_AGENT
        return random.choice(self._uas)


__all__ = ["DEFAULT_USER_AGENT", "UserAgentPool"]
