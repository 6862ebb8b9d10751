"""Infra layer utilities (proxy and UA pools)."""

from .proxy_pool import ProxyBinding, ProxyPool, probe_proxy
from .ua_pool import DEFAULT_USER_AGENT, UserAgentPool

__all__ = ["DEFAULT_USER_AGENT", "ProxyBinding", "ProxyPool", "UserAgentPool", "probe_proxy"]
