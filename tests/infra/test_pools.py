from __future__ import annotations

import random
import socket

import pytest

from listing_crawler.errors import ProxyUnavailableError
from listing_crawler.infra import DEFAULT_USER_AGENT, ProxyBinding, ProxyPool, UserAgentPool, probe_proxy


def test_proxy_binding_parse_variants() -> None:
    plain = ProxyBinding.parse("101.37.12.43:8000")
    assert (plain.host, plain.port, plain.scheme) == ("101.37.12.43", 8000, "http")
    assert plain.url == "http://101.37.12.43:8000"
    assert str(plain) == "101.37.12.43:8000"

    socks = ProxyBinding.parse("SOCKS5://proxy.local:1080/")
    assert socks.scheme == "socks5"
    assert socks.url == "socks5://proxy.local:1080"

    for bad in ("proxy.local", "host:0", "host:70000", "http://:80"):
        with pytest.raises(ValueError):
            ProxyBinding.parse(bad)


def test_proxy_pool_selects_from_list_and_file(tmp_path) -> None:
    proxy_file = tmp_path / "proxies.txt"
    proxy_file.write_text("# comment\n10.0.0.2:3128\n\n", encoding="utf-8")
    pool = ProxyPool(["10.0.0.1:8080"], file_path=proxy_file)

    picks = {pool.select(random.Random(seed)) for seed in range(20)}
    assert picks <= {ProxyBinding.parse("10.0.0.1:8080"), ProxyBinding.parse("10.0.0.2:3128")}


def test_empty_proxy_pool_selects_nothing(tmp_path) -> None:
    assert ProxyPool(file_path=tmp_path / "missing.txt").select() is None
    assert ProxyPool(["  "]).select() is None


def test_malformed_proxy_file_line_is_reported(tmp_path) -> None:
    proxy_file = tmp_path / "proxies.txt"
    proxy_file.write_text("10.0.0.2:3128\nnot-a-proxy\n", encoding="utf-8")

    with pytest.raises(ValueError) as info:
        ProxyPool(file_path=proxy_file)
    assert f"{proxy_file}:2" in str(info.value)
    assert "not-a-proxy" in str(info.value)


def test_probe_proxy_reports_unreachable(monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(address, timeout):
        raise socket.timeout("timed out")

    monkeypatch.setattr(socket, "create_connection", refuse)
    with pytest.raises(ProxyUnavailableError) as info:
        probe_proxy(ProxyBinding.parse("10.0.0.9:8000"), timeout=0.1)
    assert info.value.fatal
    assert "10.0.0.9:8000" in info.value.message


def test_probe_proxy_accepts_open_port(monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[tuple] = []

    class DummyConnection:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def connect(address, timeout):
        opened.append((address, timeout))
        return DummyConnection()

    monkeypatch.setattr(socket, "create_connection", connect)
    probe_proxy(ProxyBinding.parse("10.0.0.9:8000"), timeout=2)
    assert opened == [(("10.0.0.9", 8000), 2)]


def test_user_agent_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(random, "choice", lambda seq: seq[-1])
    assert UserAgentPool(user_agents=["UA1", " UA2 ", ""]).get() == "UA2"
    assert UserAgentPool().get() == DEFAULT_USER_AGENT
