"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Generator

import httpx
import pytest

from syscheck.config import Settings, load_settings


def _route(request: httpx.Request) -> httpx.Response:
    """Fake upstream: the host name decides how the target behaves."""
    host = request.url.host
    if host == "ok.test":
        return httpx.Response(200, text="fine")
    if host == "redirect.test":
        return httpx.Response(301, headers={"Location": "http://ok.test/"})
    if host == "missing.test":
        return httpx.Response(404)
    if host == "broken.test":
        return httpx.Response(503)
    if host == "slow.test":
        raise httpx.ReadTimeout("timed out", request=request)
    if host == "bad.test":
        raise httpx.ConnectTimeout("timed out", request=request)
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def mock_transport() -> httpx.MockTransport:
    return httpx.MockTransport(_route)


@pytest.fixture
def http_client(mock_transport: httpx.MockTransport) -> Generator[httpx.Client, None, None]:
    """Probe client wired to the fake upstream instead of the network."""
    with httpx.Client(transport=mock_transport, timeout=1.0, follow_redirects=True) as client:
        yield client


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {
            "targets": "http://ok.test,http://bad.test",
            "timeout": "1s",
            "interval": "60s",
            "listen": "127.0.0.1:18080",
        }
        values.update(overrides)
        return load_settings(**values)

    return _make
