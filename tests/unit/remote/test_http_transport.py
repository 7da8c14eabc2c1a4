"""Tests for script_bootstrap.remote.http_transport."""

from __future__ import annotations

import httpx
import pytest

from script_bootstrap.core.errors import NetworkError
from script_bootstrap.remote.http_transport import HttpTransport, github_raw_base_url


def _transport(handler) -> HttpTransport:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransport("https://raw.example.test/u/r/master/", client=client)


class TestHttpTransport:
    def test_github_raw_url(self) -> None:
        assert github_raw_base_url("TeaGuild", "cc-stuff", "master") == (
            "https://raw.githubusercontent.com/TeaGuild/cc-stuff/master"
        )

    def test_fetch_returns_body(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=b"print('hi')")

        t = _transport(handler)
        assert t.fetch("/scripts/a.py") == b"print('hi')"
        assert seen == ["https://raw.example.test/u/r/master/scripts/a.py"]

    def test_http_error_status(self) -> None:
        t = _transport(lambda request: httpx.Response(404, content=b"Not Found"))
        with pytest.raises(NetworkError, match="HTTP 404"):
            t.fetch("missing.py")

    def test_empty_body_is_failure(self) -> None:
        t = _transport(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(NetworkError, match="Empty response"):
            t.fetch("a.py")

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        t = _transport(handler)
        with pytest.raises(NetworkError, match="no route to host"):
            t.fetch("a.py")
