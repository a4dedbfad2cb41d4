"""Tests for the httpx-backed transport."""

from __future__ import annotations

from urllib.parse import parse_qsl

import httpx
import pytest

from grantflow.exceptions import TransportError
from grantflow.transport import DEFAULT_TIMEOUT, HttpxTransport


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestHttpxTransport:
    def test_posts_form_with_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        transport = HttpxTransport(client=_client(handler))
        response = transport.post_form(
            "https://api.example.org/authorization/v2/token",
            {"grant_type": "device_code", "scope": "a b"},
            {"Accept": "application/json"},
        )

        assert response.status_code == 200
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.headers["Accept"] == "application/json"
        assert dict(parse_qsl(request.content.decode())) == {
            "grant_type": "device_code",
            "scope": "a b",
        }

    def test_error_status_is_returned_not_raised(self) -> None:
        transport = HttpxTransport(client=_client(lambda request: httpx.Response(500)))
        assert transport.post_form("https://x/token", {}, {}).status_code == 500

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        transport = HttpxTransport(client=_client(handler))
        with pytest.raises(TransportError, match="timed out"):
            transport.post_form("https://x/token", {}, {})

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = HttpxTransport(client=_client(handler))
        with pytest.raises(TransportError, match="failed"):
            transport.post_form("https://x/token", {}, {})

    def test_injected_client_is_not_closed(self) -> None:
        client = _client(lambda request: httpx.Response(200))
        with HttpxTransport(client=client):
            pass
        assert client.is_closed is False

    def test_owned_client_is_closed(self) -> None:
        transport = HttpxTransport()
        transport.close()
        assert transport._client.is_closed is True

    def test_default_timeout(self) -> None:
        transport = HttpxTransport()
        assert transport._client.timeout.read == DEFAULT_TIMEOUT
        transport.close()
