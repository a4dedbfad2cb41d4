"""Shared test fixtures for grantflow.

Provides a scripted authorization server on top of
:class:`httpx.MockTransport`, ready-made providers and exchangers, isolated
config directories, and output-state management. These fixtures are
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from grantflow.flows import GrantExchanger
from grantflow.models import ProxyConfig
from grantflow.output import OutputFormat, OutputManager, reset_output, set_output
from grantflow.providers import (
    FernetEncryptionProvider,
    MemoryStorage,
    StaticConfigProvider,
)
from grantflow.transport import HttpxTransport

API_HOST = "https://api.example.org"
AUTH_HOST = "https://authorization.example.org"
REDIRECT_URI = "https://app.example.org/oauth2/callback"
CLIENT_URL = "https://app.example.org/"
SALT = "c2FsdHktc2FsdA=="
PASSPHRASE = "correct horse battery staple"

# Fast key derivation for tests
TEST_ITERATIONS = 1_000


# ---------------------------------------------------------------------------
# Scripted authorization server
# ---------------------------------------------------------------------------


class FakeAuthServer:
    """Serve canned responses per path and record every request.

    Responses queued for a path are returned in order; the last one keeps
    being returned once the queue is down to it. Unscripted paths answer
    404.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, list[tuple[int, Any, Optional[bytes]]]] = {}
        self._failure: Optional[Exception] = None

    def respond(
        self,
        path: str,
        status_code: int = 200,
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> None:
        self._routes.setdefault(path, []).append((status_code, json, content))

    def fail_with(self, exc: Exception) -> None:
        self._failure = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._failure is not None:
            raise self._failure
        queue = self._routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error": "not_found"})
        status_code, body, content = queue.pop(0) if len(queue) > 1 else queue[0]
        if content is not None:
            return httpx.Response(status_code, content=content)
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)

    def form(self, index: int = -1) -> dict[str, str]:
        """Decode the form body of a recorded request."""
        return dict(parse_qsl(self.requests[index].content.decode("utf-8")))

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def transport(self) -> HttpxTransport:
        return HttpxTransport(client=self.client())

    @staticmethod
    def token_body(
        access_token: str = "T", refresh_token: Optional[str] = "R", expires_in: int = 3600
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": expires_in,
        }
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        return body

    @staticmethod
    def device_body(**overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "device_code": "DEV-123",
            "user_code": "ABCD-EFGH",
            "verification_uri": "https://example.org/device",
            "expires_in": 600,
            "interval": 5,
        }
        body.update(overrides)
        return body


@pytest.fixture
def auth_server() -> FakeAuthServer:
    return FakeAuthServer()


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
def proxy_config() -> ProxyConfig:
    return ProxyConfig(
        client_id="client-1",
        client_secret="secret-1",
        api_host=API_HOST,
        authorization_host=AUTH_HOST,
        redirect_uri=REDIRECT_URI,
        client_url=CLIENT_URL,
        encryption_salt=SALT,
    )


@pytest.fixture
def config_provider(proxy_config: ProxyConfig) -> StaticConfigProvider:
    return StaticConfigProvider(proxy_config)


@pytest.fixture
def encryption() -> FernetEncryptionProvider:
    return FernetEncryptionProvider(PASSPHRASE, SALT, iterations=TEST_ITERATIONS)


@pytest.fixture
def storage() -> MemoryStorage:
    """Plain storage for the nonce."""
    return MemoryStorage()


@pytest.fixture
def secure_storage() -> MemoryStorage:
    """Confidential storage for device codes and tokens."""
    return MemoryStorage()


@pytest.fixture
def exchanger(
    config_provider: StaticConfigProvider,
    storage: MemoryStorage,
    secure_storage: MemoryStorage,
    encryption: FernetEncryptionProvider,
    auth_server: FakeAuthServer,
) -> GrantExchanger:
    return GrantExchanger(
        config=config_provider,
        storage=storage,
        secure_storage=secure_storage,
        encryption=encryption,
        transport=auth_server.transport(),
    )


# ---------------------------------------------------------------------------
# Output and config isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager keeps references to the sys.stdout/sys.stderr that were
    current when it was created. CliRunner swaps those streams, so a
    manager surviving a CLI test would write to closed files.
    """
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG directories at tmp_path and clear GRANTFLOW_* variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("grantflow.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "GRANTFLOW_CLIENT_ID",
        "GRANTFLOW_CLIENT_SECRET",
        "GRANTFLOW_API_HOST",
        "GRANTFLOW_AUTHORIZATION_HOST",
        "GRANTFLOW_REDIRECT_URI",
        "GRANTFLOW_CLIENT_URL",
        "GRANTFLOW_ENCRYPTION_SALT",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
