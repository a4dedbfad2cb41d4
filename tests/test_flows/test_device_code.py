"""Tests for the device-code flow."""

from __future__ import annotations

import pytest

from grantflow.exceptions import (
    AuthorizationPendingError,
    DeviceCodeRequestError,
    InvalidArgumentError,
    MalformedResponseError,
    NotFoundError,
    SecurityConfigurationError,
    TokenExchangeError,
)
from grantflow.flows import DeviceCodeFlow, DeviceFlowState, GrantExchanger
from grantflow.flows.device_code import DEVICE_CODE_KEY
from grantflow.flows.exchanger import (
    ACCESS_TOKEN_KEY,
    DEVICE_PATH,
    REFRESH_TOKEN_KEY,
    TOKEN_PATH,
)
from grantflow.providers import CookieStorage, MemoryStorage


@pytest.fixture
def flow(exchanger: GrantExchanger) -> DeviceCodeFlow:
    return DeviceCodeFlow(exchanger)


# -------------------------------------------------------------------------
# start
# -------------------------------------------------------------------------


class TestStart:
    def test_requests_and_stores_device_code(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())

        artifact = flow.start(["identity.readonly", "listening.write"])

        assert artifact.device_code == "DEV-123"
        assert artifact.user_code == "ABCD-EFGH"
        assert artifact.verification_uri == "https://example.org/device"
        assert artifact.expires_in == 600
        assert artifact.interval == 5
        assert secure_storage.get(DEVICE_CODE_KEY) == "DEV-123"
        assert flow.state is DeviceFlowState.POLLING

        assert str(auth_server.requests[0].url) == "https://api.example.org/authorization/v2/device"
        assert auth_server.form() == {
            "client_id": "client-1",
            "client_secret": "secret-1",
            "scope": "identity.readonly listening.write",
        }

    def test_accepts_verification_url_alias(self, flow: DeviceCodeFlow, auth_server) -> None:
        body = auth_server.device_body()
        body["verification_url"] = body.pop("verification_uri")
        auth_server.respond(DEVICE_PATH, json=body)
        assert flow.start(["a"]).verification_uri == "https://example.org/device"

    def test_interval_defaults_to_five(self, flow: DeviceCodeFlow, auth_server) -> None:
        body = auth_server.device_body()
        del body["interval"]
        auth_server.respond(DEVICE_PATH, json=body)
        assert flow.start(["a"]).interval == 5

    def test_short_lived_code_is_stored(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body(expires_in=1))
        flow.start(["a"])
        assert secure_storage.get(DEVICE_CODE_KEY) == "DEV-123"

    def test_error_response(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(
            DEVICE_PATH,
            status_code=401,
            json={"error": "invalid_client", "error_description": "Unknown client"},
        )
        with pytest.raises(DeviceCodeRequestError, match="Unknown client") as exc_info:
            flow.start(["a"])
        assert exc_info.value.status_code == 401
        assert secure_storage.keys() == []
        assert flow.state is DeviceFlowState.IDLE

    def test_error_response_is_not_a_token_exchange_error(
        self, flow: DeviceCodeFlow, auth_server
    ) -> None:
        auth_server.respond(DEVICE_PATH, status_code=500)
        with pytest.raises(DeviceCodeRequestError) as exc_info:
            flow.start(["a"])
        assert not isinstance(exc_info.value, TokenExchangeError)

    def test_missing_user_code(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        body = auth_server.device_body()
        del body["user_code"]
        auth_server.respond(DEVICE_PATH, json=body)
        with pytest.raises(MalformedResponseError, match="user_code"):
            flow.start(["a"])
        assert secure_storage.keys() == []

    def test_invalid_scopes_make_no_request(self, flow: DeviceCodeFlow, auth_server) -> None:
        with pytest.raises(InvalidArgumentError):
            flow.start([])
        assert auth_server.requests == []

    def test_plain_secure_storage_rejected_before_io(
        self, config_provider, auth_server
    ) -> None:
        cookies = CookieStorage()
        flow = DeviceCodeFlow(
            GrantExchanger(
                config=config_provider,
                storage=cookies,
                secure_storage=cookies,
                transport=auth_server.transport(),
            )
        )
        with pytest.raises(SecurityConfigurationError):
            flow.start(["a"])
        assert auth_server.requests == []


# -------------------------------------------------------------------------
# poll
# -------------------------------------------------------------------------


class TestPoll:
    def test_no_device_code(self, flow: DeviceCodeFlow, auth_server) -> None:
        with pytest.raises(NotFoundError, match="no device code on record"):
            flow.poll()
        assert auth_server.requests == []

    def test_expired_device_code(
        self, flow: DeviceCodeFlow, secure_storage: MemoryStorage
    ) -> None:
        secure_storage.set(DEVICE_CODE_KEY, "DEV-123", ttl=0)
        with pytest.raises(NotFoundError):
            flow.poll()

    def test_success_stores_tokens(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        auth_server.respond(TOKEN_PATH, json=auth_server.token_body("T", "R"))
        flow.start(["a"])

        token = flow.poll()

        assert token.access_token == "T"
        assert secure_storage.get(ACCESS_TOKEN_KEY) == "T"
        assert secure_storage.get(REFRESH_TOKEN_KEY) == "R"
        assert auth_server.form() == {
            "grant_type": "device_code",
            "client_id": "client-1",
            "client_secret": "secret-1",
            "code": "DEV-123",
        }

    def test_pending(self, flow: DeviceCodeFlow, auth_server) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        auth_server.respond(TOKEN_PATH, status_code=400, json={"error": "authorization_pending"})
        flow.start(["a"])

        with pytest.raises(AuthorizationPendingError) as exc_info:
            flow.poll()
        assert not isinstance(exc_info.value, TokenExchangeError)
        assert exc_info.value.slow_down is False

    def test_slow_down(self, flow: DeviceCodeFlow, auth_server) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        auth_server.respond(TOKEN_PATH, status_code=400, json={"error": "slow_down"})
        flow.start(["a"])

        with pytest.raises(AuthorizationPendingError) as exc_info:
            flow.poll()
        assert exc_info.value.slow_down is True

    def test_pending_then_success(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        auth_server.respond(TOKEN_PATH, status_code=400, json={"error": "authorization_pending"})
        auth_server.respond(TOKEN_PATH, json=auth_server.token_body("T", None))
        flow.start(["a"])

        with pytest.raises(AuthorizationPendingError):
            flow.poll()
        assert secure_storage.get(ACCESS_TOKEN_KEY) is None

        flow.poll()
        assert secure_storage.get(ACCESS_TOKEN_KEY) == "T"
        assert secure_storage.get(REFRESH_TOKEN_KEY) is None

    def test_denied_is_fatal(self, flow: DeviceCodeFlow, auth_server) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        auth_server.respond(
            TOKEN_PATH,
            status_code=400,
            json={"error": "access_denied", "error_description": "User said no"},
        )
        flow.start(["a"])

        with pytest.raises(TokenExchangeError, match="User said no") as exc_info:
            flow.poll()
        assert exc_info.value.error_code == "access_denied"


class TestClear:
    def test_clear_forgets_device_code(
        self, flow: DeviceCodeFlow, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body())
        flow.start(["a"])

        flow.clear()

        assert secure_storage.get(DEVICE_CODE_KEY) is None
        assert flow.state is DeviceFlowState.IDLE
        with pytest.raises(NotFoundError):
            flow.poll()

    def test_session_key_scopes_device_codes(
        self, exchanger: GrantExchanger, auth_server, secure_storage: MemoryStorage
    ) -> None:
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body(device_code="ONE"))
        auth_server.respond(DEVICE_PATH, json=auth_server.device_body(device_code="TWO"))
        first = DeviceCodeFlow(exchanger, session_key="tv-1")
        second = DeviceCodeFlow(exchanger, session_key="tv-2")
        first.start(["a"])
        second.start(["a"])

        first.clear()

        assert secure_storage.get("tv-1") is None
        assert secure_storage.get("tv-2") == "TWO"
