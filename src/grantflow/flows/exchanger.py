"""Token-endpoint exchange shared by every grant flow.

:class:`GrantExchanger` owns the providers a flow needs and performs the
work common to both grants:

1. :meth:`~GrantExchanger.ensure_providers` -- refuse to run with a missing
   or unsafe provider combination, before any network I/O.
2. :meth:`~GrantExchanger.exchange` -- POST a grant to the token endpoint and
   parse the result into an :class:`~grantflow.models.AccessTokenArtifact`.
3. :meth:`~GrantExchanger.store_tokens` -- persist the access token (and
   refresh token, when issued) in confidential storage.

See Also:
    :class:`grantflow.flows.auth_code.AuthorizationCodeFlow`
    :class:`grantflow.flows.device_code.DeviceCodeFlow`
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from grantflow.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    SecurityConfigurationError,
    TokenExchangeError,
)
from grantflow.models import AccessTokenArtifact
from grantflow.providers.base import ConfigProvider, EncryptionProvider, StorageProvider
from grantflow.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)

TOKEN_PATH = "/authorization/v2/token"
DEVICE_PATH = "/authorization/v2/device"

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


def error_message(response: httpx.Response) -> str:
    """Derive a human-readable message from an error response.

    Looks at the OAuth2 ``error_description`` and ``error`` fields, then a
    generic ``message`` field. Falls back to ``HTTP <status>`` when the body
    is empty or not a JSON object.
    """
    body = json_body(response)
    if body is not None:
        description = body.get("error_description")
        code = body.get("error")
        if isinstance(code, str) and isinstance(description, str) and description:
            return f"{code}: {description}"
        for field in ("error_description", "error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


def error_code(response: httpx.Response) -> Optional[str]:
    """Return the OAuth2 ``error`` field of an error response, if any."""
    body = json_body(response)
    if body is None:
        return None
    code = body.get("error")
    return code if isinstance(code, str) else None


def json_body(response: httpx.Response) -> Optional[dict[str, Any]]:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
    return body if isinstance(body, dict) else None


class GrantExchanger:
    """Performs token-endpoint exchanges and token persistence.

    Providers may be passed to the constructor or assigned later through
    the ``set_*`` methods; they are only checked when a flow operation runs.

    Args:
        config: Client credentials and endpoint URLs.
        storage: General (possibly client-visible) storage, used for the
            CSRF nonce.
        secure_storage: Confidential storage for device codes and tokens.
        encryption: Encryption provider for the state payload.
        transport: Outbound HTTP transport. Defaults to an
            :class:`~grantflow.transport.HttpxTransport` with the default
            timeout.
        headers: Extra headers sent with every outbound request, e.g.
            geo-IP hints such as ``X-Latitude``/``X-Longitude``.

    Example::

        exchanger = GrantExchanger(
            config=StaticConfigProvider(resolve_config()),
            storage=CookieStorage(request.cookies),
            secure_storage=MemoryStorage(),
            encryption=FernetEncryptionProvider(secret, salt),
        )
    """

    def __init__(
        self,
        config: Optional[ConfigProvider] = None,
        storage: Optional[StorageProvider] = None,
        secure_storage: Optional[StorageProvider] = None,
        encryption: Optional[EncryptionProvider] = None,
        transport: Optional[Transport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._secure_storage = secure_storage
        self._encryption = encryption
        self._transport = transport
        self._headers: dict[str, str] = dict(headers or {})

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #

    def set_config_provider(self, config: ConfigProvider) -> None:
        self._config = config

    def set_storage_provider(self, storage: StorageProvider) -> None:
        self._storage = storage

    def set_secure_storage_provider(self, secure_storage: StorageProvider) -> None:
        self._secure_storage = secure_storage

    def set_encryption_provider(self, encryption: EncryptionProvider) -> None:
        self._encryption = encryption

    def set_transport(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def config(self) -> ConfigProvider:
        if self._config is None:
            raise ConfigurationError(
                "ConfigProvider must be set. See GrantExchanger.set_config_provider()"
            )
        return self._config

    @property
    def storage(self) -> StorageProvider:
        if self._storage is None:
            raise ConfigurationError(
                "StorageProvider must be set. See GrantExchanger.set_storage_provider()"
            )
        return self._storage

    @property
    def secure_storage(self) -> StorageProvider:
        if self._secure_storage is None:
            raise ConfigurationError(
                "SecureStorageProvider must be set. "
                "See GrantExchanger.set_secure_storage_provider()"
            )
        return self._secure_storage

    @property
    def encryption(self) -> Optional[EncryptionProvider]:
        return self._encryption

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = HttpxTransport()
        return self._transport

    def close(self) -> None:
        """Close the transport, including one created lazily."""
        if self._transport is not None:
            self._transport.close()

    def __enter__(self) -> GrantExchanger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def headers(self) -> dict[str, str]:
        """Headers sent with every outbound request."""
        merged = {"Accept": "application/json"}
        merged.update(self._headers)
        return merged

    def ensure_providers(self) -> None:
        """Validate the provider setup before any storage or network access.

        Raises:
            ConfigurationError: A provider is missing, or the client id,
                client secret, or API host is empty.
            SecurityConfigurationError: The secure storage provider is not
                confidential (e.g. a plain cookie store), or a storage or
                encryption provider reports itself invalid.
        """
        config = self.config
        storage = self.storage
        secure_storage = self.secure_storage

        if not secure_storage.is_confidential:
            raise SecurityConfigurationError(
                f"WARNING: It is strongly discouraged to use "
                f"{type(secure_storage).__name__} as your secure storage provider: "
                "it is not confidential and would expose tokens to the client."
            )
        checked = (("StorageProvider", storage), ("SecureStorageProvider", secure_storage))
        for name, provider in checked:
            if not provider.is_valid():
                raise SecurityConfigurationError(
                    f"{name} must be valid. {type(provider).__name__}.is_valid() returned False"
                )
        if self._encryption is not None and not self._encryption.is_valid():
            raise SecurityConfigurationError(
                "EncryptionProvider must be valid. See EncryptionProvider.is_valid()"
            )

        if not config.get_client_id():
            raise ConfigurationError("ConfigProvider returned an empty client id")
        if not config.get_client_secret():
            raise ConfigurationError("ConfigProvider returned an empty client secret")
        if not config.get_api_host():
            raise ConfigurationError("ConfigProvider returned an empty API host")

    # ------------------------------------------------------------------ #
    # Network
    # ------------------------------------------------------------------ #

    def post_form(self, path: str, data: dict[str, str]) -> httpx.Response:
        """POST *data* to ``{api_host}{path}`` with the shared headers."""
        url = f"{self.config.get_api_host()}{path}"
        return self.transport.post_form(url, data, self.headers)

    def client_params(self) -> dict[str, str]:
        """Client authentication form parameters."""
        return {
            "client_id": self.config.get_client_id(),
            "client_secret": self.config.get_client_secret(),
        }

    def exchange(
        self, grant_type: str, extra_params: Optional[Mapping[str, str]] = None
    ) -> AccessTokenArtifact:
        """Exchange a grant for an access token at the token endpoint.

        Args:
            grant_type: OAuth2 grant type, e.g. ``"authorization_code"``.
            extra_params: Grant-specific form parameters such as ``code``.

        Returns:
            The parsed :class:`~grantflow.models.AccessTokenArtifact`.

        Raises:
            TokenExchangeError: The server answered with HTTP >= 400.
            MalformedResponseError: The success body is not JSON or lacks
                ``access_token``/``token_type``/``expires_in`` of the right
                types.
            TransportError: On network-level failures.
        """
        data = {"grant_type": grant_type, **self.client_params()}
        data.update(extra_params or {})

        logger.debug("Exchanging %s grant at %s", grant_type, TOKEN_PATH)
        response = self.post_form(TOKEN_PATH, data)

        if response.status_code >= 400:
            message = error_message(response)
            logger.info(
                "Token exchange (%s) failed with status %s", grant_type, response.status_code
            )
            raise TokenExchangeError(
                f"Error during token exchange ({grant_type}): {message}",
                status_code=response.status_code,
                error_code=error_code(response),
            )

        body = json_body(response)
        if body is None:
            raise MalformedResponseError("Token response is not a JSON object")
        try:
            return AccessTokenArtifact.model_validate(body)
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            raise MalformedResponseError(
                f"Token response has missing or invalid fields: {fields}"
            ) from exc

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def store_tokens(self, artifact: AccessTokenArtifact) -> None:
        """Write the access token (and refresh token, if any) to secure storage.

        The access token expires with ``expires_in``; the refresh token is
        stored without expiry so it can outlive the access token. Prior
        values at the same keys are overwritten.
        """
        secure_storage = self.secure_storage
        secure_storage.set(ACCESS_TOKEN_KEY, artifact.access_token, ttl=artifact.expires_in)
        if artifact.refresh_token:
            secure_storage.set(REFRESH_TOKEN_KEY, artifact.refresh_token)
        logger.debug(
            "Stored access token%s", " and refresh token" if artifact.refresh_token else ""
        )
