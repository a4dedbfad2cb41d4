"""Static config provider built from a :class:`~grantflow.models.ProxyConfig`."""

from __future__ import annotations

from typing import Optional

from grantflow.config import resolve_credential
from grantflow.models import ProxyConfig
from grantflow.providers.base import ConfigProvider


class StaticConfigProvider(ConfigProvider):
    """Serve a :class:`~grantflow.models.ProxyConfig` to the flows.

    The client secret is resolved from ``client_secret_source`` on first
    use and cached for the lifetime of the provider.

    Example::

        provider = StaticConfigProvider(resolve_config())
        provider.get_client_id()
    """

    def __init__(self, config: ProxyConfig) -> None:
        self._config = config
        self._client_secret: Optional[str] = config.client_secret

    @property
    def config(self) -> ProxyConfig:
        return self._config

    def get_client_id(self) -> str:
        return self._config.client_id

    def get_client_secret(self) -> str:
        if self._client_secret is None and self._config.client_secret_source:
            self._client_secret = resolve_credential(self._config.client_secret_source)
        return self._client_secret or ""

    def get_api_host(self) -> str:
        return self._config.api_host.rstrip("/")

    def get_authorization_host(self) -> str:
        return self._config.authorization_host.rstrip("/")

    def get_redirect_uri(self) -> str:
        return self._config.redirect_uri

    def get_client_url(self) -> str:
        return self._config.client_url

    def get_cookie_domain(self) -> Optional[str]:
        return self._config.cookie_domain

    def get_encryption_salt(self) -> str:
        return self._config.encryption_salt
