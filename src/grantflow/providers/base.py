"""Abstract collaborator interfaces consumed by the grant flows.

This module defines the three pluggable provider types:

- :class:`ConfigProvider` -- client registration and endpoint URLs.
- :class:`StorageProvider` -- key/value storage with TTLs and a
  constant-time :meth:`~StorageProvider.compare`. Each implementation
  declares :attr:`~StorageProvider.is_confidential`; only confidential
  stores may hold tokens or device codes.
- :class:`EncryptionProvider` -- symmetric encryption of opaque payloads.

Concrete implementations live next to this module
(:mod:`grantflow.providers.memory`, :mod:`grantflow.providers.cookie`,
:mod:`grantflow.providers.file`, :mod:`grantflow.providers.encryption`)
and :mod:`grantflow.providers.static`.

See Also:
    :class:`grantflow.flows.exchanger.GrantExchanger` for the checks run
    against these providers before any network call.
"""

from __future__ import annotations

import hmac
from abc import ABC, abstractmethod
from typing import Optional


class ConfigProvider(ABC):
    """Supplies client credentials and endpoint URLs.

    Hosts are returned without a trailing slash; the flows append fixed
    paths such as ``/v2/authorize``.
    """

    @abstractmethod
    def get_client_id(self) -> str: ...

    @abstractmethod
    def get_client_secret(self) -> str: ...

    @abstractmethod
    def get_api_host(self) -> str:
        """Base URL of the device and token endpoints."""
        ...

    @abstractmethod
    def get_authorization_host(self) -> str:
        """Base URL of the browser-facing authorize endpoint."""
        ...

    @abstractmethod
    def get_redirect_uri(self) -> str:
        """The registered authorization-code callback URL."""
        ...

    def get_client_url(self) -> str:
        """Default post-login destination in the client application."""
        return ""

    def get_cookie_domain(self) -> Optional[str]:
        return None

    def get_encryption_salt(self) -> str:
        return ""


class StorageProvider(ABC):
    """Key/value storage used for nonces, device codes, and tokens.

    Implementations must be safe to call from concurrent requests sharing
    the same backing store. Keys are scoped by the caller (e.g. per
    session), so no cross-key locking is required.

    Subclasses set :attr:`is_confidential` to ``True`` only when values are
    confidential at rest and never exposed to the end user's client.
    Plain cookies are *not* confidential.
    """

    is_confidential: bool = False

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store *value* under *key*, replacing any previous value.

        Args:
            key: Storage key.
            value: Value to store.
            ttl: Lifetime in seconds; ``None`` means no expiry (or the
                provider's long default).
        """
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value under *key*, or ``None`` if absent or expired."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*. A no-op when the key is absent."""
        ...

    def is_valid(self) -> bool:
        """Return ``False`` when the store cannot work, e.g. bad key material."""
        return True

    def compare(self, key: str, value: str) -> bool:
        """Compare *value* with the stored value in constant time.

        Returns ``False`` when nothing is stored under *key*.
        """
        stored = self.get(key)
        if stored is None:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), value.encode("utf-8"))


class EncryptionProvider(ABC):
    """Symmetric, authenticated encryption of opaque payloads."""

    @abstractmethod
    def is_valid(self) -> bool:
        """Return ``True`` when the provider has usable key material."""
        ...

    @abstractmethod
    def encrypt(self, data: bytes) -> bytes: ...

    @abstractmethod
    def decrypt(self, token: bytes) -> bytes:
        """Decrypt *token*.

        Raises:
            DecryptionError: If *token* was tampered with or was produced
                under a different key.
        """
        ...
