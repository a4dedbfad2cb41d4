"""Cookie-backed storage providers.

Two providers share one mechanism -- read from the incoming request's
cookies, queue :class:`~grantflow.models.CookieDirective` objects for the
response:

- :class:`CookieStorage` stores values in the clear. The end user's browser
  can read them, so it is **not** confidential and may only hold the CSRF
  nonce, never tokens.
- :class:`SecureCookieStorage` encrypts every value with an
  :class:`~grantflow.providers.base.EncryptionProvider` before it is queued,
  making it acceptable as secure storage.

Serialising directives into ``Set-Cookie`` headers is left to the hosting
web framework.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from grantflow.models import CookieDirective
from grantflow.providers.base import ConfigProvider, EncryptionProvider, StorageProvider

# Ten years; max-age used when a caller asks for no expiry
LONG_COOKIE_TTL = 10 * 365 * 24 * 60 * 60


class CookieStorage(StorageProvider):
    """Plain, client-visible cookie storage.

    Values written during the current request shadow the request cookies,
    so a ``set`` followed by ``get`` in the same request sees the new value.

    Args:
        request_cookies: Cookies sent with the incoming request.
        domain: Cookie domain. See :meth:`for_config`.
        secure: Emit cookies with the ``Secure`` attribute.
        prefix: Prepended to every key to namespace the cookie names.
    """

    is_confidential = False

    def __init__(
        self,
        request_cookies: Optional[Mapping[str, str]] = None,
        domain: Optional[str] = None,
        secure: bool = True,
        prefix: str = "",
    ) -> None:
        self._request_cookies = dict(request_cookies or {})
        self._domain = domain
        self._secure = secure
        self._prefix = prefix
        self._pending: dict[str, CookieDirective] = {}

    @classmethod
    def for_config(cls, config: ConfigProvider, *args: Any, **kwargs: Any) -> CookieStorage:
        """Build a store whose cookies use ``config.get_cookie_domain()``.

        Remaining arguments go to the constructor; an explicit ``domain``
        wins over the configured one.
        """
        kwargs.setdefault("domain", config.get_cookie_domain())
        return cls(*args, **kwargs)

    @property
    def directives(self) -> list[CookieDirective]:
        """Cookies to set (or delete) on the outgoing response."""
        return list(self._pending.values())

    def _name(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _encode(self, value: str) -> str:
        return value

    def _decode(self, raw: str) -> str:
        return raw

    def _ttl(self, ttl: Optional[int]) -> Optional[int]:
        return ttl

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        name = self._name(key)
        self._pending[name] = CookieDirective(
            name=name,
            value=self._encode(value),
            max_age=self._ttl(ttl),
            domain=self._domain,
            secure=self._secure,
        )

    def get(self, key: str) -> Optional[str]:
        name = self._name(key)
        pending = self._pending.get(name)
        if pending is not None:
            if pending.max_age == 0:
                return None
            raw = pending.value
        else:
            raw = self._request_cookies.get(name)
            if not raw:
                return None
        return self._decode(raw)

    def remove(self, key: str) -> None:
        name = self._name(key)
        self._pending[name] = CookieDirective(
            name=name, value="", max_age=0, domain=self._domain, secure=self._secure
        )


class SecureCookieStorage(CookieStorage):
    """Encrypted cookie storage, confidential at rest.

    Values are encrypted before they are queued and decrypted on read; a
    cookie that was tampered with on the client raises
    :class:`~grantflow.exceptions.DecryptionError`. A ``ttl`` of ``None``
    is mapped to :data:`LONG_COOKIE_TTL`.

    Args:
        encryption: Provider used to encrypt cookie values.
        request_cookies: Cookies sent with the incoming request.
        domain: Cookie domain.
        secure: Emit cookies with the ``Secure`` attribute.
        prefix: Prepended to every key to namespace the cookie names.
    """

    is_confidential = True

    def __init__(
        self,
        encryption: EncryptionProvider,
        request_cookies: Optional[Mapping[str, str]] = None,
        domain: Optional[str] = None,
        secure: bool = True,
        prefix: str = "",
    ) -> None:
        super().__init__(request_cookies, domain=domain, secure=secure, prefix=prefix)
        self._encryption = encryption

    def is_valid(self) -> bool:
        return self._encryption.is_valid()

    def _encode(self, value: str) -> str:
        return self._encryption.encrypt(value.encode("utf-8")).decode("ascii")

    def _decode(self, raw: str) -> str:
        return self._encryption.decrypt(raw.encode("utf-8")).decode("utf-8")

    def _ttl(self, ttl: Optional[int]) -> Optional[int]:
        return LONG_COOKIE_TTL if ttl is None else ttl
