"""Pluggable collaborators for the grant flows.

The flows depend only on the abstract interfaces in
:mod:`grantflow.providers.base`; pick implementations at construction time:

- :class:`StaticConfigProvider` -- serves a resolved
  :class:`~grantflow.models.ProxyConfig`.
- :class:`MemoryStorage` / :class:`FileStorage` -- confidential server-side
  storage.
- :class:`CookieStorage` -- client-visible storage for the CSRF nonce.
- :class:`SecureCookieStorage` -- encrypted, confidential cookie storage.
- :class:`FernetEncryptionProvider` -- state and cookie encryption.

Typical usage::

    from grantflow.providers import (
        CookieStorage,
        FernetEncryptionProvider,
        SecureCookieStorage,
    )

    crypto = FernetEncryptionProvider(secret, config.get_encryption_salt())
    storage = CookieStorage(request.cookies)
    secure_storage = SecureCookieStorage(crypto, request.cookies)
"""

from grantflow.providers.base import ConfigProvider, EncryptionProvider, StorageProvider
from grantflow.providers.cookie import CookieStorage, SecureCookieStorage
from grantflow.providers.encryption import FernetEncryptionProvider
from grantflow.providers.file import FileStorage
from grantflow.providers.memory import MemoryStorage
from grantflow.providers.static import StaticConfigProvider

__all__ = [
    "ConfigProvider",
    "CookieStorage",
    "EncryptionProvider",
    "FernetEncryptionProvider",
    "FileStorage",
    "MemoryStorage",
    "SecureCookieStorage",
    "StaticConfigProvider",
    "StorageProvider",
]
