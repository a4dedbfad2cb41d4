"""Fernet-based encryption provider.

Derives a Fernet key from a passphrase and the configured encryption salt
with PBKDF2-HMAC-SHA256, then uses it to encrypt the ``state`` payload and
the values written by :class:`~grantflow.providers.cookie.SecureCookieStorage`.
Fernet tokens are authenticated, so any tampering surfaces as a
:class:`~grantflow.exceptions.DecryptionError`.
"""

from __future__ import annotations

import base64

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from grantflow.exceptions import DecryptionError, SecurityConfigurationError
from grantflow.providers.base import EncryptionProvider

PBKDF2_ITERATIONS = 480_000
MIN_SALT_LENGTH = 8


def derive_key(secret: str, salt: str, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """Derive a url-safe base64 Fernet key from *secret* and *salt*."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


class FernetEncryptionProvider(EncryptionProvider):
    """Encrypt payloads with a passphrase-derived Fernet key.

    The provider reports itself invalid (and the flows refuse to run) when
    the passphrase is empty or the salt is shorter than
    :data:`MIN_SALT_LENGTH` characters.

    Args:
        secret: Passphrase the key is derived from.
        salt: Encryption salt, typically ``ConfigProvider.get_encryption_salt()``.
        iterations: PBKDF2 iteration count.

    Example::

        crypto = FernetEncryptionProvider("passphrase", "asYh&%D9ne!j8HKQ")
        token = crypto.encrypt(b"hello")
        assert crypto.decrypt(token) == b"hello"
    """

    def __init__(self, secret: str, salt: str, iterations: int = PBKDF2_ITERATIONS) -> None:
        self._secret = secret
        self._salt = salt
        self._iterations = iterations
        self._fernet: Fernet | None = None

    def is_valid(self) -> bool:
        return bool(self._secret) and len(self._salt) >= MIN_SALT_LENGTH

    def _get_fernet(self) -> Fernet:
        if not self.is_valid():
            raise SecurityConfigurationError(
                "EncryptionProvider must be valid: a passphrase and a salt of at "
                f"least {MIN_SALT_LENGTH} characters are required"
            )
        if self._fernet is None:
            self._fernet = Fernet(derive_key(self._secret, self._salt, self._iterations))
        return self._fernet

    def encrypt(self, data: bytes) -> bytes:
        return self._get_fernet().encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        try:
            return self._get_fernet().decrypt(token)
        except InvalidToken as exc:
            raise DecryptionError("Unable to decrypt payload: invalid or tampered token") from exc
