"""Helpers for the CSRF-resistant ``state`` parameter.

A state token has the form ``nonce:payload``:

- ``nonce`` is a fresh random value, also kept in the flow's
  :class:`~grantflow.providers.base.StorageProvider` under the session key.
- ``payload`` is caller-supplied state data, JSON-encoded and encrypted with
  the :class:`~grantflow.providers.base.EncryptionProvider`.

Neither half can contain a colon: the nonce is url-safe base64 and Fernet
tokens are url-safe base64 too.
"""

from __future__ import annotations

import json
import secrets
from collections.abc import Mapping
from typing import Any, Optional

from grantflow.exceptions import (
    InvalidArgumentError,
    MalformedResponseError,
    MalformedStateError,
    MissingStateError,
    StateMismatchError,
)
from grantflow.providers.base import EncryptionProvider, StorageProvider

SEPARATOR = ":"
_ERROR_PREFIX = "Invalid state returned from OAuth server"


def generate_nonce() -> str:
    return secrets.token_urlsafe(32)


def seal_payload(encryption: EncryptionProvider, data: Optional[Mapping[str, Any]]) -> str:
    """JSON-encode and encrypt *data* (``None`` becomes ``{}``).

    Raises:
        InvalidArgumentError: *data* is not JSON-serialisable.
    """
    try:
        raw = json.dumps(dict(data or {}), separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"State data must be JSON-serialisable: {exc}") from exc
    return encryption.encrypt(raw.encode("utf-8")).decode("ascii")


def open_payload(encryption: EncryptionProvider, payload: str) -> dict[str, Any]:
    """Decrypt and decode a payload produced by :func:`seal_payload`.

    Raises:
        DecryptionError: The payload was tampered with.
        MalformedResponseError: The decrypted payload is not a JSON object.
    """
    raw = encryption.decrypt(payload.encode("utf-8"))
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedResponseError("Decrypted state payload is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Decrypted state payload is not a JSON object")
    return data


def compose_state(nonce: str, payload: str) -> str:
    return f"{nonce}{SEPARATOR}{payload}"


def split_state(state: str) -> tuple[str, str]:
    """Split a returned state on its first colon.

    Raises:
        MalformedStateError: No colon, or either half is empty.
    """
    nonce, sep, payload = state.partition(SEPARATOR)
    if not sep:
        raise MalformedStateError(f"{_ERROR_PREFIX}, colon separator missing")
    if not nonce or not payload:
        raise MalformedStateError(f"{_ERROR_PREFIX}, nonce or payload is empty")
    return nonce, payload


def verify_nonce(storage: StorageProvider, key: str, nonce: str) -> None:
    """Check *nonce* against the value stored under *key* in constant time.

    Raises:
        MissingStateError: Nothing is stored under *key* ("invalid state").
        StateMismatchError: The stored nonce differs ("server state mismatch").
    """
    if storage.get(key) is None:
        raise MissingStateError(f"{_ERROR_PREFIX}, no server state on record")
    if not storage.compare(key, nonce):
        raise StateMismatchError(f"{_ERROR_PREFIX}, server state mismatch")
