"""File-backed storage provider.

Each namespace is a directory under
``~/.local/share/grantflow/storage/<namespace>/`` (XDG) or the
platform-equivalent directory, and each key is one file in it holding a
serialised :class:`~grantflow.models.StoredValue` with an optional UTC
expiry.

Files are written atomically via :func:`grantflow.config.atomic_write`
with ``0o600`` permissions so that tokens are never world-readable, even
momentarily. A write only ever replaces the file of its own key, so
instances in different threads or processes can share a namespace without
losing each other's entries.

See Also:
    :class:`~grantflow.providers.memory.MemoryStorage` for the in-process
    equivalent.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from grantflow.config import atomic_write, get_data_dir
from grantflow.models import StoredValue
from grantflow.providers.base import StorageProvider


def _storage_dir() -> Path:
    """Return the storage directory, creating it if needed."""
    path = get_data_dir() / "storage"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _file_name(key: str) -> str:
    # url-safe base64 keeps any key a single, valid path segment
    encoded = base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{encoded}.json"


class FileStorage(StorageProvider):
    """Read/write values for a single namespace on local disk.

    Suitable for CLIs and single-host deployments.

    Args:
        namespace: Identifier used to derive the directory name.
        directory: Override for the storage directory (defaults to the
            XDG data directory).
        confidential: Whether the namespace counts as confidential storage.
            Files are always written ``0o600``; pass ``False`` for a store
            that only ever holds nonces.

    Example::

        store = FileStorage("tokens")
        store.set("access_token", "tok123", ttl=3600)
        assert store.get("access_token") == "tok123"
    """

    def __init__(
        self,
        namespace: str,
        directory: Optional[Path] = None,
        confidential: bool = True,
    ) -> None:
        self._namespace = namespace
        self._path = (directory or _storage_dir()) / namespace
        self.is_confidential = confidential

    @property
    def path(self) -> Path:
        """The directory holding this namespace's files."""
        return self._path

    def path_for(self, key: str) -> Path:
        """The file that stores *key*."""
        return self._path / _file_name(key)

    def _load(self, key: str) -> Optional[StoredValue]:
        try:
            raw = self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return StoredValue.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            return None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = None
        if ttl is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        entry = StoredValue(value=value, expires_at=expires_at)
        atomic_write(self.path_for(key), entry.model_dump_json(indent=2) + "\n", mode=0o600)

    def get(self, key: str) -> Optional[str]:
        entry = self._load(key)
        if entry is None or entry.is_expired():
            return None
        return entry.value

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def clear(self) -> None:
        """Delete every entry of the namespace."""
        if not self._path.is_dir():
            return
        for entry in self._path.glob("*.json"):
            entry.unlink(missing_ok=True)
