"""In-process storage provider.

Suitable for server-side session stores in a single process and for tests.
Values never leave the server, so the store is confidential.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from grantflow.providers.base import StorageProvider


class MemoryStorage(StorageProvider):
    """Thread-safe dict-backed storage with per-key expiry.

    Expiry is tracked against :func:`time.monotonic`; expired entries are
    dropped lazily on read.

    Example::

        store = MemoryStorage()
        store.set("device_code", "abc", ttl=600)
        assert store.compare("device_code", "abc")
    """

    is_confidential = True

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Return the keys of all live entries."""
        with self._lock:
            now = time.monotonic()
            return sorted(
                key
                for key, (_, expires_at) in self._data.items()
                if expires_at is None or now < expires_at
            )
