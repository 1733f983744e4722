"""Cache-store interface and an in-process implementation.

Any object with ``get`` / ``set`` / ``delete`` methods matching
:class:`CacheStore` can back a :class:`~cachefs.CacheFileSystem`; adapters
for memcached, Redis and similar services only need to map these three
calls.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Key-value cache with optional per-key expiry."""

    def get(self, key: str) -> bytes | None:
        """Return the value stored under *key*, or ``None`` if absent or expired."""
        ...

    def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Store *value* under *key*; ``ttl`` is in seconds, ``None`` keeps it forever."""
        ...

    def delete(self, key: str) -> None:
        """Remove *key*; deleting a missing key is not an error."""
        ...


class MemoryCacheStore:
    """Thread-safe dict-backed :class:`CacheStore`.

    Expired keys are dropped lazily on access.  A ``ttl`` of ``None`` or
    ``<= 0`` means the value never expires.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> bytes | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= time.time():
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f"value must be bytes, not {type(value).__name__}")
        expires_at = None if ttl is None or ttl <= 0 else time.time() + ttl
        with self._lock:
            self._data[key] = (bytes(value), expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return [k for k in list(self._data) if self._live(k) is not None]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self.keys())
