"""Small in-memory TTL cache with lazy expiry."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class _CacheItem(Generic[T]):
    value: T
    stored_at: float


class TTLCache:
    """Thread-safe TTL cache keyed by string.

    Entries are never swept in the background; a stale entry is dropped the
    next time it is read.
    """

    def __init__(self, default_ttl_seconds: float = 60, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl_seconds = max(0.0, float(default_ttl_seconds))
        self._clock = clock
        self._data: dict[str, _CacheItem[object]] = {}
        self._lock = Lock()

    def get(self, key: str, ttl_seconds: float | None = None) -> object | None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(0.0, ttl_seconds)
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return None
            if now - item.stored_at >= ttl:
                self._data.pop(key, None)
                return None
            return item.value

    def set(self, key: str, value: object) -> None:
        with self._lock:
            self._data[key] = _CacheItem(value=value, stored_at=self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
