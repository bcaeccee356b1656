# spotlight/cache.py
# Purpose: In-memory TTL cache for provider snapshots (one entry per feed).
# Why: Keep Finnhub traffic inside the free-tier rate limit.
# Pitfalls: Not persistent; no capacity bound and no background sweep, so
#           expired entries only go away when their key is read or deleted.

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Writer-preferring: once a writer is waiting, new readers queue behind it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        # strict: a read exactly at the ttl boundary is still a hit
        return now - self.created_at > self.ttl


class TTLCache(Generic[V]):
    """Key/value store where every entry carries its own TTL (seconds).

    Expired entries are evicted lazily by ``get``. Pass ``clock`` to drive
    time from tests; it must be monotonic.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, CacheEntry[V]] = {}
        self._lock = ReadWriteLock()
        self._clock = clock

    def set(self, key: str, value: V, ttl: float) -> None:
        with self._lock.write():
            self._data[key] = CacheEntry(value=value, created_at=self._clock(), ttl=float(ttl))

    def get(self, key: str) -> tuple[V | None, bool]:
        """Return ``(value, True)`` on a live hit, else ``(None, False)``."""
        with self._lock.read():
            entry = self._data.get(key)
            if entry is None:
                return None, False
            if not entry.expired(self._clock()):
                return entry.value, True

        # upgrade: another thread may have replaced the entry in between
        with self._lock.write():
            current = self._data.get(key)
            if current is not None:
                if not current.expired(self._clock()):
                    return current.value, True
                del self._data[key]
        return None, False

    def delete(self, key: str) -> None:
        with self._lock.write():
            self._data.pop(key, None)

    def get_or_set(self, key: str, ttl: float, loader: Callable[[], V]) -> V:
        """Cache-aside: return the cached value or load, store and return it.

        Not single-flight; concurrent misses may each call ``loader``.
        """
        value, found = self.get(key)
        if found:
            return value  # type: ignore[return-value]
        value = loader()
        self.set(key, value, ttl)
        return value

    def clear(self) -> None:
        with self._lock.write():
            self._data.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        return self.get(key)[1]
