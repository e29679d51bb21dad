from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    expires_at: Optional[float]

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at < now


class TTLCache(Generic[T]):
    """In-memory cache for fetched datasets.

    Owned by whoever constructs it (no module-level instances). ``ttl_s=None``
    keeps entries until they are invalidated or evicted by ``max_size``.
    Values should be immutable snapshots (tuples); a refresh swaps the whole entry.
    """

    def __init__(self, *, ttl_s: Optional[float], max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl_s = ttl_s
        self.max_size = max_size
        self._store: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Optional[T]:
        now = time.monotonic()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expired(now):
                self._store.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: T) -> None:
        now = time.monotonic()
        expires_at = None if self.ttl_s is None else now + self.ttl_s
        with self._lock:
            self._purge_expired(now)
            if key not in self._store and len(self._store) >= self.max_size:
                self._evict_oldest()
            self._store[key] = CacheEntry(value=value, stored_at=now, expires_at=expires_at)

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def _purge_expired(self, now: float) -> None:
        expired_keys = [key for key, entry in self._store.items() if entry.expired(now)]
        for key in expired_keys:
            self._store.pop(key, None)

    def _evict_oldest(self) -> None:
        if not self._store:
            return
        oldest_key = min(self._store.items(), key=lambda item: item[1].stored_at)[0]
        self._store.pop(oldest_key, None)


def make_cache_key(*parts: object) -> str:
    return "|".join("" if part is None else str(part) for part in parts)
