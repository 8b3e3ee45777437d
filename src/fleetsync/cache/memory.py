"""In-process cache tier.

One :class:`MemoryCache` holds the entries of a single namespace. Entries
expire ``ttl`` seconds after they were written; when the cache is full the
expired entries are swept first and then the oldest-inserted entry is evicted
(FIFO under pressure, not LRU). This happens on every write at capacity,
including an overwrite of a key that is already present.
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class _Missing(enum.Enum):
    MISSING = enum.auto()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing.MISSING
"""Returned by cache lookups that found nothing (``None`` is a valid cached value)."""


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A cached payload with its write time and lifetime (both in seconds)."""

    value: T
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class MemoryCache:
    """Size-bounded TTL map for one namespace.

    Not thread-safe. All mutation happens on the event loop thread; sharing
    an instance across threads would need a lock around ``set`` and
    ``cleanup``.
    """

    def __init__(self, max_size: int = 1000, *, clock: Callable[[], float] = time.monotonic) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any, ttl: float) -> None:
        if len(self._entries) >= self._max_size:
            self.cleanup()
        if len(self._entries) >= self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), ttl=ttl)

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return MISSING
        return entry.value

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> list[str]:
        return list(self._entries)

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "keys": self.keys(),
        }
