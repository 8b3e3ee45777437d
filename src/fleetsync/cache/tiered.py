"""Two-tier cache: fast local tier plus optional shared remote tier.

Consistency contract:

* **Read-through**: ``get`` checks the local tier, then the remote tier; a
  remote hit repopulates the local tier.
* **Write-through**: ``set`` writes the local tier first, then mirrors to the
  remote tier.
* **Remote failure is non-fatal**: every remote error is logged once at
  WARNING and the operation carries on local-only. Callers never see it.
* **Deletes are eventually consistent**: local removal is immediate; remote
  removal is best-effort, and ``clear_namespace`` only reaches remote keys the
  local tier still knows about.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from fleetsync.cache.memory import MISSING, MemoryCache
from fleetsync.cache.remote import RemoteCacheTier
from fleetsync.exceptions import FleetSyncError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# Serialization problems count as remote-tier failures too.
_REMOTE_ERRORS = (FleetSyncError, TypeError, ValueError)


@dataclass(frozen=True)
class CachePolicy:
    """Lifetime (seconds) and capacity of one cache namespace."""

    ttl: float = 300.0
    max_size: int = 1000

    def __post_init__(self) -> None:
        if self.ttl <= 0:
            raise ValueError("ttl must be positive")
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")


DEFAULT_POLICY = CachePolicy()

DEFAULT_POLICIES: dict[str, CachePolicy] = {
    "vehicles": CachePolicy(ttl=300, max_size=1000),
    "payments": CachePolicy(ttl=180, max_size=500),
    "statistics": CachePolicy(ttl=600, max_size=100),
    "user_sessions": CachePolicy(ttl=3600, max_size=200),
    "api_responses": CachePolicy(ttl=60, max_size=1000),
    "toll_search": CachePolicy(ttl=300, max_size=200),
    "rental_tolls": CachePolicy(ttl=120, max_size=500),
}


class TwoTierCache:
    """Namespaced TTL cache with a local tier and an optional remote tier.

    Usage::

        async with TwoTierCache(remote=tier) as cache:
            await cache.set("vehicles", "abc", payload)
            hit = await cache.get("vehicles", "abc")
    """

    def __init__(
        self,
        *,
        remote: RemoteCacheTier | None = None,
        policies: Mapping[str, CachePolicy] | None = None,
        clock: Callable[[], float] = time.monotonic,
        key_prefix: str = "fleetsync",
    ) -> None:
        self._remote = remote
        self._policies: dict[str, CachePolicy] = dict(DEFAULT_POLICIES)
        if policies:
            self._policies.update(policies)
        self._clock = clock
        self._key_prefix = key_prefix
        self._local: dict[str, MemoryCache] = {}

    async def __aenter__(self) -> TwoTierCache:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Drop local entries and detach the remote tier."""
        self._local.clear()
        self._remote = None

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def configure(self, namespace: str, policy: CachePolicy) -> None:
        """Register or override the policy of *namespace*.

        An existing local tier for the namespace is rebuilt when the capacity
        changes; its entries are dropped.
        """
        self._policies[namespace] = policy
        local = self._local.get(namespace)
        if local is not None and local.max_size != policy.max_size:
            self._local[namespace] = MemoryCache(policy.max_size, clock=self._clock)

    def policy(self, namespace: str) -> CachePolicy:
        return self._policies.get(namespace, DEFAULT_POLICY)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _tier(self, namespace: str) -> MemoryCache:
        local = self._local.get(namespace)
        if local is None:
            local = MemoryCache(self.policy(namespace).max_size, clock=self._clock)
            self._local[namespace] = local
        return local

    def _remote_key(self, namespace: str, key: str) -> str:
        return f"{self._key_prefix}:{namespace}:{key}"

    def _remote_ready(self) -> RemoteCacheTier | None:
        if self._remote is None or not self._remote.available:
            return None
        return self._remote

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def set(self, namespace: str, key: str, value: Any, *, ttl: float | None = None) -> None:
        effective_ttl = ttl if ttl is not None else self.policy(namespace).ttl
        self._tier(namespace).set(key, value, effective_ttl)
        _logger.debug("Cache set %s:%s ttl=%s", namespace, key, effective_ttl)

        remote = self._remote_ready()
        if remote is None:
            return
        try:
            await remote.set(self._remote_key(namespace, key), value, effective_ttl)
        except _REMOTE_ERRORS as exc:
            _logger.warning("Remote cache set failed for %s:%s: %s", namespace, key, exc)

    async def get(self, namespace: str, key: str) -> Any:
        """Return the cached value or :data:`MISSING`."""
        value = self._tier(namespace).get(key)
        if value is not MISSING:
            _logger.debug("Cache hit (memory) %s:%s", namespace, key)
            return value

        remote = self._remote_ready()
        if remote is not None:
            try:
                remote_value = await remote.get(self._remote_key(namespace, key))
            except _REMOTE_ERRORS as exc:
                _logger.warning("Remote cache get failed for %s:%s: %s", namespace, key, exc)
                remote_value = None
            if remote_value is not None:
                self._tier(namespace).set(key, remote_value, self.policy(namespace).ttl)
                _logger.debug("Cache hit (remote) %s:%s", namespace, key)
                return remote_value

        _logger.debug("Cache miss %s:%s", namespace, key)
        return MISSING

    async def delete(self, namespace: str, key: str) -> None:
        self._tier(namespace).delete(key)
        remote = self._remote_ready()
        if remote is not None:
            try:
                await remote.delete(self._remote_key(namespace, key))
            except _REMOTE_ERRORS as exc:
                _logger.warning("Remote cache delete failed for %s:%s: %s", namespace, key, exc)
        _logger.debug("Cache deleted %s:%s", namespace, key)

    async def clear_namespace(self, namespace: str) -> None:
        local = self._local.pop(namespace, None)
        keys = local.keys() if local is not None else []
        remote = self._remote_ready()
        if remote is not None:
            for key in keys:
                try:
                    await remote.delete(self._remote_key(namespace, key))
                except _REMOTE_ERRORS as exc:
                    _logger.warning("Remote cache delete failed for %s:%s: %s", namespace, key, exc)
                    break
        _logger.debug("Cache namespace cleared %s (%d local keys)", namespace, len(keys))

    async def clear(self) -> None:
        self._local.clear()
        remote = self._remote_ready()
        if remote is not None:
            try:
                await remote.clear()
            except _REMOTE_ERRORS as exc:
                _logger.warning("Remote cache clear failed: %s", exc)

    async def get_or_set(self, namespace: str, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value, or run *producer* and cache its result.

        A failing producer is logged and re-raised unchanged; nothing is
        cached for it.
        """
        cached = await self.get(namespace, key)
        if cached is not MISSING:
            return cached  # type: ignore[no-any-return]

        try:
            value = await producer()
        except Exception:
            _logger.error("Cache producer failed for %s:%s", namespace, key, exc_info=True)
            raise
        await self.set(namespace, key, value)
        return value

    def cleanup(self) -> int:
        """Sweep expired entries from every namespace."""
        return sum(local.cleanup() for local in self._local.values())

    def stats(self) -> dict[str, Any]:
        return {
            "namespaces": {name: local.stats() for name, local in self._local.items()},
            "policies": {name: {"ttl": p.ttl, "max_size": p.max_size} for name, p in self._policies.items()},
            "remote_available": self._remote_ready() is not None,
        }
