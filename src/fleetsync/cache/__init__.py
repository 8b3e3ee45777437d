"""Two-tier TTL cache."""

from fleetsync.cache.memory import MISSING, CacheEntry, MemoryCache
from fleetsync.cache.remote import HttpRemoteTier, RemoteCacheTier
from fleetsync.cache.tiered import DEFAULT_POLICIES, DEFAULT_POLICY, CachePolicy, TwoTierCache

__all__ = [
    "CacheEntry",
    "CachePolicy",
    "DEFAULT_POLICIES",
    "DEFAULT_POLICY",
    "HttpRemoteTier",
    "MISSING",
    "MemoryCache",
    "RemoteCacheTier",
    "TwoTierCache",
]
