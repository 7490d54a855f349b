"""Sharded in-process cache tier with LRU eviction and TTL support.

Keys are spread over independent shards, each guarded by its own
``threading.Lock``, so concurrent callers (tasks or threads) only contend
when they touch the same shard. No operation performs I/O or awaits while
holding a lock.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..entities.config import LocalCacheConfig

logger = logging.getLogger(__name__)


@dataclass
class MemoryCacheEntry:
    """Memory cache entry with expiry on the monotonic clock."""
    value: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class _Shard:
    """One LRU-ordered partition of the local tier."""

    __slots__ = ("entries", "lock", "capacity", "evictions")

    def __init__(self, capacity: int):
        self.entries: "OrderedDict[str, MemoryCacheEntry]" = OrderedDict()
        self.lock = threading.Lock()
        self.capacity = capacity
        self.evictions = 0


class MemoryCacheAdapter:
    """Local cache tier: sharded, TTL-bounded, recency-evicted."""

    name = "local"

    def __init__(self, config: Optional[LocalCacheConfig] = None, clock=time.monotonic):
        self.config = config or LocalCacheConfig()
        self._clock = clock
        self._shards: List[_Shard] = [
            _Shard(self.config.shard_capacity) for _ in range(self.config.shard_count)
        ]

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    async def connect(self) -> None:
        logger.info(
            f"Local cache initialized: shards={len(self._shards)}, "
            f"capacity={self.config.max_entries}, ttl={self.config.default_ttl}s"
        )

    async def disconnect(self) -> None:
        await self.clear()

    async def get(self, key: str) -> Tuple[Any, bool]:
        shard = self._shard_for(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                return None, False
            if entry.is_expired(now):
                del shard.entries[key]
                return None, False
            shard.entries.move_to_end(key)
            return entry.value, True

    async def get_with_ttl(self, key: str) -> Tuple[Any, bool, Optional[float]]:
        shard = self._shard_for(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                return None, False, None
            if entry.is_expired(now):
                del shard.entries[key]
                return None, False, None
            shard.entries.move_to_end(key)
            remaining = None if entry.expires_at is None else entry.expires_at - now
            return entry.value, True, remaining

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        effective_ttl = ttl if ttl is not None else self.config.default_ttl
        expires_at = self._clock() + effective_ttl if effective_ttl > 0 else None
        shard = self._shard_for(key)
        with shard.lock:
            shard.entries[key] = MemoryCacheEntry(value=value, expires_at=expires_at)
            shard.entries.move_to_end(key)
            while len(shard.entries) > shard.capacity:
                shard.entries.popitem(last=False)
                shard.evictions += 1

    async def delete(self, key: str) -> bool:
        shard = self._shard_for(key)
        with shard.lock:
            return shard.entries.pop(key, None) is not None

    async def invalidate_prefix(self, prefix: str) -> int:
        removed = 0
        for shard in self._shards:
            with shard.lock:
                doomed = [key for key in shard.entries if key.startswith(prefix)]
                for key in doomed:
                    del shard.entries[key]
                removed += len(doomed)
        return removed

    async def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    async def health_check(self) -> bool:
        return True

    def purge_expired(self) -> int:
        """Drop expired entries from every shard."""
        now = self._clock()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                expired = [key for key, entry in shard.entries.items() if entry.is_expired(now)]
                for key in expired:
                    del shard.entries[key]
                removed += len(expired)
        return removed

    def size(self) -> int:
        """Number of entries currently held, expired or not."""
        return sum(len(shard.entries) for shard in self._shards)

    def info(self) -> Dict[str, Any]:
        """Describe the tier for health and stats endpoints."""
        return {
            "backend_type": "memory",
            "total_entries": self.size(),
            "max_entries": self.config.max_entries,
            "shards": len(self._shards),
            "evictions": sum(shard.evictions for shard in self._shards),
            "default_ttl": self.config.default_ttl,
        }
