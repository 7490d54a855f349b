"""Two-tier permission cache.

Reads go local -> shared -> miss; a shared hit is copied into the local
tier for no longer than the shared entry has left. The shared tier is
optional and best effort: when it fails the cache logs a warning, counts
the error and carries on with the local tier (callers then fall through
to the store).

Invalidations are sequenced. A caller that reads the store to fill the
cache takes ``generation()`` first and passes it to ``set(since=...)``;
the write is dropped when a covering prefix, key or flush was invalidated
in between, so a read that raced a write cannot resurrect the old answer.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from ..entities.config import TieredCacheConfig
from ..entities.protocols import CacheTier
from ....core.exceptions.infrastructure import CacheError

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Counters for the tiered cache."""

    local_hits: int = 0
    shared_hits: int = 0
    misses: int = 0
    sets: int = 0
    invalidations: int = 0
    shared_errors: int = 0
    stale_writes_skipped: int = 0
    local_size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.local_hits + self.shared_hits + self.misses
        if lookups == 0:
            return 0.0
        return (self.local_hits + self.shared_hits) / lookups

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = round(self.hit_rate, 4)
        return data


class TieredPermissionCache:
    """Composes a local tier with an optional shared tier."""

    def __init__(
        self,
        local: CacheTier,
        shared: Optional[CacheTier] = None,
        config: Optional[TieredCacheConfig] = None
    ):
        self.local = local
        self.shared = shared
        self.config = config or TieredCacheConfig()
        self._stats = CacheStats()
        self._sequence = 0
        self._floor = 0
        self._invalidated: Dict[str, int] = {}

    @property
    def has_shared_tier(self) -> bool:
        return self.shared is not None

    def _shared_failed(self, operation: str, error: Exception) -> None:
        self._stats.shared_errors += 1
        logger.warning(f"Shared cache {operation} failed, continuing without it: {error}")

    # Invalidation sequencing

    def generation(self) -> int:
        """Token to pass to ``set(since=...)`` when filling the cache from the store."""
        return self._sequence

    def _mark_invalidated(self, prefix: str) -> None:
        self._sequence += 1
        if len(self._invalidated) >= self.config.max_tracked_invalidations:
            self._invalidated.clear()
            self._floor = self._sequence
            return
        self._invalidated[prefix] = self._sequence

    def _mark_flushed(self) -> None:
        self._sequence += 1
        self._invalidated.clear()
        self._floor = self._sequence

    def _invalidated_since(self, key: str, since: int) -> bool:
        if since < self._floor:
            return True
        if not self._invalidated:
            return False
        if self._invalidated.get(key, 0) > since:
            return True
        # Prefixes end at a separator, so only those boundaries need checking
        end = key.find(":")
        while end != -1:
            if self._invalidated.get(key[:end + 1], 0) > since:
                return True
            end = key.find(":", end + 1)
        return False

    @staticmethod
    def _capped(default: Optional[float], ttl: Optional[float]) -> Optional[float]:
        if ttl is None:
            return default
        if default is None:
            return ttl
        return min(default, ttl)

    async def get(self, key: str) -> Tuple[Any, bool]:
        value, found, _ = await self.get_with_ttl(key)
        return value, found

    async def get_with_ttl(self, key: str) -> Tuple[Any, bool, Optional[float]]:
        """Like ``get``, also returning the seconds the entry has left (None: no expiry)."""
        value, found, remaining = await self.local.get_with_ttl(key)
        if found:
            self._stats.local_hits += 1
            return value, True, remaining

        if self.shared is not None:
            try:
                value, found, remaining = await self.shared.get_with_ttl(key)
            except CacheError as e:
                self._shared_failed("get", e)
                found = False
            if found:
                self._stats.shared_hits += 1
                # The local copy must not outlive the shared entry
                local_ttl = self._capped(self.config.local_ttl, remaining)
                if local_ttl > 0:
                    await self.local.set(key, value, local_ttl)
                return value, True, remaining

        self._stats.misses += 1
        logger.debug(f"Permission cache miss: {key}")
        return None, False, None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        since: Optional[int] = None
    ) -> bool:
        """Cache ``value`` in both tiers; return whether it was written.

        ``ttl`` caps each tier's configured TTL (a value that is about to
        stop holding is not cached at all). ``since`` is a ``generation()``
        token taken before the value was read.
        """
        if ttl is not None and ttl <= 0:
            return False
        if since is not None and self._invalidated_since(key, since):
            self._stats.stale_writes_skipped += 1
            logger.debug(f"Skipping cache write for {key}: invalidated while it was being read")
            return False

        self._stats.sets += 1
        await self.local.set(key, value, self._capped(self.config.local_ttl, ttl))
        if self.shared is not None:
            try:
                await self.shared.set(key, value, self._capped(self.config.shared_ttl, ttl))
            except CacheError as e:
                self._shared_failed("set", e)
        return True

    async def delete(self, key: str) -> None:
        self._mark_invalidated(key)
        await self.local.delete(key)
        if self.shared is not None:
            try:
                await self.shared.delete(key)
            except CacheError as e:
                self._shared_failed("delete", e)

    async def delete_local(self, key: str) -> None:
        self._mark_invalidated(key)
        await self.local.delete(key)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Evict ``prefix`` from both tiers; returns the number of keys removed."""
        self._stats.invalidations += 1
        self._mark_invalidated(prefix)
        removed = await self.local.invalidate_prefix(prefix)
        if self.shared is not None:
            try:
                removed += await self.shared.invalidate_prefix(prefix)
            except CacheError as e:
                self._shared_failed("invalidate", e)
        logger.debug(f"Invalidated {removed} cache entries under {prefix}")
        return removed

    async def invalidate_local_prefix(self, prefix: str) -> int:
        self._stats.invalidations += 1
        self._mark_invalidated(prefix)
        return await self.local.invalidate_prefix(prefix)

    async def clear(self) -> None:
        self._mark_flushed()
        await self.local.clear()
        if self.shared is not None:
            try:
                await self.shared.clear()
            except CacheError as e:
                self._shared_failed("clear", e)

    async def clear_local(self) -> None:
        self._mark_flushed()
        await self.local.clear()

    async def connect(self) -> None:
        await self.local.connect()
        if self.shared is not None:
            try:
                await self.shared.connect()
            except CacheError as e:
                self._shared_failed("connect", e)

    async def disconnect(self) -> None:
        await self.local.disconnect()
        if self.shared is not None:
            await self.shared.disconnect()

    async def health_check(self) -> Dict[str, bool]:
        health = {self.local.name: await self.local.health_check()}
        if self.shared is not None:
            health[self.shared.name] = await self.shared.health_check()
        return health

    def stats(self) -> CacheStats:
        """Snapshot of the counters, with the current local tier size."""
        size = getattr(self.local, "size", None)
        snapshot = CacheStats(**asdict(self._stats))
        snapshot.local_size = size() if callable(size) else 0
        return snapshot

    def reset_stats(self) -> None:
        self._stats = CacheStats()
