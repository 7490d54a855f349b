"""Cache tier configuration."""

from dataclasses import dataclass
from typing import Optional

from ....config.constants import CacheTTL, CacheKeyParts


@dataclass(frozen=True)
class LocalCacheConfig:
    """Configuration for the in-process tier."""

    max_entries: int = 10_000
    shard_count: int = 16
    default_ttl: int = CacheTTL.LOCAL_DEFAULT

    def __post_init__(self):
        if self.max_entries < 1 or self.shard_count < 1:
            raise ValueError("max_entries and shard_count must be positive")
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

    @property
    def shard_capacity(self) -> int:
        """Entries allowed per shard."""
        return max(1, self.max_entries // self.shard_count)


@dataclass(frozen=True)
class SharedCacheConfig:
    """Configuration for the Redis tier."""

    url: str
    default_ttl: int = CacheTTL.SHARED_DEFAULT
    namespace: str = CacheKeyParts.DEFAULT_NAMESPACE
    socket_timeout: float = 0.25
    scan_batch_size: int = 500

    def __post_init__(self):
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")


@dataclass(frozen=True)
class TieredCacheConfig:
    """TTLs applied by the tiered cache when callers do not pass one."""

    local_ttl: int = CacheTTL.LOCAL_DEFAULT
    shared_ttl: Optional[int] = CacheTTL.SHARED_DEFAULT
    # Beyond this many recent invalidations, in-flight fills are all dropped
    max_tracked_invalidations: int = 4096
