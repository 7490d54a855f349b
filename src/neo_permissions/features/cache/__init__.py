"""Tiered cache feature: local LRU tier, Redis tier and peer invalidation."""

from .entities import (
    CacheTier,
    CacheSerializer,
    InvalidationBroadcaster,
    LocalCacheConfig,
    SharedCacheConfig,
    TieredCacheConfig,
)
from .adapters import (
    MemoryCacheAdapter,
    RedisCacheAdapter,
    RedisInvalidationBroadcaster,
    JsonSerializer,
)
from .services import PermissionCacheKeys, TieredPermissionCache, CacheStats

__all__ = [
    "CacheTier",
    "CacheSerializer",
    "InvalidationBroadcaster",
    "LocalCacheConfig",
    "SharedCacheConfig",
    "TieredCacheConfig",
    "MemoryCacheAdapter",
    "RedisCacheAdapter",
    "RedisInvalidationBroadcaster",
    "JsonSerializer",
    "PermissionCacheKeys",
    "TieredPermissionCache",
    "CacheStats",
]
