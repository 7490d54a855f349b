"""Cache services."""

from .cache_keys import PermissionCacheKeys
from .tiered_cache import TieredPermissionCache, CacheStats

__all__ = [
    "PermissionCacheKeys",
    "TieredPermissionCache",
    "CacheStats",
]
