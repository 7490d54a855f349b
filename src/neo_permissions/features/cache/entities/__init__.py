"""Cache entities and protocols."""

from .protocols import CacheTier, CacheSerializer, InvalidationBroadcaster
from .config import LocalCacheConfig, SharedCacheConfig, TieredCacheConfig

__all__ = [
    "CacheTier",
    "CacheSerializer",
    "InvalidationBroadcaster",
    "LocalCacheConfig",
    "SharedCacheConfig",
    "TieredCacheConfig",
]
