"""Cache tier adapters."""

from .memory_adapter import MemoryCacheAdapter
from .redis_adapter import RedisCacheAdapter, escape_glob
from .redis_broadcaster import RedisInvalidationBroadcaster
from .serializers import JsonSerializer

__all__ = [
    "MemoryCacheAdapter",
    "RedisCacheAdapter",
    "RedisInvalidationBroadcaster",
    "JsonSerializer",
    "escape_glob",
]
