"""Redis shared cache tier for neo-permissions."""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..entities.config import SharedCacheConfig
from ..entities.protocols import CacheSerializer
from .serializers import JsonSerializer
from ....core.exceptions.infrastructure import CacheUnavailableError

logger = logging.getLogger(__name__)

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape Redis MATCH glob metacharacters so ``value`` matches literally."""
    return _GLOB_SPECIALS.sub(r"\\\1", value)


class RedisCacheAdapter:
    """Shared cache tier backed by Redis.

    Every command failure (Redis or socket level) is raised as
    ``CacheUnavailableError``; the tiered cache decides how to degrade.
    """

    name = "shared"

    def __init__(
        self,
        config: SharedCacheConfig,
        serializer: Optional[CacheSerializer] = None,
        client: Optional[Redis] = None
    ):
        self.config = config
        self.serializer = serializer or JsonSerializer()
        self.redis_client: Optional[Redis] = client
        self._owns_client = client is None

    async def connect(self) -> None:
        """Create the client (if not injected) and verify connectivity."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.config.url,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
            )
        try:
            await self.redis_client.ping()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Failed to connect to Redis: {e}")
        logger.info(f"Connected shared cache tier (namespace={self.config.namespace})")

    async def disconnect(self) -> None:
        if self.redis_client is None:
            return
        if self._owns_client:
            try:
                await self.redis_client.aclose()
            except (RedisError, OSError) as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self.redis_client = None

    def _client(self) -> Redis:
        if self.redis_client is None:
            raise CacheUnavailableError("Shared cache tier is not connected")
        return self.redis_client

    async def get(self, key: str) -> Tuple[Any, bool]:
        try:
            payload = await self._client().get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis get error for key {key}: {e}")
        if payload is None:
            return None, False
        return self.serializer.decode(payload), True

    async def get_with_ttl(self, key: str) -> Tuple[Any, bool, Optional[float]]:
        """Fetch a value and its remaining lifetime in one round trip."""
        try:
            pipe = self._client().pipeline()
            pipe.get(key)
            pipe.pttl(key)
            payload, remaining_ms = await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis get error for key {key}: {e}")
        # PTTL is -2 once the key is gone and -1 for keys without expiry
        if payload is None or remaining_ms == -2:
            return None, False, None
        remaining = remaining_ms / 1000 if remaining_ms is not None and remaining_ms >= 0 else None
        return self.serializer.decode(payload), True, remaining

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        effective_ttl = ttl or self.config.default_ttl
        payload = self.serializer.encode(value)
        if float(effective_ttl).is_integer():
            expiry = {"ex": int(effective_ttl)}
        else:
            expiry = {"px": max(1, int(effective_ttl * 1000))}
        try:
            await self._client().set(key, payload, **expiry)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis set error for key {key}: {e}")

    async def delete(self, key: str) -> bool:
        try:
            return await self._client().delete(key) > 0
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis delete error for key {key}: {e}")

    async def _unlink_matching(self, pattern: str) -> int:
        client = self._client()
        removed = 0
        batch: List[Any] = []
        try:
            async for key in client.scan_iter(match=pattern, count=self.config.scan_batch_size):
                batch.append(key)
                if len(batch) >= self.config.scan_batch_size:
                    removed += await client.unlink(*batch)
                    batch = []
            if batch:
                removed += await client.unlink(*batch)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis scan/unlink error for {pattern}: {e}")
        return removed

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete keys starting with ``prefix`` using SCAN (never KEYS)."""
        return await self._unlink_matching(f"{escape_glob(prefix)}*")

    async def clear(self) -> None:
        """Remove every key under this tier's namespace."""
        removed = await self._unlink_matching(f"{escape_glob(self.config.namespace)}:*")
        logger.info(f"Cleared {removed} shared cache entries")

    async def health_check(self) -> bool:
        try:
            return bool(await self._client().ping())
        except (CacheUnavailableError, RedisError, OSError) as e:
            logger.warning(f"Shared cache health check failed: {e}")
            return False

    def info(self) -> Dict[str, Any]:
        return {
            "backend_type": "redis",
            "namespace": self.config.namespace,
            "default_ttl": self.config.default_ttl,
            "connected": self.redis_client is not None,
        }
