"""Cross-instance cache invalidation over Redis pub/sub.

Each instance publishes ``{"op": "prefix"|"key"|"flush", ..., "node_id": ...}``
after invalidating its own tiers. Peers evict only their local tier (the
shared tier has already been invalidated by the publisher) and skip
messages carrying their own node id. A lost subscription is re-established
in the background; the local tier is resynced around the gap.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ....config.constants import InvalidationChannels
from ....core.exceptions.infrastructure import CacheUnavailableError

logger = logging.getLogger(__name__)

InvalidationHandler = Callable[[Dict[str, Any]], Awaitable[None]]
ResyncHandler = Callable[[], Awaitable[None]]

OP_PREFIX = "prefix"
OP_KEY = "key"
OP_FLUSH = "flush"


class RedisInvalidationBroadcaster:
    """Publishes and consumes invalidation messages for peer instances."""

    def __init__(
        self,
        client: Optional[Redis] = None,
        url: Optional[str] = None,
        channel: str = InvalidationChannels.DEFAULT,
        node_id: Optional[str] = None,
        retry_initial_delay: float = 0.5,
        retry_max_delay: float = 30.0
    ):
        if client is None and url is None:
            raise ValueError("Either a Redis client or a URL is required")
        self.redis_client = client
        self._owns_client = client is None
        self.url = url
        self.channel = channel
        self.node_id = node_id or uuid.uuid4().hex
        self._listener: Optional[asyncio.Task] = None
        self._handler: Optional[InvalidationHandler] = None
        self._on_resync: Optional[ResyncHandler] = None
        self.retry_initial_delay = retry_initial_delay
        self.retry_max_delay = retry_max_delay
        self.is_listening = False
        self.reconnects = 0

    def _client(self) -> Redis:
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.url)
        return self.redis_client

    async def _publish(self, message: Dict[str, Any]) -> None:
        message["node_id"] = self.node_id
        try:
            await self._client().publish(self.channel, json.dumps(message))
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Failed to broadcast invalidation: {e}")

    async def publish_prefix(self, prefix: str) -> None:
        await self._publish({"op": OP_PREFIX, "prefix": prefix})

    async def publish_key(self, key: str) -> None:
        await self._publish({"op": OP_KEY, "key": key})

    async def publish_flush(self) -> None:
        await self._publish({"op": OP_FLUSH})

    async def handle_raw(self, data: Any) -> bool:
        """Decode one pub/sub payload and dispatch it; return whether it was applied."""
        if self._handler is None:
            return False
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            message = json.loads(data)
        except ValueError as e:
            logger.error(f"Discarding malformed invalidation message: {e}")
            return False
        if not isinstance(message, dict) or message.get("node_id") == self.node_id:
            return False
        if message.get("op") not in (OP_PREFIX, OP_KEY, OP_FLUSH):
            logger.error(f"Discarding invalidation message with unknown op: {message.get('op')}")
            return False
        await self._handler(message)
        return True

    async def start(
        self,
        handler: InvalidationHandler,
        on_resync: Optional[ResyncHandler] = None
    ) -> None:
        """Subscribe to the channel and dispatch peer messages to ``handler``.

        The subscription is kept alive in the background: when it drops it
        is re-established with exponential backoff. ``on_resync`` runs when
        the subscription is lost and again once it is back, since messages
        published in between never arrive.
        """
        if self._listener is not None:
            return
        self._handler = handler
        self._on_resync = on_resync
        try:
            pubsub = await self._subscribe()
        except CacheUnavailableError as e:
            logger.error(f"{e}; retrying in the background")
            pubsub = None
        self._listener = asyncio.create_task(self._run(pubsub))

    async def _subscribe(self):
        pubsub = self._client().pubsub()
        try:
            await pubsub.subscribe(self.channel)
        except (RedisError, OSError) as e:
            await self._close_pubsub(pubsub)
            raise CacheUnavailableError(f"Failed to subscribe to {self.channel}: {e}")
        self.is_listening = True
        logger.info(f"Listening for invalidations on {self.channel} as node {self.node_id}")
        return pubsub

    async def _run(self, pubsub) -> None:
        while True:
            if pubsub is not None:
                await self._listen(pubsub)
                self.is_listening = False
                await self._resync()
            pubsub = await self._resubscribe()
            self.reconnects += 1
            await self._resync()

    async def _resubscribe(self):
        delay = self.retry_initial_delay
        while True:
            await asyncio.sleep(delay)
            try:
                return await self._subscribe()
            except CacheUnavailableError as e:
                delay = min(delay * 2, self.retry_max_delay)
                logger.warning(f"{e}; next attempt in {delay:.1f}s")

    async def _resync(self) -> None:
        if self._on_resync is None:
            return
        try:
            await self._on_resync()
        except Exception as e:
            logger.error(f"Invalidation resync failed: {e}")

    async def _listen(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    await self.handle_raw(message.get("data"))
                except Exception as e:
                    # skip undecodable messages
                    logger.error(f"Failed to apply peer invalidation: {e}")
        except (RedisError, OSError) as e:
            logger.error(f"Invalidation subscription lost: {e}")
        finally:
            await self._close_pubsub(pubsub)

    async def _close_pubsub(self, pubsub) -> None:
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing invalidation subscription: {e}")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        self._handler = None
        self._on_resync = None
        self.is_listening = False
        if self._owns_client and self.redis_client is not None:
            try:
                await self.redis_client.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing invalidation client: {e}")
            finally:
                self.redis_client = None

    def info(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "channel": self.channel,
            "listening": self.is_listening,
            "reconnects": self.reconnects,
        }
