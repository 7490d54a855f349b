"""Tests for cross-instance invalidation over a fake Redis pub/sub."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from neo_permissions.core.exceptions import CacheUnavailableError
from neo_permissions.features.cache import (
    MemoryCacheAdapter,
    PermissionCacheKeys,
    RedisInvalidationBroadcaster,
    TieredPermissionCache,
)
from neo_permissions.features.cache.adapters import redis_broadcaster
from neo_permissions.features.permissions import InvalidationCoordinator


class FakePubSub:
    def __init__(self, bus):
        self.bus = bus
        self.queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, channel):
        if self.bus.down:
            self.bus.subscribe_failures += 1
            raise RedisConnectionError("connection refused")
        self.bus.subscribers.setdefault(channel, []).append(self)

    async def unsubscribe(self, channel):
        subscribers = self.bus.subscribers.get(channel, [])
        if self in subscribers:
            subscribers.remove(self)

    async def aclose(self):
        self.closed = True

    async def listen(self):
        yield {"type": "subscribe", "data": 1}
        while True:
            message = await self.queue.get()
            if isinstance(message, Exception):
                raise message
            yield message


class FakeRedisBus:
    """Minimal stand-in for a Redis server's pub/sub."""

    def __init__(self):
        self.subscribers = {}
        self.published = []
        self.down = False
        self.subscribe_failures = 0
        self.closed = False

    async def publish(self, channel, data):
        self.published.append((channel, data))
        for pubsub in self.subscribers.get(channel, []):
            pubsub.queue.put_nowait({"type": "message", "channel": channel, "data": data.encode()})
        return len(self.subscribers.get(channel, []))

    def pubsub(self):
        return FakePubSub(self)

    async def aclose(self):
        self.closed = True

    def drop_connections(self):
        for subscribers in self.subscribers.values():
            for pubsub in list(subscribers):
                pubsub.queue.put_nowait(RedisConnectionError("connection reset"))


async def drain():
    for _ in range(5):
        await asyncio.sleep(0)


async def wait_until(predicate, timeout=1.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout)
    await drain()


@pytest.fixture
def redis_bus():
    return FakeRedisBus()


@pytest.fixture
def keys():
    return PermissionCacheKeys("ns")


def make_node(redis_bus, keys, node_id, **options):
    cache = TieredPermissionCache(MemoryCacheAdapter())
    broadcaster = RedisInvalidationBroadcaster(client=redis_bus, channel="inv", node_id=node_id, **options)
    coordinator = InvalidationCoordinator(cache, keys, broadcaster=broadcaster)
    return cache, coordinator


@pytest.mark.asyncio
async def test_peer_evicts_its_local_tier(redis_bus, keys):
    cache_a, node_a = make_node(redis_bus, keys, "a")
    cache_b, node_b = make_node(redis_bus, keys, "b")
    await node_a.start()
    await node_b.start()
    entry = keys.decision("P1", "T1", "documents", "write")
    other = keys.decision("P1", "T10", "documents", "write")
    for cache in (cache_a, cache_b):
        await cache.set(entry, True)
        await cache.set(other, True)
        await cache.set(keys.superadmin("P1"), False)

    try:
        await node_a.invalidate_principal("P1", "T1")
        await drain()

        assert await cache_b.get(entry) == (None, False)
        assert await cache_b.get(keys.superadmin("P1")) == (None, False)
        assert await cache_b.get(other) == (True, True)
    finally:
        await node_a.stop()
        await node_b.stop()


@pytest.mark.asyncio
async def test_flush_reaches_peer(redis_bus, keys):
    cache_a, node_a = make_node(redis_bus, keys, "a")
    cache_b, node_b = make_node(redis_bus, keys, "b")
    await node_b.start()
    await cache_b.set(keys.superadmin("root"), True)

    try:
        await node_a.flush()
        await drain()

        assert cache_b.local.size() == 0
    finally:
        await node_b.stop()


@pytest.mark.asyncio
async def test_message_format(redis_bus, keys):
    broadcaster = RedisInvalidationBroadcaster(client=redis_bus, channel="inv", node_id="a")

    await broadcaster.publish_prefix(keys.principal_tenant_prefix("P1", "T1"))

    channel, data = redis_bus.published[0]
    assert channel == "inv"
    assert json.loads(data) == {"op": "prefix", "prefix": "ns:d:P1:T1:", "node_id": "a"}


@pytest.mark.asyncio
async def test_stop_unsubscribes(redis_bus):
    broadcaster = RedisInvalidationBroadcaster(client=redis_bus, channel="inv", node_id="a")
    await broadcaster.start(AsyncMock())
    await drain()
    assert len(redis_bus.subscribers["inv"]) == 1

    await broadcaster.stop()

    assert redis_bus.subscribers["inv"] == []
    assert redis_bus.closed is False


class TestHandleRaw:

    @pytest.fixture
    def handler(self):
        return AsyncMock()

    @pytest.fixture
    def broadcaster(self, redis_bus, handler):
        broadcaster = RedisInvalidationBroadcaster(client=redis_bus, channel="inv", node_id="self")
        broadcaster._handler = handler
        return broadcaster

    @pytest.mark.asyncio
    async def test_applies_peer_message(self, broadcaster, handler):
        assert await broadcaster.handle_raw(b'{"op":"key","key":"ns:sa:p","node_id":"peer"}') is True
        handler.assert_awaited_once_with({"op": "key", "key": "ns:sa:p", "node_id": "peer"})

    @pytest.mark.asyncio
    async def test_ignores_own_message(self, broadcaster, handler):
        assert await broadcaster.handle_raw('{"op":"flush","node_id":"self"}') is False
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"not json", b'{"op":"explode","node_id":"peer"}', b"[1, 2]"])
    async def test_discards_bad_messages(self, broadcaster, handler, payload):
        assert await broadcaster.handle_raw(payload) is False
        handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_failure():
    client = MagicMock()
    client.publish = AsyncMock(side_effect=RedisConnectionError("refused"))
    broadcaster = RedisInvalidationBroadcaster(client=client)

    with pytest.raises(CacheUnavailableError):
        await broadcaster.publish_flush()


def test_requires_client_or_url():
    with pytest.raises(ValueError):
        RedisInvalidationBroadcaster()


def test_generates_node_id():
    assert RedisInvalidationBroadcaster(url="redis://localhost").node_id


class TestReconnect:

    @pytest.mark.asyncio
    async def test_lost_subscription_is_restored_and_resynced(self, redis_bus, keys):
        cache_a, node_a = make_node(redis_bus, keys, "a")
        cache_b, node_b = make_node(redis_bus, keys, "b", retry_initial_delay=0.01, retry_max_delay=0.02)
        await node_b.start()
        entry = keys.decision("P1", "T1", "documents", "write")
        await cache_b.set(entry, True)

        try:
            redis_bus.down = True
            redis_bus.drop_connections()
            await drain()

            assert node_b.info()["listening"] is False
            assert await cache_b.get(entry) == (None, False)

            await asyncio.sleep(0.05)
            assert redis_bus.subscribe_failures >= 1
            # Filled while no peer messages could arrive
            await cache_b.set(entry, True)

            redis_bus.down = False
            await wait_until(lambda: node_b.info()["listening"])

            assert node_b.info()["reconnects"] == 1
            assert await cache_b.get(entry) == (None, False)

            await cache_b.set(entry, True)
            await node_a.invalidate_principal("P1", "T1")
            await drain()
            assert await cache_b.get(entry) == (None, False)
        finally:
            await node_b.stop()

    @pytest.mark.asyncio
    async def test_start_keeps_retrying_when_redis_is_down(self, redis_bus):
        redis_bus.down = True
        broadcaster = RedisInvalidationBroadcaster(
            client=redis_bus, channel="inv", node_id="a", retry_initial_delay=0.01, retry_max_delay=0.02
        )

        await broadcaster.start(AsyncMock())
        try:
            assert broadcaster.is_listening is False

            redis_bus.down = False
            await wait_until(lambda: broadcaster.is_listening)

            assert broadcaster.info()["reconnects"] == 1
            assert len(redis_bus.subscribers["inv"]) == 1
        finally:
            await broadcaster.stop()

    @pytest.mark.asyncio
    async def test_resync_errors_do_not_stop_the_listener(self, redis_bus):
        handler = AsyncMock()
        on_resync = AsyncMock(side_effect=RuntimeError("boom"))
        broadcaster = RedisInvalidationBroadcaster(client=redis_bus, channel="inv", node_id="a", retry_initial_delay=0.01)
        await broadcaster.start(handler, on_resync=on_resync)

        try:
            redis_bus.drop_connections()
            await wait_until(lambda: broadcaster.reconnects == 1)
            await redis_bus.publish("inv", '{"op":"flush","node_id":"peer"}')
            await drain()

            assert on_resync.await_count == 2
            handler.assert_awaited_once_with({"op": "flush", "node_id": "peer"})
        finally:
            await broadcaster.stop()


@pytest.mark.asyncio
async def test_stop_closes_client_it_created(monkeypatch, redis_bus):
    monkeypatch.setattr(redis_broadcaster.redis, "from_url", lambda url: redis_bus)
    broadcaster = RedisInvalidationBroadcaster(url="redis://cache:6379/0", channel="inv")
    await broadcaster.start(AsyncMock())

    await broadcaster.stop()

    assert redis_bus.closed is True
    assert broadcaster.redis_client is None
    assert broadcaster.info()["listening"] is False
