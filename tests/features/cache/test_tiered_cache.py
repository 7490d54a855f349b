"""Tests for TieredPermissionCache."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from neo_permissions.core.exceptions import CacheUnavailableError
from neo_permissions.features.cache import (
    MemoryCacheAdapter,
    TieredCacheConfig,
    TieredPermissionCache,
)


@pytest.fixture
def shared():
    tier = MagicMock()
    tier.name = "shared"
    tier.connect = AsyncMock()
    tier.disconnect = AsyncMock()
    tier.get_with_ttl = AsyncMock(return_value=(None, False, None))
    tier.set = AsyncMock()
    tier.delete = AsyncMock(return_value=True)
    tier.invalidate_prefix = AsyncMock(return_value=3)
    tier.clear = AsyncMock()
    tier.health_check = AsyncMock(return_value=True)
    return tier


@pytest.fixture
def local():
    return MemoryCacheAdapter()


@pytest.fixture
def tiered(local, shared):
    return TieredPermissionCache(local, shared, TieredCacheConfig(local_ttl=30, shared_ttl=600))


@pytest.mark.asyncio
async def test_set_writes_both_tiers(tiered, local, shared):
    await tiered.set("k", True)

    assert await local.get("k") == (True, True)
    shared.set.assert_awaited_once_with("k", True, 600)


@pytest.mark.asyncio
async def test_local_hit_skips_shared(tiered, shared):
    await tiered.set("k", True)

    assert await tiered.get("k") == (True, True)
    shared.get_with_ttl.assert_not_awaited()
    assert tiered.stats().local_hits == 1


@pytest.mark.asyncio
async def test_shared_hit_populates_local(tiered, local, shared):
    shared.get_with_ttl.return_value = (False, True, None)

    assert await tiered.get("k") == (False, True)
    assert await local.get("k") == (False, True)
    assert tiered.stats().shared_hits == 1


@pytest.mark.asyncio
async def test_miss(tiered):
    assert await tiered.get("k") == (None, False)
    assert tiered.stats().misses == 1


@pytest.mark.asyncio
async def test_shared_failures_degrade_to_local(tiered, local, shared):
    shared.get_with_ttl.side_effect = CacheUnavailableError("down")
    shared.set.side_effect = CacheUnavailableError("down")
    shared.invalidate_prefix.side_effect = CacheUnavailableError("down")

    await tiered.set("p:k", True)
    assert await tiered.get("p:k") == (True, True)
    assert await tiered.get("other") == (None, False)
    assert await tiered.invalidate_prefix("p:") == 1

    assert tiered.stats().shared_errors == 3


@pytest.mark.asyncio
async def test_invalidate_prefix_counts_both_tiers(tiered, shared):
    await tiered.set("p:k", True)

    assert await tiered.invalidate_prefix("p:") == 4
    shared.invalidate_prefix.assert_awaited_once_with("p:")


@pytest.mark.asyncio
async def test_local_only_operations(tiered, local, shared):
    await tiered.set("p:a", 1)
    await tiered.set("p:b", 2)
    await tiered.set("q", 3)

    await tiered.delete_local("q")
    await tiered.invalidate_local_prefix("p:a")
    assert local.size() == 1

    await tiered.clear_local()
    assert local.size() == 0
    shared.delete.assert_not_awaited()
    shared.invalidate_prefix.assert_not_awaited()
    shared.clear.assert_not_awaited()


@pytest.mark.asyncio
async def test_connect_survives_shared_failure(tiered, shared):
    shared.connect.side_effect = CacheUnavailableError("down")

    await tiered.connect()

    assert tiered.stats().shared_errors == 1


@pytest.mark.asyncio
async def test_health_check(tiered):
    assert await tiered.health_check() == {"local": True, "shared": True}


@pytest.mark.asyncio
async def test_stats(tiered):
    await tiered.set("k", True)
    await tiered.get("k")
    await tiered.get("missing")

    stats = tiered.stats()
    assert stats.hit_rate == 0.5
    assert stats.local_size == 1
    assert stats.to_dict()["hit_rate"] == 0.5

    tiered.reset_stats()
    assert tiered.stats().sets == 0


@pytest.mark.asyncio
async def test_without_shared_tier(local):
    cache = TieredPermissionCache(local)

    await cache.set("k", True)

    assert cache.has_shared_tier is False
    assert await cache.get("k") == (True, True)
    assert await cache.health_check() == {"local": True}


class ManualClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCaps:

    @pytest.fixture
    def ticks(self):
        return ManualClock()

    @pytest.fixture
    def local(self, ticks):
        return MemoryCacheAdapter(clock=ticks)

    @pytest.mark.asyncio
    async def test_ttl_caps_both_tiers(self, tiered, local, shared, ticks):
        assert await tiered.set("k", True, ttl=5) is True

        shared.set.assert_awaited_once_with("k", True, 5)
        ticks.now += 6
        assert await local.get("k") == (None, False)

    @pytest.mark.asyncio
    async def test_ttl_above_tier_defaults_is_ignored(self, tiered, local, shared):
        await tiered.set("k", True, ttl=10_000)

        shared.set.assert_awaited_once_with("k", True, 600)
        assert (await local.get_with_ttl("k"))[2] == 30

    @pytest.mark.asyncio
    async def test_expired_value_is_not_cached(self, tiered, local, shared):
        assert await tiered.set("k", True, ttl=0) is False
        assert await tiered.set("k", True, ttl=-3) is False

        assert local.size() == 0
        shared.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_copy_of_shared_hit_expires_with_it(self, tiered, local, shared, ticks):
        shared.get_with_ttl.return_value = (True, True, 2.5)

        assert await tiered.get_with_ttl("k") == (True, True, 2.5)
        assert (await local.get_with_ttl("k"))[2] == 2.5

        ticks.now += 3
        shared.get_with_ttl.return_value = (None, False, None)
        assert await tiered.get("k") == (None, False)

    @pytest.mark.asyncio
    async def test_nearly_expired_shared_hit_is_not_copied(self, tiered, local, shared):
        shared.get_with_ttl.return_value = (True, True, 0)

        assert await tiered.get("k") == (True, True)
        assert local.size() == 0


class TestInvalidationSequencing:

    @pytest.mark.asyncio
    async def test_fill_dropped_after_prefix_invalidation(self, tiered, local, shared):
        token = tiered.generation()

        await tiered.invalidate_prefix("ns:d:P1:T1:")

        assert await tiered.set("ns:d:P1:T1:documents:read:*", True, since=token) is False
        assert local.size() == 0
        shared.set.assert_not_awaited()
        assert tiered.stats().stale_writes_skipped == 1

    @pytest.mark.asyncio
    async def test_unrelated_keys_still_fill(self, tiered):
        token = tiered.generation()

        await tiered.invalidate_prefix("ns:d:P1:T1:")

        assert await tiered.set("ns:d:P1:T10:documents:read:*", True, since=token) is True
        assert await tiered.set("ns:d:P2:T1:documents:read:*", True, since=token) is True

    @pytest.mark.asyncio
    async def test_fill_started_after_invalidation_is_kept(self, tiered):
        await tiered.invalidate_local_prefix("ns:d:P1:")
        token = tiered.generation()

        assert await tiered.set("ns:d:P1:T1:documents:read:*", True, since=token) is True

    @pytest.mark.asyncio
    async def test_key_delete_drops_fill(self, tiered):
        token = tiered.generation()

        await tiered.delete_local("ns:sa:P1")

        assert await tiered.set("ns:sa:P1", True, since=token) is False

    @pytest.mark.asyncio
    async def test_flush_drops_every_older_fill(self, tiered):
        token = tiered.generation()

        await tiered.clear_local()

        assert await tiered.set("anything:at:all", True, since=token) is False
        assert await tiered.set("anything:at:all", True, since=tiered.generation()) is True

    @pytest.mark.asyncio
    async def test_tracking_overflow_is_conservative(self, local, shared):
        tiered = TieredPermissionCache(local, shared, TieredCacheConfig(max_tracked_invalidations=2))
        token = tiered.generation()

        for prefix in ("a:", "b:", "c:"):
            await tiered.invalidate_local_prefix(prefix)

        assert await tiered.set("z:k", True, since=token) is False
        assert await tiered.set("z:k", True, since=tiered.generation()) is True
