"""Tests for engine wiring."""

import pytest

from neo_permissions import build_permission_engine
from neo_permissions.config import PermissionSettings
from neo_permissions.features.cache import RedisCacheAdapter, RedisInvalidationBroadcaster
from neo_permissions.features.permissions import InMemoryPermissionStore, PermissionCacheCodec


def test_defaults_to_embedded_mode():
    engine = build_permission_engine(PermissionSettings(_env_file=None))

    assert isinstance(engine.store, InMemoryPermissionStore)
    assert engine.cache.has_shared_tier is False
    assert engine.coordinator.broadcaster is None
    assert engine.resolver.timeout_seconds == 2.0


def test_redis_url_enables_shared_tier_and_broadcast():
    settings = PermissionSettings(
        _env_file=None,
        redis_url="redis://cache:6379/0",
        cache_namespace="tenant-perms",
        node_id="node-7",
    )

    engine = build_permission_engine(settings, store=InMemoryPermissionStore())

    assert isinstance(engine.cache.shared, RedisCacheAdapter)
    assert isinstance(engine.cache.shared.serializer, PermissionCacheCodec)
    assert engine.cache.shared.config.namespace == "tenant-perms"
    assert isinstance(engine.coordinator.broadcaster, RedisInvalidationBroadcaster)
    assert engine.coordinator.broadcaster.node_id == "node-7"
    assert engine.keys.superadmin("p") == "tenant-perms:sa:p"


def test_management_permission_from_settings():
    settings = PermissionSettings(_env_file=None, management_resource="access", management_action="admin")

    engine = build_permission_engine(settings)

    assert engine.validator.management_permission.code == "access:admin"


@pytest.mark.asyncio
async def test_provisioning_end_to_end(store):
    engine = build_permission_engine(PermissionSettings(_env_file=None), store=store)
    await engine.start()
    try:
        await engine.roles.provision_principal("P5", "T1")

        assert await engine.resolver.check_permission("P5", "T1", "documents", "read") is True
        assert await engine.resolver.check_permission("P5", "T1", "documents", "write") is False

        await engine.roles.assign_role("P5", "role-editor", "T1", granted_by="ADMIN")
        assert await engine.resolver.check_permission("P5", "T1", "documents", "write") is True
    finally:
        await engine.stop()


@pytest.mark.asyncio
async def test_stats(store):
    engine = build_permission_engine(PermissionSettings(_env_file=None), store=store)
    await engine.resolver.check_permission("P1", "T1", "documents", "read")

    stats = engine.stats()

    assert stats["cache"]["sets"] >= 1
    assert stats["invalidation"]["role_holder_lookup"] == "store"
