"""Composition root for the permission engine.

``build_permission_engine`` wires store, cache tiers, resolver,
invalidation and management services from ``PermissionSettings``. No
module-level singletons are kept: callers hold the returned engine and
pass its parts where they are needed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .config import PermissionSettings, get_settings
from .config.constants import ManagementPermission
from .features.cache import (
    LocalCacheConfig,
    MemoryCacheAdapter,
    PermissionCacheKeys,
    RedisCacheAdapter,
    RedisInvalidationBroadcaster,
    SharedCacheConfig,
    TieredCacheConfig,
    TieredPermissionCache,
)
from .features.cache.entities import InvalidationBroadcaster
from .features.events import DomainEventBus
from .features.permissions import (
    AsyncPGPermissionStore,
    CacheWarmingService,
    EntityBoundaryValidator,
    InMemoryPermissionStore,
    InvalidationCoordinator,
    PermissionCacheCodec,
    PermissionKey,
    PermissionResolver,
    PermissionStore,
    RoleManagementService,
)

logger = logging.getLogger(__name__)


@dataclass
class PermissionEngine:
    """Every collaborator of a running permission engine."""

    settings: PermissionSettings
    store: PermissionStore
    cache: TieredPermissionCache
    keys: PermissionCacheKeys
    validator: EntityBoundaryValidator
    resolver: PermissionResolver
    coordinator: InvalidationCoordinator
    roles: RoleManagementService
    warming: CacheWarmingService
    event_bus: DomainEventBus = field(default_factory=DomainEventBus)

    async def start(self) -> None:
        """Open connections and start listening for peer invalidations."""
        connect = getattr(self.store, "connect", None)
        if connect is not None:
            await connect()
        await self.cache.connect()
        await self.coordinator.start()
        logger.info("Permission engine started")

    async def stop(self) -> None:
        await self.coordinator.stop()
        await self.cache.disconnect()
        disconnect = getattr(self.store, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("Permission engine stopped")

    def stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.stats().to_dict(),
            "invalidation": self.coordinator.info(),
        }


def build_permission_engine(
    settings: Optional[PermissionSettings] = None,
    store: Optional[PermissionStore] = None,
    shared_tier: Optional[RedisCacheAdapter] = None,
    broadcaster: Optional[InvalidationBroadcaster] = None
) -> PermissionEngine:
    """Wire a permission engine.

    Args:
        settings: Engine settings; defaults to ``get_settings()``
        store: Store override; otherwise asyncpg when ``database_url`` is
            set, else an empty in-memory store
        shared_tier: Shared cache tier override; otherwise Redis when
            ``redis_url`` is set
        broadcaster: Peer invalidation override; otherwise Redis pub/sub
            when ``redis_url`` is set

    Returns:
        A PermissionEngine whose ``start()`` must be awaited before use
        with network-backed components.
    """
    settings = settings or get_settings()

    if store is None:
        if settings.is_store_configured:
            store = AsyncPGPermissionStore.from_settings(settings)
        else:
            logger.warning("No database_url configured, using in-memory permission store")
            store = InMemoryPermissionStore(
                superadmin_role_name=settings.superadmin_role_name,
                superadmin_role_id=settings.superadmin_role_id,
            )

    keys = PermissionCacheKeys(settings.cache_namespace)
    local = MemoryCacheAdapter(LocalCacheConfig(
        max_entries=settings.cache_local_max_entries,
        shard_count=settings.cache_local_shards,
        default_ttl=settings.cache_local_ttl_seconds,
    ))

    if shared_tier is None and settings.is_shared_cache_enabled:
        shared_tier = RedisCacheAdapter(
            SharedCacheConfig(
                url=str(settings.redis_url),
                default_ttl=settings.cache_shared_ttl_seconds,
                namespace=settings.cache_namespace,
                socket_timeout=settings.redis_socket_timeout_seconds,
            ),
            serializer=PermissionCacheCodec(),
        )
    if broadcaster is None and settings.is_shared_cache_enabled:
        broadcaster = RedisInvalidationBroadcaster(
            url=str(settings.redis_url),
            channel=settings.invalidation_channel,
            node_id=settings.node_id,
            retry_max_delay=settings.invalidation_retry_max_seconds,
        )

    cache = TieredPermissionCache(
        local,
        shared_tier,
        TieredCacheConfig(
            local_ttl=settings.cache_local_ttl_seconds,
            shared_ttl=settings.cache_shared_ttl_seconds,
        ),
    )

    management = PermissionKey(
        settings.management_resource or ManagementPermission.RESOURCE,
        settings.management_action or ManagementPermission.ACTION,
    )
    validator = EntityBoundaryValidator(store, cache, keys, management_permission=management)
    resolver = PermissionResolver(
        store, cache, keys, validator,
        timeout_seconds=settings.resolution_timeout_seconds,
    )

    event_bus = DomainEventBus()
    coordinator = InvalidationCoordinator(cache, keys, store=store, broadcaster=broadcaster)
    roles = RoleManagementService(store, validator, event_bus, default_role_name=settings.default_role_name)
    # Provisioning writes run before the provisioning event's own invalidation
    roles.register(event_bus)
    coordinator.register(event_bus)

    warming = CacheWarmingService(resolver, store)

    logger.info(
        f"Permission engine built: store={type(store).__name__}, "
        f"shared_cache={shared_tier is not None}, broadcast={broadcaster is not None}"
    )
    return PermissionEngine(
        settings=settings,
        store=store,
        cache=cache,
        keys=keys,
        validator=validator,
        resolver=resolver,
        coordinator=coordinator,
        roles=roles,
        warming=warming,
        event_bus=event_bus,
    )
