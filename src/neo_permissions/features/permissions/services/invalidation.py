"""Cache invalidation driven by permission domain events.

The coordinator is subscribed to the domain event bus, which role
management publishes to only after a store write has committed. Local and
shared tiers are invalidated before ``publish`` returns; peers learn about
it through the optional broadcaster and evict their local tier.
"""

import logging
from typing import Any, Dict, Optional

from ....core.exceptions import CacheError, PermissionResolutionError
from ...cache.entities import InvalidationBroadcaster
from ...cache.services import PermissionCacheKeys, TieredPermissionCache
from ...events import DomainEventBus
from ..entities import (
    DirectGrantChanged,
    PermissionStore,
    PrincipalProvisioned,
    RoleAssignmentChanged,
    RolePermissionChanged,
    TenantMembershipChanged,
)

logger = logging.getLogger(__name__)


class InvalidationCoordinator:
    """Maps domain events to cache evictions."""

    def __init__(
        self,
        cache: TieredPermissionCache,
        keys: PermissionCacheKeys,
        store: Optional[PermissionStore] = None,
        broadcaster: Optional[InvalidationBroadcaster] = None
    ):
        self.cache = cache
        self.keys = keys
        self.store = store
        self.broadcaster = broadcaster
        self.broadcast_failures = 0

    def register(self, bus: DomainEventBus) -> None:
        """Subscribe the coordinator's handlers to ``bus``."""
        bus.subscribe(RoleAssignmentChanged, self.on_role_assignment_changed)
        bus.subscribe(DirectGrantChanged, self.on_pair_changed)
        bus.subscribe(TenantMembershipChanged, self.on_pair_changed)
        bus.subscribe(PrincipalProvisioned, self.on_pair_changed)
        bus.subscribe(RolePermissionChanged, self.on_role_permission_changed)

    # Event handlers

    async def on_role_assignment_changed(self, event: RoleAssignmentChanged) -> None:
        await self.invalidate_principal(event.principal_id, event.tenant_id)

    async def on_pair_changed(self, event) -> None:
        await self.invalidate_principal(event.principal_id, event.tenant_id)

    async def on_role_permission_changed(self, event: RolePermissionChanged) -> None:
        """Invalidate every current holder of the role, or everything if holders are unknown."""
        holders = None
        if self.store is not None:
            try:
                holders = await self.store.list_role_holders(event.role_id)
            except PermissionResolutionError as e:
                logger.error(f"Role holder lookup for {event.role_id} failed, flushing permission cache: {e}")
        if holders is None:
            await self.flush()
            return

        for principal_id, tenant_id in holders:
            await self.invalidate_principal(principal_id, tenant_id)
        logger.info(f"Invalidated {len(holders)} holders of role {event.role_id}")

    # Invalidation primitives

    async def invalidate_principal(self, principal_id: str, tenant_id: Optional[str] = None) -> int:
        """Evict a principal's entries for one tenant, or for every tenant when ``tenant_id`` is None.

        The principal's SuperAdmin flag is always evicted.
        """
        if tenant_id:
            prefix = self.keys.principal_tenant_prefix(principal_id, tenant_id)
        else:
            prefix = self.keys.principal_prefix(principal_id)
        superadmin_key = self.keys.superadmin(principal_id)

        removed = await self.cache.invalidate_prefix(prefix)
        await self.cache.delete(superadmin_key)

        await self._broadcast(prefix=prefix)
        await self._broadcast(key=superadmin_key)
        logger.debug(f"Invalidated principal {principal_id} (tenant={tenant_id}): {removed} entries")
        return removed

    async def flush(self) -> None:
        """Drop every cached permission entry on this and peer instances."""
        await self.cache.clear()
        await self._broadcast(flush=True)
        logger.warning("Permission cache flushed")

    async def _broadcast(
        self,
        prefix: Optional[str] = None,
        key: Optional[str] = None,
        flush: bool = False
    ) -> None:
        if self.broadcaster is None:
            return
        try:
            if flush:
                await self.broadcaster.publish_flush()
            elif prefix is not None:
                await self.broadcaster.publish_prefix(prefix)
            elif key is not None:
                await self.broadcaster.publish_key(key)
        except CacheError as e:
            # Local tiers are already invalidated; peers converge when their local TTL lapses
            self.broadcast_failures += 1
            logger.error(f"Failed to broadcast invalidation to peers: {e}")

    # Peer messages

    async def apply_peer_message(self, message: Dict[str, Any]) -> None:
        """Evict the local tier for an invalidation published by another instance."""
        op = message.get("op")
        if op == "prefix":
            await self.cache.invalidate_local_prefix(message["prefix"])
        elif op == "key":
            await self.cache.delete_local(message["key"])
        elif op == "flush":
            await self.cache.clear_local()
        else:
            logger.error(f"Ignoring peer invalidation with unknown op: {op}")

    async def start(self) -> None:
        if self.broadcaster is None:
            return
        try:
            await self.broadcaster.start(self.apply_peer_message, on_resync=self.resync)
        except CacheError as e:
            logger.error(f"Peer invalidation listener not started, relying on local TTL: {e}")

    async def resync(self) -> None:
        """Drop the local tier after peer messages may have been missed."""
        await self.cache.clear_local()
        logger.warning("Peer invalidations may have been missed, local permission cache cleared")

    async def stop(self) -> None:
        if self.broadcaster is not None:
            await self.broadcaster.stop()

    def info(self) -> Dict[str, Any]:
        return {
            "broadcast": self.broadcaster is not None,
            "node_id": getattr(self.broadcaster, "node_id", None),
            "listening": getattr(self.broadcaster, "is_listening", False),
            "reconnects": getattr(self.broadcaster, "reconnects", 0),
            "broadcast_failures": self.broadcast_failures,
            "role_holder_lookup": "store" if self.store is not None else "flush",
        }
