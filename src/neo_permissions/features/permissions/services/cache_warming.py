"""Cache warming for permission data.

Pre-resolves effective permission sets, and the single-permission
decisions they imply, for known principal/tenant pairs so that the first
real checks hit the cache. Failures are recorded per pair and never
raised.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..entities import PermissionCheck, PermissionStore
from .resolver import PermissionResolver

logger = logging.getLogger(__name__)


@dataclass
class WarmingResult:
    """Outcome of one warming run."""

    items_warmed: int = 0
    pairs_warmed: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


class CacheWarmingService:
    """Warms the permission cache with bounded concurrency."""

    def __init__(
        self,
        resolver: PermissionResolver,
        store: Optional[PermissionStore] = None,
        default_concurrency: int = 8
    ):
        self.resolver = resolver
        self.store = store or resolver.store
        self.default_concurrency = default_concurrency
        self.is_warming = False
        self.last_result: Optional[WarmingResult] = None

    async def _warm_pair(self, principal_id: str, tenant_id: str) -> int:
        permissions = await self.resolver.get_effective_permissions(principal_id, tenant_id)
        if permissions:
            await self.resolver.check_many(
                principal_id,
                tenant_id,
                [PermissionCheck(key.resource, key.action) for key in sorted(permissions)]
            )
        return 1 + len(permissions)

    async def warm(
        self,
        pairs: Iterable[Tuple[str, str]],
        concurrency: Optional[int] = None
    ) -> WarmingResult:
        """Warm the cache for each ``(principal_id, tenant_id)`` pair."""
        started = time.perf_counter()
        result = WarmingResult()
        semaphore = asyncio.Semaphore(max(1, concurrency or self.default_concurrency))

        async def run(principal_id: str, tenant_id: str) -> None:
            async with semaphore:
                try:
                    result.items_warmed += await self._warm_pair(principal_id, tenant_id)
                    result.pairs_warmed += 1
                except Exception as e:
                    logger.error(f"Cache warming failed for {principal_id} in tenant {tenant_id}: {e}")
                    result.errors.append(f"{principal_id}@{tenant_id}: {e}")

        self.is_warming = True
        try:
            await asyncio.gather(*(run(p, t) for p, t in dict.fromkeys(pairs)))
        finally:
            self.is_warming = False

        result.duration_ms = (time.perf_counter() - started) * 1000
        self.last_result = result
        logger.info(
            f"Cache warming finished: {result.pairs_warmed} pairs, {result.items_warmed} items, "
            f"{len(result.errors)} errors in {result.duration_ms:.1f}ms"
        )
        return result

    async def warm_tenant(
        self,
        tenant_id: str,
        limit: int = 100,
        concurrency: Optional[int] = None
    ) -> WarmingResult:
        """Warm up to ``limit`` members of a tenant."""
        try:
            members = await self.store.list_tenant_members(tenant_id, limit=limit)
        except Exception as e:
            logger.error(f"Cannot list members of tenant {tenant_id} for warming: {e}")
            return WarmingResult(errors=[f"{tenant_id}: {e}"])
        return await self.warm(((member, tenant_id) for member in members), concurrency)
