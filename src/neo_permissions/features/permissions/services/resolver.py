"""Permission resolution engine.

Answers "may principal P perform (resource, action) in tenant T, optionally
on instance I" as the union of the principal's role grants and direct
grants in that tenant. Decisions are cached in the tiered cache for no
longer than the grant behind them lasts; every failure resolves to a deny.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, TypeVar

from ....core.exceptions import (
    PermissionResolutionError,
    ResolutionTimeoutError,
    TenantContextMissingError,
)
from ...cache.services import PermissionCacheKeys, TieredPermissionCache
from ..entities import (
    DecisionReason,
    PermissionCheck,
    PermissionDecision,
    PermissionKey,
    PermissionStore,
)
from .boundary_validator import EntityBoundaryValidator, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PermissionResolver:
    """Resolves permission checks and effective permission sets."""

    def __init__(
        self,
        store: PermissionStore,
        cache: TieredPermissionCache,
        keys: PermissionCacheKeys,
        validator: Optional[EntityBoundaryValidator] = None,
        timeout_seconds: Optional[float] = 2.0,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.cache = cache
        self.keys = keys
        self.validator = validator or EntityBoundaryValidator(store, cache, keys, clock=clock)
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    async def _with_deadline(self, operation: Awaitable[T], timeout: Optional[float]) -> T:
        deadline = self.timeout_seconds if timeout is None else timeout
        if deadline is None or deadline <= 0:
            return await operation
        try:
            return await asyncio.wait_for(operation, deadline)
        except asyncio.TimeoutError:
            raise ResolutionTimeoutError(
                f"Permission resolution exceeded {deadline}s",
                details={"timeout_seconds": deadline}
            )

    # Single checks

    async def evaluate(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        resource: str,
        action: str,
        resource_instance_id: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        bypass_cache: bool = False
    ) -> PermissionDecision:
        """Resolve one check into a decision without raising resolution errors."""
        started = time.perf_counter()
        try:
            decision = await self._with_deadline(
                self._evaluate(principal_id, tenant_id, resource, action, resource_instance_id, bypass_cache),
                timeout
            )
        except PermissionResolutionError as e:
            logger.warning(
                f"Denying {resource}:{action} for {principal_id} in tenant {tenant_id}: "
                f"{e.error_code} {e.message}"
            )
            return PermissionDecision.denied_by(e)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"Permission {resource}:{action} for {principal_id}@{tenant_id} -> "
            f"{decision.allowed} ({decision.reason.value}, {elapsed_ms:.2f}ms)"
        )
        return decision

    async def check_permission(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        resource: str,
        action: str,
        resource_instance_id: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        bypass_cache: bool = False
    ) -> bool:
        """Return whether the action is allowed.

        Raises:
            PermissionResolutionError: when no decision could be reached
                (tenant missing, store unavailable, timeout); the caller
                must treat the raise as a deny.
        """
        decision = await self.evaluate(
            principal_id, tenant_id, resource, action, resource_instance_id,
            timeout=timeout, bypass_cache=bypass_cache
        )
        if decision.error is not None:
            raise decision.error
        return decision.allowed

    async def _evaluate(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        resource: str,
        action: str,
        resource_instance_id: Optional[str],
        bypass_cache: bool
    ) -> PermissionDecision:
        now = self._clock()
        generation = self.cache.generation()
        use_cache = not bypass_cache

        if await self.validator.is_superadmin(principal_id, now, use_cache=use_cache):
            return PermissionDecision(allowed=True, reason=DecisionReason.SUPERADMIN)

        if not tenant_id:
            raise TenantContextMissingError(
                "Tenant context is required for permission checks",
                details={"principal_id": principal_id, "permission": f"{resource}:{action}"}
            )

        if not await self.validator.has_membership(principal_id, tenant_id, use_cache=use_cache):
            return PermissionDecision(allowed=False, reason=DecisionReason.NOT_A_MEMBER)

        key = self.keys.decision(principal_id, tenant_id, resource, action, resource_instance_id)
        if use_cache:
            value, found = await self.cache.get(key)
            if found:
                return PermissionDecision(allowed=bool(value), reason=DecisionReason.CACHED, cached=True)

        match = await self.store.find_role_grant(principal_id, tenant_id, resource, action, now)
        if match is not None:
            decision = PermissionDecision(allowed=True, reason=DecisionReason.ROLE_GRANT)
        else:
            match = await self.store.find_direct_grant(
                principal_id, tenant_id, resource, action, resource_instance_id, now
            )
            if match is not None:
                decision = PermissionDecision(allowed=True, reason=DecisionReason.DIRECT_GRANT)
            else:
                decision = PermissionDecision(allowed=False, reason=DecisionReason.NO_GRANT)

        ttl = match.seconds_left(now) if match is not None else None
        await self.cache.set(key, decision.allowed, ttl=ttl, since=generation)
        return decision

    # Effective permissions

    async def get_effective_permissions(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        *,
        timeout: Optional[float] = None,
        bypass_cache: bool = False
    ) -> FrozenSet[PermissionKey]:
        """Permissions that apply to every instance for the principal in the tenant.

        A SuperAdmin receives every permission defined in the tenant; a
        non-member receives an empty set.
        """
        try:
            permissions, _ = await self._with_deadline(
                self._effective(principal_id, tenant_id, bypass_cache, self.cache.generation()),
                timeout
            )
            return permissions
        except PermissionResolutionError as e:
            logger.warning(
                f"Could not resolve effective permissions for {principal_id} in tenant {tenant_id}: "
                f"{e.error_code} {e.message}"
            )
            raise

    async def _effective(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        bypass_cache: bool,
        generation: int
    ) -> Tuple[FrozenSet[PermissionKey], Optional[float]]:
        """Return the effective set and how many seconds it holds for (None: no expiry)."""
        if not tenant_id:
            raise TenantContextMissingError(
                "Tenant context is required for effective permissions",
                details={"principal_id": principal_id}
            )
        now = self._clock()
        use_cache = not bypass_cache

        key = self.keys.effective(principal_id, tenant_id)
        if use_cache:
            value, found, remaining = await self.cache.get_with_ttl(key)
            if found:
                return frozenset(value), remaining

        if await self.validator.is_superadmin(principal_id, now, use_cache=use_cache):
            # Not cached: the catalogue applies only while the SuperAdmin flag does
            rows = await self.store.list_tenant_permissions(tenant_id)
            return frozenset(p.key for p in self.validator.filter_to_tenant(tenant_id, rows)), 0.0

        if await self.validator.has_membership(principal_id, tenant_id, use_cache=use_cache):
            effective = await self.store.list_effective_permissions(principal_id, tenant_id, now)
            ttl = effective.seconds_left(now)
        else:
            effective, ttl = [], None

        permissions = frozenset(p.key for p in self.validator.filter_to_tenant(tenant_id, effective))
        await self.cache.set(key, permissions, ttl=ttl, since=generation)
        return permissions, ttl

    # Batch checks

    async def check_many(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        checks: Iterable[PermissionCheck],
        *,
        timeout: Optional[float] = None,
        bypass_cache: bool = False
    ) -> Dict[PermissionCheck, bool]:
        """Resolve several checks for one principal/tenant pair.

        SuperAdmin and membership are evaluated once for the batch and all
        cache misses share a single effective-set lookup.

        Raises:
            PermissionResolutionError: as for ``check_permission``.
        """
        unique = list(dict.fromkeys(checks))
        try:
            return await self._with_deadline(
                self._check_many(principal_id, tenant_id, unique, bypass_cache),
                timeout
            )
        except PermissionResolutionError as e:
            logger.warning(
                f"Denying batch of {len(unique)} checks for {principal_id} in tenant {tenant_id}: "
                f"{e.error_code} {e.message}"
            )
            raise

    async def _check_many(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        checks: List[PermissionCheck],
        bypass_cache: bool
    ) -> Dict[PermissionCheck, bool]:
        now = self._clock()
        generation = self.cache.generation()
        use_cache = not bypass_cache

        if await self.validator.is_superadmin(principal_id, now, use_cache=use_cache):
            return {check: True for check in checks}
        if not tenant_id:
            raise TenantContextMissingError(
                "Tenant context is required for permission checks",
                details={"principal_id": principal_id}
            )
        if not await self.validator.has_membership(principal_id, tenant_id, use_cache=use_cache):
            return {check: False for check in checks}

        results: Dict[PermissionCheck, bool] = {}
        misses: List[PermissionCheck] = []
        for check in checks:
            if use_cache:
                value, found = await self.cache.get(self._decision_key(principal_id, tenant_id, check))
                if found:
                    results[check] = bool(value)
                    continue
            misses.append(check)

        if misses:
            effective, effective_ttl = await self._effective(principal_id, tenant_id, bypass_cache, generation)
            for check in misses:
                allowed = check.key in effective
                ttl = effective_ttl if allowed else None
                if not allowed and check.resource_instance_id is not None:
                    match = await self.store.find_direct_grant(
                        principal_id, tenant_id, check.resource, check.action,
                        check.resource_instance_id, now
                    )
                    allowed = match is not None
                    ttl = match.seconds_left(now) if match is not None else None
                results[check] = allowed
                await self.cache.set(
                    self._decision_key(principal_id, tenant_id, check), allowed, ttl=ttl, since=generation
                )
            logger.debug(f"Batch check resolved {len(misses)} of {len(checks)} checks from the store")

        return {check: results[check] for check in checks}

    def _decision_key(self, principal_id: str, tenant_id: str, check: PermissionCheck) -> str:
        return self.keys.decision(
            principal_id, tenant_id, check.resource, check.action, check.resource_instance_id
        )
