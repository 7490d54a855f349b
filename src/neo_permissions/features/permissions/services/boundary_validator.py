"""Tenant boundary validation.

Answers "may this principal act inside this tenant at all" and guards
against data from one tenant leaking into another. Mutation-time checks
(``use_cache=False`` and ``validate_grant``) always read the store.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from ....config.constants import ManagementPermission
from ....core.exceptions import (
    AuthorizationError,
    EntityBoundaryViolationError,
    TenantContextMissingError,
)
from ...cache.services import PermissionCacheKeys, TieredPermissionCache
from ..entities import Permission, PermissionKey, PermissionStore, Role

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntityBoundaryValidator:
    """Membership, SuperAdmin and cross-tenant checks."""

    def __init__(
        self,
        store: PermissionStore,
        cache: TieredPermissionCache,
        keys: PermissionCacheKeys,
        management_permission: Optional[PermissionKey] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.cache = cache
        self.keys = keys
        self.management_permission = management_permission or PermissionKey(
            ManagementPermission.RESOURCE, ManagementPermission.ACTION
        )
        self._clock = clock

    async def is_superadmin(
        self,
        principal_id: str,
        at: Optional[datetime] = None,
        use_cache: bool = True
    ) -> bool:
        """Check for an unexpired SuperAdmin assignment.

        The answer (either way) is cached under the principal-only key; a
        positive answer is cached no longer than the assignment lasts.
        """
        key = self.keys.superadmin(principal_id)
        if use_cache:
            value, found = await self.cache.get(key)
            if found:
                return bool(value)
        now = at or self._clock()
        generation = self.cache.generation()
        match = await self.store.find_superadmin_grant(principal_id, now)
        ttl = match.seconds_left(now) if match is not None else None
        await self.cache.set(key, match is not None, ttl=ttl, since=generation)
        return match is not None

    async def has_membership(
        self,
        principal_id: str,
        tenant_id: str,
        use_cache: bool = True
    ) -> bool:
        """Membership row lookup only (no SuperAdmin override)."""
        key = self.keys.membership(principal_id, tenant_id)
        if use_cache:
            value, found = await self.cache.get(key)
            if found:
                return bool(value)
        generation = self.cache.generation()
        result = await self.store.has_membership(principal_id, tenant_id)
        await self.cache.set(key, result, since=generation)
        return result

    async def validate_tenant_membership(
        self,
        principal_id: str,
        tenant_id: Optional[str],
        use_cache: bool = True
    ) -> bool:
        """True if the principal is a member of the tenant or holds SuperAdmin.

        Raises:
            TenantContextMissingError: if ``tenant_id`` is empty and the
                principal is not SuperAdmin
        """
        if await self.is_superadmin(principal_id, use_cache=use_cache):
            return True
        if not tenant_id:
            raise TenantContextMissingError(
                "Tenant context is required",
                details={"principal_id": principal_id}
            )
        return await self.has_membership(principal_id, tenant_id, use_cache=use_cache)

    def ensure_tenant_scope(self, tenant_id: str, *entities) -> None:
        """Raise if any role or permission belongs to a tenant other than ``tenant_id``.

        A tenant-less entity is accepted only when it is a system role.
        """
        for entity in entities:
            if entity is None:
                continue
            entity_tenant = getattr(entity, "tenant_id", None)
            if entity_tenant is None and isinstance(entity, Role) and entity.is_system_role:
                continue
            if entity_tenant != tenant_id:
                logger.error(
                    f"Tenant boundary violation: {type(entity).__name__} "
                    f"{getattr(entity, 'id', '?')} belongs to {entity_tenant}, not {tenant_id}"
                )
                raise EntityBoundaryViolationError(
                    f"{type(entity).__name__} does not belong to tenant {tenant_id}",
                    details={
                        "entity_id": getattr(entity, "id", None),
                        "entity_tenant_id": entity_tenant,
                        "tenant_id": tenant_id,
                    }
                )

    def filter_to_tenant(self, tenant_id: str, permissions: Iterable[Permission]) -> List[Permission]:
        """Drop rows from other tenants, logging each one."""
        scoped = []
        for permission in permissions:
            if permission.tenant_id != tenant_id:
                logger.error(
                    f"Store returned permission {permission.id} of tenant "
                    f"{permission.tenant_id} while resolving tenant {tenant_id}"
                )
                continue
            scoped.append(permission)
        return scoped

    async def can_grant(self, grantor_id: str, tenant_id: str, permission: Optional[Permission] = None) -> bool:
        """Whether ``grantor_id`` may change role/grant data in ``tenant_id``."""
        now = self._clock()
        if await self.is_superadmin(grantor_id, now, use_cache=False):
            return True
        if permission is not None and permission.tenant_id != tenant_id:
            return False
        if not await self.has_membership(grantor_id, tenant_id, use_cache=False):
            return False
        required = self.management_permission
        match = await self.store.find_role_grant(grantor_id, tenant_id, required.resource, required.action, now)
        if match is not None:
            return True
        match = await self.store.find_direct_grant(
            grantor_id, tenant_id, required.resource, required.action, None, now
        )
        return match is not None

    async def validate_grant(self, grantor_id: str, tenant_id: str, permission: Optional[Permission] = None) -> None:
        """Raise ``AuthorizationError`` unless ``grantor_id`` may grant in ``tenant_id``."""
        if not await self.can_grant(grantor_id, tenant_id, permission):
            logger.warning(f"Principal {grantor_id} is not allowed to manage access in tenant {tenant_id}")
            raise AuthorizationError(
                f"Principal {grantor_id} cannot manage roles or grants in tenant {tenant_id}",
                details={
                    "grantor_id": grantor_id,
                    "tenant_id": tenant_id,
                    "required_permission": self.management_permission.code,
                }
            )
