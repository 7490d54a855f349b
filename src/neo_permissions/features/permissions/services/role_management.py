"""Role, grant and membership mutations.

Every mutation validates tenant consistency against the store, optionally
authorizes the acting principal, writes through the store and only then
publishes the matching domain event. ``publish`` awaits the invalidation
coordinator, so when a mutation returns, this instance no longer serves
the old answer.
"""

import logging
from datetime import datetime
from typing import Optional

from ....config.constants import DefaultRoles
from ....core.exceptions import (
    AuthorizationError,
    EntityBoundaryViolationError,
    EntityNotFoundError,
    InvariantViolationError,
)
from ...events import DomainEventBus
from ..entities import (
    DirectGrant,
    DirectGrantChanged,
    Permission,
    PermissionStore,
    PrincipalProvisioned,
    Role,
    RoleAssignment,
    RoleAssignmentChanged,
    RolePermission,
    RolePermissionChanged,
    TenantMembership,
    TenantMembershipChanged,
)
from .boundary_validator import EntityBoundaryValidator

logger = logging.getLogger(__name__)


class RoleManagementService:
    """Write side of the permission model."""

    def __init__(
        self,
        store: PermissionStore,
        validator: EntityBoundaryValidator,
        event_bus: DomainEventBus,
        default_role_name: Optional[str] = DefaultRoles.MEMBER
    ):
        self.store = store
        self.validator = validator
        self.event_bus = event_bus
        self.default_role_name = default_role_name

    def register(self, bus: Optional[DomainEventBus] = None) -> None:
        """Handle ``PrincipalProvisioned`` events on ``bus`` (defaults to our own)."""
        (bus or self.event_bus).subscribe(PrincipalProvisioned, self.handle_principal_provisioned)

    # Lookups and guards

    async def _require_role(self, role_id: str) -> Role:
        role = await self.store.get_role(role_id)
        if role is None:
            raise EntityNotFoundError(f"Role {role_id} not found", details={"role_id": role_id})
        return role

    async def _require_permission(self, permission_id: str) -> Permission:
        permission = await self.store.get_permission(permission_id)
        if permission is None:
            raise EntityNotFoundError(
                f"Permission {permission_id} not found",
                details={"permission_id": permission_id}
            )
        return permission

    async def _require_tenant(self, tenant_id: str) -> None:
        if await self.store.get_tenant(tenant_id) is None:
            raise EntityNotFoundError(f"Tenant {tenant_id} not found", details={"tenant_id": tenant_id})

    async def _require_member(self, principal_id: str, tenant_id: str) -> None:
        if not await self.validator.validate_tenant_membership(principal_id, tenant_id, use_cache=False):
            raise EntityBoundaryViolationError(
                f"Principal {principal_id} is not a member of tenant {tenant_id}",
                details={"principal_id": principal_id, "tenant_id": tenant_id}
            )

    async def _authorize(
        self,
        granted_by: Optional[str],
        tenant_id: Optional[str],
        permission: Optional[Permission] = None
    ) -> None:
        if granted_by is None:
            return
        if tenant_id is None:
            if not await self.validator.is_superadmin(granted_by, use_cache=False):
                raise AuthorizationError(
                    "Only a SuperAdmin may manage system roles",
                    details={"grantor_id": granted_by}
                )
            return
        await self.validator.validate_grant(granted_by, tenant_id, permission)

    # Role assignments

    async def assign_role(
        self,
        principal_id: str,
        role_id: str,
        tenant_id: Optional[str],
        expires_at: Optional[datetime] = None,
        granted_by: Optional[str] = None
    ) -> RoleAssignment:
        """Assign a role; system roles take ``tenant_id=None``, tenant roles their own tenant."""
        role = await self._require_role(role_id)
        if role.is_system_role:
            if tenant_id is not None:
                raise InvariantViolationError(
                    f"System role {role.name} must be assigned without a tenant",
                    details={"role_id": role_id, "tenant_id": tenant_id}
                )
        else:
            if tenant_id is None:
                raise InvariantViolationError(
                    f"Tenant role {role.name} requires a tenant",
                    details={"role_id": role_id}
                )
            self.validator.ensure_tenant_scope(tenant_id, role)
            await self._require_member(principal_id, tenant_id)

        await self._authorize(granted_by, tenant_id)

        assignment = RoleAssignment(principal_id, role_id, tenant_id, expires_at)
        await self.store.add_role_assignment(assignment)
        logger.info(f"Assigned role {role.name} to {principal_id} in tenant {tenant_id}")
        await self.event_bus.publish(RoleAssignmentChanged(principal_id, tenant_id))
        return assignment

    async def revoke_role(
        self,
        principal_id: str,
        role_id: str,
        tenant_id: Optional[str],
        granted_by: Optional[str] = None
    ) -> bool:
        await self._authorize(granted_by, tenant_id)
        removed = await self.store.remove_role_assignment(principal_id, role_id, tenant_id)
        if removed:
            logger.info(f"Revoked role {role_id} from {principal_id} in tenant {tenant_id}")
            await self.event_bus.publish(RoleAssignmentChanged(principal_id, tenant_id))
        return removed

    # Direct grants

    async def grant_permission(
        self,
        principal_id: str,
        permission_id: str,
        tenant_id: str,
        resource_instance_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        granted_by: Optional[str] = None
    ) -> DirectGrant:
        permission = await self._require_permission(permission_id)
        self.validator.ensure_tenant_scope(tenant_id, permission)
        await self._require_member(principal_id, tenant_id)
        await self._authorize(granted_by, tenant_id, permission)

        grant = DirectGrant(principal_id, permission_id, tenant_id, resource_instance_id, expires_at)
        await self.store.add_direct_grant(grant)
        logger.info(
            f"Granted {permission.key} to {principal_id} in tenant {tenant_id}"
            + (f" on {resource_instance_id}" if resource_instance_id else "")
        )
        await self.event_bus.publish(DirectGrantChanged(principal_id, tenant_id))
        return grant

    async def revoke_permission(
        self,
        principal_id: str,
        permission_id: str,
        tenant_id: str,
        resource_instance_id: Optional[str] = None,
        granted_by: Optional[str] = None
    ) -> bool:
        await self._authorize(granted_by, tenant_id)
        removed = await self.store.remove_direct_grant(
            principal_id, permission_id, tenant_id, resource_instance_id
        )
        if removed:
            logger.info(f"Revoked permission {permission_id} from {principal_id} in tenant {tenant_id}")
            await self.event_bus.publish(DirectGrantChanged(principal_id, tenant_id))
        return removed

    # Role permissions

    async def add_role_permission(
        self,
        role_id: str,
        permission_id: str,
        granted_by: Optional[str] = None
    ) -> RolePermission:
        role = await self._require_role(role_id)
        permission = await self._require_permission(permission_id)
        self.validator.ensure_tenant_scope(permission.tenant_id, role)
        await self._authorize(granted_by, role.tenant_id, permission)

        role_permission = RolePermission(role_id, permission_id)
        await self.store.add_role_permission(role_permission)
        logger.info(f"Added {permission.key} to role {role.name}")
        await self.event_bus.publish(RolePermissionChanged(role_id, role.tenant_id))
        return role_permission

    async def remove_role_permission(
        self,
        role_id: str,
        permission_id: str,
        granted_by: Optional[str] = None
    ) -> bool:
        role = await self._require_role(role_id)
        await self._authorize(granted_by, role.tenant_id)
        removed = await self.store.remove_role_permission(role_id, permission_id)
        if removed:
            logger.info(f"Removed permission {permission_id} from role {role.name}")
            await self.event_bus.publish(RolePermissionChanged(role_id, role.tenant_id))
        return removed

    # Memberships

    async def add_membership(
        self,
        principal_id: str,
        tenant_id: str,
        is_primary: bool = False,
        granted_by: Optional[str] = None
    ) -> TenantMembership:
        await self._require_tenant(tenant_id)
        await self._authorize(granted_by, tenant_id)

        membership = TenantMembership(principal_id, tenant_id, is_primary)
        await self.store.add_membership(membership)
        logger.info(f"Added {principal_id} to tenant {tenant_id}")
        await self.event_bus.publish(TenantMembershipChanged(principal_id, tenant_id))
        return membership

    async def remove_membership(
        self,
        principal_id: str,
        tenant_id: str,
        granted_by: Optional[str] = None
    ) -> bool:
        await self._authorize(granted_by, tenant_id)
        removed = await self.store.remove_membership(principal_id, tenant_id)
        if removed:
            logger.info(f"Removed {principal_id} from tenant {tenant_id}")
            await self.event_bus.publish(TenantMembershipChanged(principal_id, tenant_id))
        return removed

    # Provisioning

    async def provision_principal(self, principal_id: str, tenant_id: str, is_primary: bool = True) -> None:
        """Announce a new principal in a tenant; handlers create membership and default role."""
        await self.event_bus.publish(PrincipalProvisioned(principal_id, tenant_id, is_primary))

    async def handle_principal_provisioned(self, event: PrincipalProvisioned) -> Optional[RoleAssignment]:
        """Ensure membership and assign the tenant's default role if one exists."""
        await self.add_membership(event.principal_id, event.tenant_id, event.is_primary)
        if not self.default_role_name:
            return None

        role = await self.store.get_role_by_name(event.tenant_id, self.default_role_name)
        if role is None:
            logger.debug(f"Tenant {event.tenant_id} has no default role {self.default_role_name}")
            return None
        return await self.assign_role(event.principal_id, role.id, event.tenant_id)
