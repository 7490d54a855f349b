"""In-memory PermissionStore implementation.

Used for embedded deployments and tests. Mirrors the relational store
semantics: uniqueness constraints are keyed the same way, expired rows
are ignored at query time, and an outage can be simulated by setting
``available`` to False.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from ....config.constants import SystemRoles
from ....core.exceptions import StoreUnavailableError, InvariantViolationError
from ..entities import (
    Tenant,
    TenantMembership,
    Role,
    Permission,
    RoleAssignment,
    RolePermission,
    DirectGrant,
    GrantMatch,
    EffectivePermissions,
)

logger = logging.getLogger(__name__)


class InMemoryPermissionStore:
    """Dictionary-backed permission store."""

    def __init__(
        self,
        superadmin_role_name: str = SystemRoles.SUPERADMIN,
        superadmin_role_id: Optional[str] = None,
        latency_seconds: float = 0.0
    ):
        self.superadmin_role_name = superadmin_role_name
        self.superadmin_role_id = superadmin_role_id
        self.latency_seconds = latency_seconds
        self.available = True
        self.query_count = 0

        self._tenants: Dict[str, Tenant] = {}
        self._roles: Dict[str, Role] = {}
        self._permissions: Dict[str, Permission] = {}
        self._memberships: Dict[Tuple[str, str], TenantMembership] = {}
        self._assignments: Dict[Tuple[str, str, Optional[str]], RoleAssignment] = {}
        self._role_permissions: Set[Tuple[str, str]] = set()
        self._grants: Dict[Tuple[str, str, str, Optional[str]], DirectGrant] = {}

    async def _enter(self) -> None:
        self.query_count += 1
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if not self.available:
            raise StoreUnavailableError("Permission store is unavailable")

    # Administrative seeding (tenants, roles and permissions are provisioned externally)

    def add_tenant(self, tenant: Tenant) -> Tenant:
        self._tenants[tenant.id] = tenant
        return tenant

    def add_role(self, role: Role) -> Role:
        for existing in self._roles.values():
            if existing.id != role.id and existing.tenant_id == role.tenant_id and existing.name == role.name:
                raise InvariantViolationError(f"Role name {role.name} already exists in tenant {role.tenant_id}")
        self._roles[role.id] = role
        return role

    def add_permission(self, permission: Permission) -> Permission:
        for existing in self._permissions.values():
            if (existing.id != permission.id
                    and existing.tenant_id == permission.tenant_id
                    and existing.key == permission.key):
                raise InvariantViolationError(
                    f"Permission {permission.key} already exists in tenant {permission.tenant_id}"
                )
        self._permissions[permission.id] = permission
        return permission

    # Lookups

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        await self._enter()
        return self._tenants.get(tenant_id)

    async def get_role(self, role_id: str) -> Optional[Role]:
        await self._enter()
        return self._roles.get(role_id)

    async def get_role_by_name(self, tenant_id: Optional[str], name: str) -> Optional[Role]:
        await self._enter()
        for role in self._roles.values():
            if role.tenant_id == tenant_id and role.name == name:
                return role
        return None

    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        await self._enter()
        return self._permissions.get(permission_id)

    # Resolution queries

    def _is_superadmin_role(self, role: Optional[Role]) -> bool:
        if role is None or not role.is_system_role:
            return False
        if self.superadmin_role_id is not None:
            return role.id == self.superadmin_role_id
        return role.name == self.superadmin_role_name

    async def find_superadmin_grant(self, principal_id: str, at: datetime) -> Optional[GrantMatch]:
        await self._enter()
        return GrantMatch.from_expiries(
            assignment.expires_at
            for assignment in self._assignments.values()
            if assignment.principal_id == principal_id
            and assignment.is_active(at)
            and self._is_superadmin_role(self._roles.get(assignment.role_id))
        )

    async def has_membership(self, principal_id: str, tenant_id: str) -> bool:
        await self._enter()
        tenant = self._tenants.get(tenant_id)
        if tenant is None or not tenant.is_active:
            return False
        return (principal_id, tenant_id) in self._memberships

    def _role_permissions_for(
        self,
        principal_id: str,
        tenant_id: str,
        at: datetime
    ) -> List[Tuple[Permission, Optional[datetime]]]:
        """Permissions reachable through active assignments, with each assignment's expiry."""
        assignments = [
            assignment
            for assignment in self._assignments.values()
            if assignment.principal_id == principal_id
            and assignment.tenant_id == tenant_id
            and assignment.is_active(at)
        ]
        return [
            (self._permissions[permission_id], assignment.expires_at)
            for assignment in assignments
            for role_id, permission_id in self._role_permissions
            if role_id == assignment.role_id
            and permission_id in self._permissions
            and self._permissions[permission_id].tenant_id == tenant_id
        ]

    def _direct_grants_for(self, principal_id: str, tenant_id: str, at: datetime) -> List[Tuple[DirectGrant, Permission]]:
        matches = []
        for grant in self._grants.values():
            if grant.principal_id != principal_id or grant.tenant_id != tenant_id or not grant.is_active(at):
                continue
            permission = self._permissions.get(grant.permission_id)
            if permission is not None and permission.tenant_id == tenant_id:
                matches.append((grant, permission))
        return matches

    async def find_role_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        at: datetime
    ) -> Optional[GrantMatch]:
        await self._enter()
        return GrantMatch.from_expiries(
            expires_at
            for permission, expires_at in self._role_permissions_for(principal_id, tenant_id, at)
            if permission.resource == resource and permission.action == action
        )

    async def find_direct_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        resource_instance_id: Optional[str],
        at: datetime
    ) -> Optional[GrantMatch]:
        await self._enter()
        return GrantMatch.from_expiries(
            grant.expires_at
            for grant, permission in self._direct_grants_for(principal_id, tenant_id, at)
            if permission.resource == resource
            and permission.action == action
            and grant.matches_instance(resource_instance_id)
        )

    async def list_effective_permissions(
        self,
        principal_id: str,
        tenant_id: str,
        at: datetime
    ) -> EffectivePermissions:
        await self._enter()
        rows = self._role_permissions_for(principal_id, tenant_id, at)
        rows.extend(
            (permission, grant.expires_at)
            for grant, permission in self._direct_grants_for(principal_id, tenant_id, at)
            if grant.resource_instance_id is None
        )
        return EffectivePermissions.collect(rows)

    async def list_tenant_permissions(self, tenant_id: str) -> List[Permission]:
        await self._enter()
        return [p for p in self._permissions.values() if p.tenant_id == tenant_id]

    async def list_role_holders(self, role_id: str) -> List[Tuple[str, Optional[str]]]:
        await self._enter()
        return sorted(
            {(a.principal_id, a.tenant_id) for a in self._assignments.values() if a.role_id == role_id},
            key=lambda pair: (pair[0], pair[1] or "")
        )

    async def list_tenant_members(self, tenant_id: str, limit: int = 100) -> List[str]:
        await self._enter()
        members = sorted(p for (p, t) in self._memberships if t == tenant_id)
        return members[:limit]

    # Mutations

    async def add_membership(self, membership: TenantMembership) -> None:
        await self._enter()
        self._memberships[(membership.principal_id, membership.tenant_id)] = membership

    async def remove_membership(self, principal_id: str, tenant_id: str) -> bool:
        await self._enter()
        return self._memberships.pop((principal_id, tenant_id), None) is not None

    async def add_role_assignment(self, assignment: RoleAssignment) -> None:
        await self._enter()
        key = (assignment.principal_id, assignment.role_id, assignment.tenant_id)
        self._assignments[key] = assignment

    async def remove_role_assignment(
        self,
        principal_id: str,
        role_id: str,
        tenant_id: Optional[str]
    ) -> bool:
        await self._enter()
        return self._assignments.pop((principal_id, role_id, tenant_id), None) is not None

    async def add_role_permission(self, role_permission: RolePermission) -> None:
        await self._enter()
        self._role_permissions.add((role_permission.role_id, role_permission.permission_id))

    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        await self._enter()
        key = (role_id, permission_id)
        if key in self._role_permissions:
            self._role_permissions.discard(key)
            return True
        return False

    async def add_direct_grant(self, grant: DirectGrant) -> None:
        await self._enter()
        key = (grant.principal_id, grant.permission_id, grant.tenant_id, grant.resource_instance_id)
        self._grants[key] = grant

    async def remove_direct_grant(
        self,
        principal_id: str,
        permission_id: str,
        tenant_id: str,
        resource_instance_id: Optional[str] = None
    ) -> bool:
        await self._enter()
        key = (principal_id, permission_id, tenant_id, resource_instance_id)
        return self._grants.pop(key, None) is not None
