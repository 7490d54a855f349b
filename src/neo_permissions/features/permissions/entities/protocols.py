"""Protocol interfaces for the permissions feature.

Defines the Permission Store contract consumed by the resolution engine,
the boundary validator and role management. Implementations must raise
StoreUnavailableError when the underlying persistence cannot answer.
Grant lookups report when the answer stops holding so that callers can
bound how long they cache it.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Protocol, runtime_checkable, List, Optional, Tuple

from .tenant import Tenant, TenantMembership
from .role import Role
from .permission import Permission
from .assignment import RoleAssignment, RolePermission, DirectGrant, GrantMatch, EffectivePermissions


@runtime_checkable
class PermissionStore(Protocol):
    """Repository over tenants, roles, permissions and grants."""

    # Lookups

    @abstractmethod
    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        """Get a tenant by id."""
        ...

    @abstractmethod
    async def get_role(self, role_id: str) -> Optional[Role]:
        """Get a role by id."""
        ...

    @abstractmethod
    async def get_role_by_name(self, tenant_id: Optional[str], name: str) -> Optional[Role]:
        """Get a role by name within a tenant (None for system roles)."""
        ...

    @abstractmethod
    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        """Get a permission by id."""
        ...

    # Resolution queries

    @abstractmethod
    async def find_superadmin_grant(self, principal_id: str, at: datetime) -> Optional[GrantMatch]:
        """Find unexpired assignments of the SuperAdmin system role."""
        ...

    @abstractmethod
    async def has_membership(self, principal_id: str, tenant_id: str) -> bool:
        """Check for a membership row in an active tenant."""
        ...

    @abstractmethod
    async def find_role_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        at: datetime
    ) -> Optional[GrantMatch]:
        """Find unexpired role assignments carrying a matching permission."""
        ...

    @abstractmethod
    async def find_direct_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        resource_instance_id: Optional[str],
        at: datetime
    ) -> Optional[GrantMatch]:
        """Find unexpired direct grants for a matching permission.

        Grants with a null instance match any request; instance-scoped
        grants match only an equal ``resource_instance_id``.
        """
        ...

    @abstractmethod
    async def list_effective_permissions(
        self,
        principal_id: str,
        tenant_id: str,
        at: datetime
    ) -> EffectivePermissions:
        """List permissions granted for every instance of their resource."""
        ...

    @abstractmethod
    async def list_tenant_permissions(self, tenant_id: str) -> List[Permission]:
        """List every permission defined in a tenant."""
        ...

    @abstractmethod
    async def list_role_holders(self, role_id: str) -> List[Tuple[str, Optional[str]]]:
        """List ``(principal_id, tenant_id)`` pairs assigned to a role."""
        ...

    @abstractmethod
    async def list_tenant_members(self, tenant_id: str, limit: int = 100) -> List[str]:
        """List principal ids with a membership in a tenant."""
        ...

    # Mutations. Each call commits before returning.

    @abstractmethod
    async def add_membership(self, membership: TenantMembership) -> None:
        ...

    @abstractmethod
    async def remove_membership(self, principal_id: str, tenant_id: str) -> bool:
        ...

    @abstractmethod
    async def add_role_assignment(self, assignment: RoleAssignment) -> None:
        ...

    @abstractmethod
    async def remove_role_assignment(
        self,
        principal_id: str,
        role_id: str,
        tenant_id: Optional[str]
    ) -> bool:
        ...

    @abstractmethod
    async def add_role_permission(self, role_permission: RolePermission) -> None:
        ...

    @abstractmethod
    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        ...

    @abstractmethod
    async def add_direct_grant(self, grant: DirectGrant) -> None:
        ...

    @abstractmethod
    async def remove_direct_grant(
        self,
        principal_id: str,
        permission_id: str,
        tenant_id: str,
        resource_instance_id: Optional[str] = None
    ) -> bool:
        ...
