"""AsyncPG-based PermissionStore implementation.

Every query is a single bounded attempt: it is wrapped in
``asyncio.wait_for`` with the configured store timeout and any database,
network or timeout failure is raised as StoreUnavailableError. Retrying
is left to the caller.
"""

import asyncio
import logging
from datetime import datetime
from importlib import resources
from typing import Any, List, Optional, Tuple

import asyncpg

from ....config.constants import SystemRoles, TenantStatus
from ....core.exceptions import StoreUnavailableError
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


# A match holds until its longest-lived row lapses; NULL when any row never expires
_MATCH_EXPIRY = """
    SELECT count(*) AS matches,
           CASE WHEN bool_or(expires_at IS NULL) THEN NULL ELSE max(expires_at) END AS expires_at
    FROM ({rows}) AS matched
"""

_SUPERADMIN_BY_ID = _MATCH_EXPIRY.format(rows="""
    SELECT ur.expires_at
    FROM user_roles ur
    JOIN roles r ON r.id = ur.role_id
    WHERE ur.principal_id = $1
    AND r.is_system_role = true
    AND r.id = $2
    AND (ur.expires_at IS NULL OR ur.expires_at > $3)
""")

_SUPERADMIN_BY_NAME = _MATCH_EXPIRY.format(rows="""
    SELECT ur.expires_at
    FROM user_roles ur
    JOIN roles r ON r.id = ur.role_id
    WHERE ur.principal_id = $1
    AND r.is_system_role = true
    AND r.name = $2
    AND (ur.expires_at IS NULL OR ur.expires_at > $3)
""")

_ROLE_GRANT = _MATCH_EXPIRY.format(rows="""
    SELECT ur.expires_at
    FROM user_roles ur
    JOIN role_permissions rp ON rp.role_id = ur.role_id
    JOIN permissions p ON p.id = rp.permission_id
    WHERE ur.principal_id = $1
    AND ur.tenant_id = $2
    AND p.tenant_id = $2
    AND p.resource = $3
    AND p.action = $4
    AND (ur.expires_at IS NULL OR ur.expires_at > $5)
""")

_DIRECT_GRANT = _MATCH_EXPIRY.format(rows="""
    SELECT up.expires_at
    FROM user_permissions up
    JOIN permissions p ON p.id = up.permission_id
    WHERE up.principal_id = $1
    AND up.tenant_id = $2
    AND p.tenant_id = $2
    AND p.resource = $3
    AND p.action = $4
    AND (up.resource_instance_id IS NULL OR up.resource_instance_id = $5)
    AND (up.expires_at IS NULL OR up.expires_at > $6)
""")


class AsyncPGPermissionStore:
    """High-performance permission store using an asyncpg pool."""

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool: Optional[asyncpg.Pool] = None,
        superadmin_role_name: str = SystemRoles.SUPERADMIN,
        superadmin_role_id: Optional[str] = None,
        timeout_seconds: float = 1.0,
        min_size: int = 2,
        max_size: int = 20
    ):
        self.dsn = dsn
        self._pool = pool
        self.superadmin_role_name = superadmin_role_name
        self.superadmin_role_id = superadmin_role_id
        self.timeout_seconds = timeout_seconds
        self.min_size = min_size
        self.max_size = max_size
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "AsyncPGPermissionStore":
        """Build a store from PermissionSettings."""
        return cls(
            dsn=str(settings.database_url),
            superadmin_role_name=settings.superadmin_role_name,
            superadmin_role_id=settings.superadmin_role_id,
            timeout_seconds=settings.store_timeout_seconds,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )

    async def connect(self) -> None:
        """Create the connection pool if it does not exist yet."""
        if self._pool is not None:
            return
        async with self._lock:
            if self._pool is None:  # Double-check
                try:
                    self._pool = await asyncpg.create_pool(
                        dsn=self.dsn,
                        min_size=self.min_size,
                        max_size=self.max_size,
                        timeout=self.timeout_seconds,
                    )
                except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
                    raise StoreUnavailableError(f"Failed to create permission store pool: {e}")
                logger.info(f"Permission store pool created: min={self.min_size}, max={self.max_size}")

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def apply_schema(self) -> None:
        """Create the permission tables if they do not exist."""
        ddl = resources.files(__package__).joinpath("schema.sql").read_text(encoding="utf-8")
        await self._run("execute", ddl)

    async def _run(self, method: str, query: str, *args: Any) -> Any:
        """Run one pool method as a single bounded attempt."""
        if self._pool is None:
            await self.connect()
        try:
            return await asyncio.wait_for(
                getattr(self._pool, method)(query, *args),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            raise StoreUnavailableError(
                f"Permission store query timed out after {self.timeout_seconds}s",
                details={"timeout_seconds": self.timeout_seconds}
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Permission store query failed: {e}")
            raise StoreUnavailableError(f"Permission store query failed: {e}")

    @staticmethod
    def _role_from_row(row: asyncpg.Record) -> Role:
        return Role(
            id=row['id'],
            tenant_id=row['tenant_id'],
            name=row['name'],
            is_system_role=row['is_system_role'],
        )

    @staticmethod
    def _permission_from_row(row: asyncpg.Record) -> Permission:
        return Permission(
            id=row['id'],
            tenant_id=row['tenant_id'],
            resource=row['resource'],
            action=row['action'],
        )

    @staticmethod
    def _match_from_row(row: Optional[asyncpg.Record]) -> Optional[GrantMatch]:
        if row is None or not row['matches']:
            return None
        return GrantMatch(expires_at=row['expires_at'])

    # Lookups

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        row = await self._run("fetchrow", "SELECT id, name, status FROM tenants WHERE id = $1", tenant_id)
        if row is None:
            return None
        return Tenant(id=row['id'], name=row['name'], status=TenantStatus(row['status']))

    async def get_role(self, role_id: str) -> Optional[Role]:
        row = await self._run(
            "fetchrow",
            "SELECT id, tenant_id, name, is_system_role FROM roles WHERE id = $1",
            role_id
        )
        return self._role_from_row(row) if row else None

    async def get_role_by_name(self, tenant_id: Optional[str], name: str) -> Optional[Role]:
        row = await self._run(
            "fetchrow",
            """
            SELECT id, tenant_id, name, is_system_role FROM roles
            WHERE tenant_id IS NOT DISTINCT FROM $1 AND name = $2
            """,
            tenant_id, name
        )
        return self._role_from_row(row) if row else None

    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        row = await self._run(
            "fetchrow",
            "SELECT id, tenant_id, resource, action FROM permissions WHERE id = $1",
            permission_id
        )
        return self._permission_from_row(row) if row else None

    # Resolution queries

    async def find_superadmin_grant(self, principal_id: str, at: datetime) -> Optional[GrantMatch]:
        if self.superadmin_role_id is not None:
            row = await self._run("fetchrow", _SUPERADMIN_BY_ID, principal_id, self.superadmin_role_id, at)
        else:
            row = await self._run("fetchrow", _SUPERADMIN_BY_NAME, principal_id, self.superadmin_role_name, at)
        return self._match_from_row(row)

    async def has_membership(self, principal_id: str, tenant_id: str) -> bool:
        query = """
            SELECT EXISTS (
                SELECT 1
                FROM tenant_memberships m
                JOIN tenants t ON t.id = m.tenant_id
                WHERE m.principal_id = $1
                AND m.tenant_id = $2
                AND t.status = $3
            )
        """
        return bool(await self._run("fetchval", query, principal_id, tenant_id, TenantStatus.ACTIVE.value))

    async def find_role_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        at: datetime
    ) -> Optional[GrantMatch]:
        row = await self._run("fetchrow", _ROLE_GRANT, principal_id, tenant_id, resource, action, at)
        return self._match_from_row(row)

    async def find_direct_grant(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        resource_instance_id: Optional[str],
        at: datetime
    ) -> Optional[GrantMatch]:
        row = await self._run(
            "fetchrow", _DIRECT_GRANT, principal_id, tenant_id, resource, action, resource_instance_id, at
        )
        return self._match_from_row(row)

    async def list_effective_permissions(
        self,
        principal_id: str,
        tenant_id: str,
        at: datetime
    ) -> EffectivePermissions:
        query = """
            WITH role_grants AS (
                -- Permissions from roles
                SELECT p.id, p.tenant_id, p.resource, p.action, ur.expires_at
                FROM user_roles ur
                JOIN role_permissions rp ON rp.role_id = ur.role_id
                JOIN permissions p ON p.id = rp.permission_id
                WHERE ur.principal_id = $1
                AND ur.tenant_id = $2
                AND (ur.expires_at IS NULL OR ur.expires_at > $3)
            ),
            direct_grants AS (
                -- Direct permissions covering every instance
                SELECT p.id, p.tenant_id, p.resource, p.action, up.expires_at
                FROM user_permissions up
                JOIN permissions p ON p.id = up.permission_id
                WHERE up.principal_id = $1
                AND up.tenant_id = $2
                AND up.resource_instance_id IS NULL
                AND (up.expires_at IS NULL OR up.expires_at > $3)
            )
            SELECT id, tenant_id, resource, action, expires_at FROM role_grants
            UNION ALL
            SELECT id, tenant_id, resource, action, expires_at FROM direct_grants
        """
        rows = await self._run("fetch", query, principal_id, tenant_id, at)
        return EffectivePermissions.collect(
            (self._permission_from_row(row), row['expires_at']) for row in rows
        )

    async def list_tenant_permissions(self, tenant_id: str) -> List[Permission]:
        rows = await self._run(
            "fetch",
            "SELECT id, tenant_id, resource, action FROM permissions WHERE tenant_id = $1",
            tenant_id
        )
        return [self._permission_from_row(row) for row in rows]

    async def list_role_holders(self, role_id: str) -> List[Tuple[str, Optional[str]]]:
        rows = await self._run(
            "fetch",
            "SELECT DISTINCT principal_id, tenant_id FROM user_roles WHERE role_id = $1",
            role_id
        )
        return [(row['principal_id'], row['tenant_id']) for row in rows]

    async def list_tenant_members(self, tenant_id: str, limit: int = 100) -> List[str]:
        rows = await self._run(
            "fetch",
            """
            SELECT principal_id FROM tenant_memberships
            WHERE tenant_id = $1 ORDER BY principal_id LIMIT $2
            """,
            tenant_id, limit
        )
        return [row['principal_id'] for row in rows]

    # Mutations. Each statement runs in its own implicit transaction.

    async def add_membership(self, membership: TenantMembership) -> None:
        await self._run(
            "execute",
            """
            INSERT INTO tenant_memberships (principal_id, tenant_id, is_primary)
            VALUES ($1, $2, $3)
            ON CONFLICT ON CONSTRAINT tenant_memberships_unique
            DO UPDATE SET is_primary = EXCLUDED.is_primary
            """,
            membership.principal_id, membership.tenant_id, membership.is_primary
        )

    async def remove_membership(self, principal_id: str, tenant_id: str) -> bool:
        status = await self._run(
            "execute",
            "DELETE FROM tenant_memberships WHERE principal_id = $1 AND tenant_id = $2",
            principal_id, tenant_id
        )
        return _affected(status) > 0

    async def add_role_assignment(self, assignment: RoleAssignment) -> None:
        await self._run(
            "execute",
            """
            INSERT INTO user_roles (principal_id, role_id, tenant_id, expires_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT ON CONSTRAINT user_roles_unique
            DO UPDATE SET expires_at = EXCLUDED.expires_at
            """,
            assignment.principal_id, assignment.role_id, assignment.tenant_id, assignment.expires_at
        )

    async def remove_role_assignment(
        self,
        principal_id: str,
        role_id: str,
        tenant_id: Optional[str]
    ) -> bool:
        status = await self._run(
            "execute",
            """
            DELETE FROM user_roles
            WHERE principal_id = $1 AND role_id = $2 AND tenant_id IS NOT DISTINCT FROM $3
            """,
            principal_id, role_id, tenant_id
        )
        return _affected(status) > 0

    async def add_role_permission(self, role_permission: RolePermission) -> None:
        await self._run(
            "execute",
            """
            INSERT INTO role_permissions (role_id, permission_id) VALUES ($1, $2)
            ON CONFLICT ON CONSTRAINT role_permissions_unique DO NOTHING
            """,
            role_permission.role_id, role_permission.permission_id
        )

    async def remove_role_permission(self, role_id: str, permission_id: str) -> bool:
        status = await self._run(
            "execute",
            "DELETE FROM role_permissions WHERE role_id = $1 AND permission_id = $2",
            role_id, permission_id
        )
        return _affected(status) > 0

    async def add_direct_grant(self, grant: DirectGrant) -> None:
        await self._run(
            "execute",
            """
            INSERT INTO user_permissions
                (principal_id, permission_id, tenant_id, resource_instance_id, expires_at)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT ON CONSTRAINT user_permissions_unique
            DO UPDATE SET expires_at = EXCLUDED.expires_at
            """,
            grant.principal_id, grant.permission_id, grant.tenant_id,
            grant.resource_instance_id, grant.expires_at
        )

    async def remove_direct_grant(
        self,
        principal_id: str,
        permission_id: str,
        tenant_id: str,
        resource_instance_id: Optional[str] = None
    ) -> bool:
        status = await self._run(
            "execute",
            """
            DELETE FROM user_permissions
            WHERE principal_id = $1 AND permission_id = $2 AND tenant_id = $3
            AND resource_instance_id IS NOT DISTINCT FROM $4
            """,
            principal_id, permission_id, tenant_id, resource_instance_id
        )
        return _affected(status) > 0


def _affected(status: str) -> int:
    """Parse the row count from an asyncpg command status such as ``DELETE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
