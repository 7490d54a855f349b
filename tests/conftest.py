"""Pytest configuration and fixtures for neo-permissions tests."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from neo_permissions.config.constants import TenantStatus
from neo_permissions.features.cache import (
    LocalCacheConfig,
    MemoryCacheAdapter,
    PermissionCacheKeys,
    TieredPermissionCache,
)
from neo_permissions.features.events import DomainEventBus
from neo_permissions.features.permissions import (
    EntityBoundaryValidator,
    InMemoryPermissionStore,
    InvalidationCoordinator,
    Permission,
    PermissionResolver,
    Role,
    RoleAssignment,
    RolePermission,
    RoleManagementService,
    Tenant,
    TenantMembership,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Settable wall clock for expiry tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Wall clock frozen at NOW."""
    return FakeClock()


@pytest_asyncio.fixture
async def store():
    """In-memory store seeded with two tenants.

    T1: Editor (documents:read, documents:write), Member (documents:read),
        Admin (roles:manage); P1 is an Editor, ADMIN an Admin, P2 a plain member.
    T2: Editor (documents:write); P3 is an Editor.
    T10: no grants; exists to catch prefix collisions with T1.
    root holds the system SuperAdmin role and no memberships.
    """
    s = InMemoryPermissionStore()
    s.add_tenant(Tenant("T1", "Tenant One"))
    s.add_tenant(Tenant("T2", "Tenant Two"))
    s.add_tenant(Tenant("T10", "Tenant Ten"))
    s.add_tenant(Tenant("T-suspended", "Suspended", status=TenantStatus.SUSPENDED))

    s.add_role(Role("role-superadmin", None, "SuperAdmin", is_system_role=True))
    s.add_role(Role("role-editor", "T1", "Editor"))
    s.add_role(Role("role-member", "T1", "Member"))
    s.add_role(Role("role-admin", "T1", "Admin"))
    s.add_role(Role("role-editor-t2", "T2", "Editor"))

    s.add_permission(Permission("perm-doc-read", "T1", "documents", "read"))
    s.add_permission(Permission("perm-doc-write", "T1", "documents", "write"))
    s.add_permission(Permission("perm-doc-delete", "T1", "documents", "delete"))
    s.add_permission(Permission("perm-roles-manage", "T1", "roles", "manage"))
    s.add_permission(Permission("perm-t2-doc-write", "T2", "documents", "write"))
    s.add_permission(Permission("perm-t10-doc-write", "T10", "documents", "write"))

    await s.add_role_permission(RolePermission("role-editor", "perm-doc-read"))
    await s.add_role_permission(RolePermission("role-editor", "perm-doc-write"))
    await s.add_role_permission(RolePermission("role-member", "perm-doc-read"))
    await s.add_role_permission(RolePermission("role-admin", "perm-roles-manage"))
    await s.add_role_permission(RolePermission("role-editor-t2", "perm-t2-doc-write"))

    for principal, tenant in [("P1", "T1"), ("P2", "T1"), ("ADMIN", "T1"), ("P3", "T2"), ("P1", "T-suspended")]:
        await s.add_membership(TenantMembership(principal, tenant))

    await s.add_role_assignment(RoleAssignment("P1", "role-editor", "T1"))
    await s.add_role_assignment(RoleAssignment("ADMIN", "role-admin", "T1"))
    await s.add_role_assignment(RoleAssignment("P3", "role-editor-t2", "T2"))
    await s.add_role_assignment(RoleAssignment("root", "role-superadmin", None))

    s.query_count = 0
    return s


@pytest.fixture
def keys():
    return PermissionCacheKeys()


@pytest.fixture
def local_tier(clock):
    """Local tier whose entries age with the frozen wall clock."""
    return MemoryCacheAdapter(
        LocalCacheConfig(max_entries=1000, shard_count=4), clock=lambda: clock.now.timestamp()
    )


@pytest.fixture
def cache(local_tier):
    return TieredPermissionCache(local_tier)


@pytest.fixture
def validator(store, cache, keys, clock):
    return EntityBoundaryValidator(store, cache, keys, clock=clock)


@pytest.fixture
def resolver(store, cache, keys, validator, clock):
    return PermissionResolver(store, cache, keys, validator, timeout_seconds=1.0, clock=clock)


@pytest.fixture
def event_bus():
    return DomainEventBus()


@pytest.fixture
def coordinator(cache, keys, store, event_bus):
    coordinator = InvalidationCoordinator(cache, keys, store=store)
    coordinator.register(event_bus)
    return coordinator


@pytest.fixture
def role_service(store, validator, event_bus, coordinator):
    service = RoleManagementService(store, validator, event_bus)
    service.register()
    return service
