"""Permissions feature for neo-permissions.

Feature-First layout for tenant-scoped permission resolution:
- entities/: Tenants, roles, permissions, grants, decisions, events and protocols
- repositories/: PermissionStore implementations (asyncpg and in-memory)
- services/: Resolution, boundary validation, invalidation, management and warming
"""

# Core entities and protocols
from .entities import (
    Tenant, TenantMembership, Role, Permission, PermissionKey, PermissionCheck,
    RoleAssignment, RolePermission, DirectGrant, GrantMatch, EffectivePermissions,
    PermissionDecision, DecisionReason,
    PermissionDomainEvent, RoleAssignmentChanged, DirectGrantChanged,
    RolePermissionChanged, TenantMembershipChanged, PrincipalProvisioned,
    PermissionStore,
)

# Concrete store implementations
from .repositories import InMemoryPermissionStore, AsyncPGPermissionStore

# Services
from .services import (
    EntityBoundaryValidator,
    PermissionCacheCodec,
    PermissionResolver,
    InvalidationCoordinator,
    RoleManagementService,
    CacheWarmingService,
    WarmingResult,
)

__all__ = [
    # Entities
    "Tenant",
    "TenantMembership",
    "Role",
    "Permission",
    "PermissionKey",
    "PermissionCheck",
    "RoleAssignment",
    "RolePermission",
    "DirectGrant",
    "GrantMatch",
    "EffectivePermissions",
    "PermissionDecision",
    "DecisionReason",

    # Events
    "PermissionDomainEvent",
    "RoleAssignmentChanged",
    "DirectGrantChanged",
    "RolePermissionChanged",
    "TenantMembershipChanged",
    "PrincipalProvisioned",

    # Protocols
    "PermissionStore",

    # Stores
    "InMemoryPermissionStore",
    "AsyncPGPermissionStore",

    # Services
    "EntityBoundaryValidator",
    "PermissionCacheCodec",
    "PermissionResolver",
    "InvalidationCoordinator",
    "RoleManagementService",
    "CacheWarmingService",
    "WarmingResult",
]
