"""Permission domain entities, events and protocols."""

from .tenant import Tenant, TenantMembership
from .role import Role
from .permission import Permission, PermissionKey, PermissionCheck
from .assignment import (
    RoleAssignment,
    RolePermission,
    DirectGrant,
    GrantMatch,
    EffectivePermissions,
    is_unexpired,
    seconds_until,
)
from .decision import PermissionDecision, DecisionReason
from .events import (
    PermissionDomainEvent,
    RoleAssignmentChanged,
    DirectGrantChanged,
    RolePermissionChanged,
    TenantMembershipChanged,
    PrincipalProvisioned,
)
from .protocols import PermissionStore

__all__ = [
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
    "is_unexpired",
    "seconds_until",
    "PermissionDecision",
    "DecisionReason",
    "PermissionDomainEvent",
    "RoleAssignmentChanged",
    "DirectGrantChanged",
    "RolePermissionChanged",
    "TenantMembershipChanged",
    "PrincipalProvisioned",
    "PermissionStore",
]
