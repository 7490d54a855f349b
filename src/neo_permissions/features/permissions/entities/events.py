"""Domain events emitted by role management.

Events are published only after the corresponding store write has
committed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PermissionDomainEvent:
    """Base class for permission domain events."""

    occurred_at: datetime = field(default_factory=_now, kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class RoleAssignmentChanged(PermissionDomainEvent):
    """A role assignment was created or removed.

    ``tenant_id`` is None for assignments of a system role.
    """

    principal_id: str
    tenant_id: Optional[str]


@dataclass(frozen=True)
class DirectGrantChanged(PermissionDomainEvent):
    """A direct grant was created or removed."""

    principal_id: str
    tenant_id: str


@dataclass(frozen=True)
class RolePermissionChanged(PermissionDomainEvent):
    """The permission set of a role changed."""

    role_id: str
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class TenantMembershipChanged(PermissionDomainEvent):
    """A principal joined or left a tenant."""

    principal_id: str
    tenant_id: str


@dataclass(frozen=True)
class PrincipalProvisioned(PermissionDomainEvent):
    """A principal was provisioned into a tenant."""

    principal_id: str
    tenant_id: str
    is_primary: bool = True
