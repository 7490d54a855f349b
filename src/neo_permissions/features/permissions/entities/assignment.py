"""Grant entities linking principals to roles and permissions.

Maps to the ``user_roles``, ``role_permissions`` and ``user_permissions``
tables. Rows whose ``expires_at`` is not in the future are inert.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .permission import Permission


def is_unexpired(expires_at: Optional[datetime], at: datetime) -> bool:
    """Return True when a row with this expiry is still in force at ``at``."""
    return expires_at is None or expires_at > at


def seconds_until(expires_at: Optional[datetime], at: datetime) -> Optional[float]:
    """Seconds from ``at`` until ``expires_at``; None for rows that never expire."""
    if expires_at is None:
        return None
    return (expires_at - at).total_seconds()


@dataclass(frozen=True)
class RoleAssignment:
    """Principal holds a role within a tenant.

    ``tenant_id`` is None only for assignments of a system role.
    """

    principal_id: str
    role_id: str
    tenant_id: Optional[str]
    expires_at: Optional[datetime] = None

    def is_active(self, at: datetime) -> bool:
        return is_unexpired(self.expires_at, at)


@dataclass(frozen=True)
class RolePermission:
    """Permission attached directly to a role."""

    role_id: str
    permission_id: str


@dataclass(frozen=True)
class DirectGrant:
    """Permission assigned straight to a principal.

    A null ``resource_instance_id`` means the grant covers every instance.
    """

    principal_id: str
    permission_id: str
    tenant_id: str
    resource_instance_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_active(self, at: datetime) -> bool:
        return is_unexpired(self.expires_at, at)

    def matches_instance(self, resource_instance_id: Optional[str]) -> bool:
        """Check if the grant covers the requested instance."""
        return self.resource_instance_id is None or self.resource_instance_id == resource_instance_id


@dataclass(frozen=True)
class GrantMatch:
    """A positive grant lookup.

    ``expires_at`` is when the longest-lived matching row lapses; None when
    at least one matching row never expires.
    """

    expires_at: Optional[datetime] = None

    @classmethod
    def from_expiries(cls, expiries: Iterable[Optional[datetime]]) -> Optional["GrantMatch"]:
        """Combine the expiries of every matching row (None if there are no rows)."""
        expiries = list(expiries)
        if not expiries:
            return None
        if any(expires_at is None for expires_at in expiries):
            return cls()
        return cls(max(expiries))

    def seconds_left(self, at: datetime) -> Optional[float]:
        return seconds_until(self.expires_at, at)


@dataclass(frozen=True)
class EffectivePermissions:
    """Permissions covering every instance, and when the set next shrinks.

    ``expires_at`` is the earliest expiry among the rows that contributed.
    """

    permissions: Tuple[Permission, ...] = ()
    expires_at: Optional[datetime] = None

    @classmethod
    def collect(cls, rows: Iterable[Tuple[Permission, Optional[datetime]]]) -> "EffectivePermissions":
        permissions: Dict[str, Permission] = {}
        expiries = []
        for permission, expires_at in rows:
            permissions[permission.id] = permission
            if expires_at is not None:
                expiries.append(expires_at)
        return cls(tuple(permissions.values()), min(expiries) if expiries else None)

    def seconds_left(self, at: datetime) -> Optional[float]:
        return seconds_until(self.expires_at, at)

    def __iter__(self) -> Iterator[Permission]:
        return iter(self.permissions)

    def __len__(self) -> int:
        return len(self.permissions)
