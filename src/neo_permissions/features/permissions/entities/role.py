"""Role domain entity.

Roles are flat bundles of permissions. A system role has no tenant and
applies globally; every other role belongs to exactly one tenant.
"""

from dataclasses import dataclass
from typing import Optional

from ....core.exceptions import InvariantViolationError


@dataclass(frozen=True)
class Role:
    """Named, flat bundle of permissions."""

    id: str
    tenant_id: Optional[str]
    name: str
    is_system_role: bool = False

    def __post_init__(self):
        """Enforce is_system_role <=> tenant_id is None."""
        if not self.name:
            raise InvariantViolationError("Role name must not be empty")
        if self.is_system_role and self.tenant_id is not None:
            raise InvariantViolationError(
                f"System role {self.name} must not belong to a tenant",
                details={"role_id": self.id, "tenant_id": self.tenant_id}
            )
        if not self.is_system_role and self.tenant_id is None:
            raise InvariantViolationError(
                f"Tenant role {self.name} must belong to a tenant",
                details={"role_id": self.id}
            )

    def __str__(self) -> str:
        scope = "system" if self.is_system_role else self.tenant_id
        return f"Role({self.name}@{scope})"
