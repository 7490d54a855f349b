"""Tenant and tenant membership entities.

Maps to the ``tenants`` and ``tenant_memberships`` tables.
"""

from dataclasses import dataclass

from ....config.constants import TenantStatus


@dataclass(frozen=True)
class Tenant:
    """Root isolation boundary for all non-system data."""

    id: str
    name: str
    status: TenantStatus = TenantStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        """Check if tenant data may currently be evaluated."""
        return self.status == TenantStatus.ACTIVE


@dataclass(frozen=True)
class TenantMembership:
    """Association of a principal with a tenant."""

    principal_id: str
    tenant_id: str
    is_primary: bool = False
