"""Permission API request models."""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..entities import PermissionCheck


class PermissionCheckRequest(BaseModel):
    """Request model for a single permission check."""

    principal_id: str = Field(..., min_length=1, description="Principal (user) ID")
    tenant_id: Optional[str] = Field(None, description="Tenant context; required unless the principal is SuperAdmin")
    resource: str = Field(..., min_length=1, description="Resource name, e.g. 'documents'")
    action: str = Field(..., min_length=1, description="Action name, e.g. 'read'")
    resource_instance_id: Optional[str] = Field(None, description="Specific resource instance")
    bypass_cache: bool = Field(False, description="Read through to the store")


class BatchCheckItem(BaseModel):
    """One check inside a batch request."""

    resource: str = Field(..., min_length=1, description="Resource name")
    action: str = Field(..., min_length=1, description="Action name")
    resource_instance_id: Optional[str] = Field(None, description="Specific resource instance")

    def to_check(self) -> PermissionCheck:
        return PermissionCheck(self.resource, self.action, self.resource_instance_id)


class BatchPermissionCheckRequest(BaseModel):
    """Request model for checking several permissions at once."""

    principal_id: str = Field(..., min_length=1, description="Principal (user) ID")
    tenant_id: Optional[str] = Field(None, description="Tenant context")
    checks: List[BatchCheckItem] = Field(..., min_length=1, max_length=200, description="Checks to evaluate")
    bypass_cache: bool = Field(False, description="Read through to the store")


class InvalidatePrincipalRequest(BaseModel):
    """Request model for evicting cached permissions of a principal."""

    principal_id: str = Field(..., min_length=1, description="Principal (user) ID")
    tenant_id: Optional[str] = Field(None, description="Tenant to invalidate; all tenants when omitted")
