"""Permission API response models."""

from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from ..entities import PermissionCheck, PermissionDecision, PermissionKey


class PermissionCheckResponse(BaseModel):
    """Result of a single permission check."""

    allowed: bool = Field(..., description="Whether the action is permitted")
    reason: str = Field(..., description="How the decision was reached")
    cached: bool = Field(False, description="Whether the decision came from cache")

    @classmethod
    def from_decision(cls, decision: PermissionDecision) -> "PermissionCheckResponse":
        return cls(allowed=decision.allowed, reason=decision.reason.value, cached=decision.cached)


class BatchCheckResult(BaseModel):
    """Result for one check of a batch."""

    resource: str
    action: str
    resource_instance_id: Optional[str] = None
    allowed: bool


class BatchPermissionCheckResponse(BaseModel):
    """Results of a batch permission check, in request order."""

    results: List[BatchCheckResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, checks: Iterable[PermissionCheck], results) -> "BatchPermissionCheckResponse":
        return cls(results=[
            BatchCheckResult(
                resource=check.resource,
                action=check.action,
                resource_instance_id=check.resource_instance_id,
                allowed=results[check],
            )
            for check in checks
        ])


class PermissionItem(BaseModel):
    """A ``(resource, action)`` pair."""

    resource: str
    action: str


class EffectivePermissionsResponse(BaseModel):
    """Permissions applying to every instance for a principal in a tenant."""

    principal_id: str
    tenant_id: str
    permissions: List[PermissionItem] = Field(default_factory=list)

    @classmethod
    def from_keys(
        cls,
        principal_id: str,
        tenant_id: str,
        keys: Iterable[PermissionKey]
    ) -> "EffectivePermissionsResponse":
        return cls(
            principal_id=principal_id,
            tenant_id=tenant_id,
            permissions=[PermissionItem(resource=k.resource, action=k.action) for k in sorted(keys)],
        )


class InvalidationResponse(BaseModel):
    """Outcome of an invalidation request."""

    principal_id: str
    tenant_id: Optional[str] = None
    invalidated: int = Field(..., description="Cache entries removed on this instance")
