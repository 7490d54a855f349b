"""Permission router.

Ready-to-include FastAPI router exposing permission checks, effective
permissions and principal invalidation. Resolution errors propagate as
``NeoPermissionsError`` and are rendered by the registered exception
handlers (400 tenant missing, 503 store unavailable, 504 timeout).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ....core.exceptions import TenantContextMissingError
from ..models.requests import (
    BatchPermissionCheckRequest,
    InvalidatePrincipalRequest,
    PermissionCheckRequest,
)
from ..models.responses import (
    BatchPermissionCheckResponse,
    EffectivePermissionsResponse,
    InvalidationResponse,
    PermissionCheckResponse,
)
from ..services.invalidation import InvalidationCoordinator
from ..services.resolver import PermissionResolver
from .dependencies import get_invalidation_coordinator, get_permission_resolver

_ERROR_RESPONSES = {
    400: {"description": "Tenant context missing"},
    503: {"description": "Permission store unavailable"},
    504: {"description": "Permission resolution timed out"},
}

router = APIRouter(
    prefix="/permissions",
    tags=["Permissions"],
    responses=_ERROR_RESPONSES,
)


@router.post(
    "/check",
    response_model=PermissionCheckResponse,
    summary="Check permission",
    description="Check whether a principal may perform an action on a resource in a tenant",
)
async def check_permission(
    request: PermissionCheckRequest,
    resolver: PermissionResolver = Depends(get_permission_resolver)
) -> PermissionCheckResponse:
    """Check a single permission."""
    decision = await resolver.evaluate(
        request.principal_id,
        request.tenant_id,
        request.resource,
        request.action,
        request.resource_instance_id,
        bypass_cache=request.bypass_cache,
    )
    if decision.error is not None:
        raise decision.error
    return PermissionCheckResponse.from_decision(decision)


@router.post(
    "/check-batch",
    response_model=BatchPermissionCheckResponse,
    summary="Check permissions in batch",
    description="Check several permissions for one principal and tenant",
)
async def check_permissions_batch(
    request: BatchPermissionCheckRequest,
    resolver: PermissionResolver = Depends(get_permission_resolver)
) -> BatchPermissionCheckResponse:
    """Check several permissions at once."""
    checks = [item.to_check() for item in request.checks]
    results = await resolver.check_many(
        request.principal_id,
        request.tenant_id,
        checks,
        bypass_cache=request.bypass_cache,
    )
    return BatchPermissionCheckResponse.from_results(checks, results)


@router.get(
    "/effective",
    response_model=EffectivePermissionsResponse,
    summary="Get effective permissions",
    description="List permissions that apply to every instance for a principal in a tenant",
)
async def get_effective_permissions(
    principal_id: str = Query(..., min_length=1, description="Principal (user) ID"),
    tenant_id: Optional[str] = Query(None, description="Tenant context"),
    bypass_cache: bool = Query(False, description="Read through to the store"),
    resolver: PermissionResolver = Depends(get_permission_resolver)
) -> EffectivePermissionsResponse:
    """Get the effective permission set."""
    if not tenant_id:
        raise TenantContextMissingError(
            "Tenant context is required for effective permissions",
            details={"principal_id": principal_id}
        )
    keys = await resolver.get_effective_permissions(principal_id, tenant_id, bypass_cache=bypass_cache)
    return EffectivePermissionsResponse.from_keys(principal_id, tenant_id, keys)


@router.post(
    "/invalidate",
    response_model=InvalidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Invalidate principal",
    description="Evict cached permission data for a principal in one tenant or all tenants",
)
async def invalidate_principal(
    request: InvalidatePrincipalRequest,
    coordinator: InvalidationCoordinator = Depends(get_invalidation_coordinator)
) -> InvalidationResponse:
    """Invalidate cached permissions of a principal."""
    removed = await coordinator.invalidate_principal(request.principal_id, request.tenant_id)
    return InvalidationResponse(
        principal_id=request.principal_id,
        tenant_id=request.tenant_id,
        invalidated=removed,
    )
