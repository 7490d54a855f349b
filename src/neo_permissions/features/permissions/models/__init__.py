"""Permission API models."""

from .requests import (
    PermissionCheckRequest,
    BatchCheckItem,
    BatchPermissionCheckRequest,
    InvalidatePrincipalRequest,
)
from .responses import (
    PermissionCheckResponse,
    BatchCheckResult,
    BatchPermissionCheckResponse,
    PermissionItem,
    EffectivePermissionsResponse,
    InvalidationResponse,
)

__all__ = [
    "PermissionCheckRequest",
    "BatchCheckItem",
    "BatchPermissionCheckRequest",
    "InvalidatePrincipalRequest",
    "PermissionCheckResponse",
    "BatchCheckResult",
    "BatchPermissionCheckResponse",
    "PermissionItem",
    "EffectivePermissionsResponse",
    "InvalidationResponse",
]
