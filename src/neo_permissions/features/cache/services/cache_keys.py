"""Cache key layout for permission data.

Layout (each component percent-encoded, so ``:`` and glob characters in ids
never leak into the structure)::

    {ns}:d:{principal}:{tenant}:{resource}:{action}:{instance|*}   decision
    {ns}:d:{principal}:{tenant}:*                                  effective set
    {ns}:d:{principal}:{tenant}:@membership                        membership
    {ns}:sa:{principal}                                            SuperAdmin flag

All entries of a principal/tenant pair share ``{ns}:d:{principal}:{tenant}:``
and all tenant-scoped entries of a principal share ``{ns}:d:{principal}:``.
The trailing separator keeps ``t1`` from matching ``t10``.
"""

from typing import Optional
from urllib.parse import quote

from ....config.constants import CacheKeyParts


def _encode(component: str) -> str:
    return quote(component, safe="")


class PermissionCacheKeys:
    """Builds cache keys and invalidation prefixes."""

    def __init__(self, namespace: str = CacheKeyParts.DEFAULT_NAMESPACE):
        if not namespace:
            raise ValueError("Cache namespace must not be empty")
        self.namespace = namespace

    def namespace_prefix(self) -> str:
        return f"{self.namespace}:"

    def principal_prefix(self, principal_id: str) -> str:
        return f"{self.namespace}:{CacheKeyParts.DECISION}:{_encode(principal_id)}:"

    def principal_tenant_prefix(self, principal_id: str, tenant_id: str) -> str:
        return f"{self.principal_prefix(principal_id)}{_encode(tenant_id)}:"

    def decision(
        self,
        principal_id: str,
        tenant_id: str,
        resource: str,
        action: str,
        resource_instance_id: Optional[str] = None
    ) -> str:
        instance = (
            CacheKeyParts.ANY_INSTANCE if resource_instance_id is None
            else _encode(resource_instance_id)
        )
        return (
            f"{self.principal_tenant_prefix(principal_id, tenant_id)}"
            f"{_encode(resource)}:{_encode(action)}:{instance}"
        )

    def effective(self, principal_id: str, tenant_id: str) -> str:
        return f"{self.principal_tenant_prefix(principal_id, tenant_id)}{CacheKeyParts.EFFECTIVE}"

    def membership(self, principal_id: str, tenant_id: str) -> str:
        return f"{self.principal_tenant_prefix(principal_id, tenant_id)}{CacheKeyParts.MEMBERSHIP}"

    def superadmin(self, principal_id: str) -> str:
        return f"{self.namespace}:{CacheKeyParts.SUPERADMIN}:{_encode(principal_id)}"
