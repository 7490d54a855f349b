"""Permission domain entities.

A permission is the atomic ``(resource, action)`` capability. There is
no wildcard matching: two keys are equal only when both parts are equal.
"""

from dataclasses import dataclass
from typing import Optional

from ....core.exceptions import InvariantViolationError


@dataclass(frozen=True, order=True)
class PermissionKey:
    """Immutable ``(resource, action)`` pair."""

    resource: str
    action: str

    def __post_init__(self):
        if not self.resource or not self.action:
            raise InvariantViolationError(
                f"Both resource and action must be non-empty, got: {self.resource!r}:{self.action!r}"
            )

    @classmethod
    def from_code(cls, code: str) -> "PermissionKey":
        """Parse a ``resource:action`` code."""
        resource, sep, action = code.partition(":")
        if not sep:
            raise InvariantViolationError(f"Permission code must be in format 'resource:action', got: {code}")
        return cls(resource, action)

    @property
    def code(self) -> str:
        return f"{self.resource}:{self.action}"

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True)
class Permission:
    """Permission row, unique per ``(tenant_id, resource, action)``."""

    id: str
    tenant_id: str
    resource: str
    action: str

    def __post_init__(self):
        if not self.tenant_id:
            raise InvariantViolationError(f"Permission {self.id} must belong to a tenant")

    @property
    def key(self) -> PermissionKey:
        return PermissionKey(self.resource, self.action)


@dataclass(frozen=True)
class PermissionCheck:
    """One ``(resource, action, instance)`` question in a batch check."""

    resource: str
    action: str
    resource_instance_id: Optional[str] = None

    @property
    def key(self) -> PermissionKey:
        return PermissionKey(self.resource, self.action)
