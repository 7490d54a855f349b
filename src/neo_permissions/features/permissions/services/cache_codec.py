"""Serializer for permission values held in the shared cache tier.

Decisions are stored as JSON booleans; effective permission sets as
``{"perms": [[resource, action], ...]}`` sorted for stable payloads.
"""

from typing import Any, FrozenSet

from ...cache.adapters.serializers import JsonSerializer
from ....core.exceptions import CacheSerializationError, InvariantViolationError
from ..entities import PermissionKey

_PERMS_FIELD = "perms"


class PermissionCacheCodec(JsonSerializer):
    """JSON codec that round-trips ``frozenset[PermissionKey]``."""

    def encode(self, value: Any) -> bytes:
        if isinstance(value, (set, frozenset)):
            value = {_PERMS_FIELD: [[key.resource, key.action] for key in sorted(value)]}
        return super().encode(value)

    def decode(self, payload: bytes) -> Any:
        value = super().decode(payload)
        if isinstance(value, dict) and _PERMS_FIELD in value:
            return self._decode_keys(value[_PERMS_FIELD])
        return value

    @staticmethod
    def _decode_keys(pairs) -> FrozenSet[PermissionKey]:
        try:
            return frozenset(PermissionKey(resource, action) for resource, action in pairs)
        except (TypeError, ValueError, InvariantViolationError) as e:
            raise CacheSerializationError(f"Malformed permission set in cache: {e}")
